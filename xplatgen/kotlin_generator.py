"""Kotlin Generator - generates the Kotlin API file and its JNI C bridge"""

from . import naming
from .common import (
    BaseGenerator, ExportedFunction, all_exported_functions, collect_error_types,
    collect_flatbuffer_params, collect_flatbuffer_returns, destructor_owners, enum_base,
    exported_functions, field_type, instance_handle, is_enum, is_record, marshalled_records,
    reachable_records,
)
from .type_mapper import TypeMapper
from .types import Artifact, Method, Parameter, TypeInfo

KOTLIN_TYPES = {
    'int8': 'Byte',
    'uint8': 'Byte',
    'int16': 'Short',
    'uint16': 'Short',
    'int32': 'Int',
    'uint32': 'Int',
    'int64': 'Long',
    'uint64': 'Long',
    'float32': 'Float',
    'float64': 'Double',
    'bool': 'Boolean',
}

# primitive -> JNI name stem used by New<X>Array, Get<X>Field and friends
JNI_STEMS = {
    'int8': 'Byte',
    'uint8': 'Byte',
    'int16': 'Short',
    'uint16': 'Short',
    'int32': 'Int',
    'uint32': 'Int',
    'int64': 'Long',
    'uint64': 'Long',
    'float32': 'Float',
    'float64': 'Double',
    'bool': 'Boolean',
}

JNI_DESCRIPTORS = {
    'Byte': 'B',
    'Short': 'S',
    'Int': 'I',
    'Long': 'J',
    'Float': 'F',
    'Double': 'D',
    'Boolean': 'Z',
}

STRING_DESCRIPTOR = "Ljava/lang/String;"


def jni_type(t: str) -> str:
    """JNI C type of a primitive: jint, jbyte, ..."""
    return f"j{JNI_STEMS[t].lower()}"


def jni_array_type(t: str) -> str:
    return f"j{JNI_STEMS[t].lower()}Array"


def kotlin_array_type(t: str) -> str:
    return f"{JNI_STEMS[t]}Array"


def exception_name(error_type: str) -> str:
    """Common.ErrorCode -> CommonErrorCodeException"""
    return f"{naming.flat_name(error_type)}Exception"


def native_method_name(iface_name: str, method_name: str) -> str:
    return f"native{naming.to_pascal_case(iface_name)}{naming.to_pascal_case(method_name)}"


class KotlinGenerator(BaseGenerator):
    """Generates <Pascal>.kt and <api>_jni.c for Android/JVM targets.

    Fallible calls that return a handle or a scalar come back from JNI as a
    two-element LongArray of (error code, value); fallible record returns
    throw the mapped exception from native code and return the data class.
    """

    name = "kotlin"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.pascal = naming.to_pascal_case(self.api_name)
        self.package = self.api_name.replace("_", ".")
        self.class_path = self.package.replace(".", "/")
        self.jni_prefix = f"Java_{self.package.replace('.', '_')}_{self.pascal}"

    def generate(self) -> list[Artifact]:
        return [
            Artifact(path=f"{self.pascal}.kt", content=self.generate_kotlin()),
            Artifact(path=f"{self.api_name}_jni.c", content=self.generate_jni()),
        ]

    # --- type helpers ---

    def _scalar(self, t: str) -> str:
        """Primitive behind a primitive or enum type"""
        return enum_base(t, self.resolved) if is_enum(t, self.resolved) else t

    def _kotlin_value_type(self, t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return handle
        if is_record(t, self.resolved):
            return naming.flat_name(t)
        return KOTLIN_TYPES[self._scalar(t)]

    def _kotlin_param_type(self, p: Parameter) -> str:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return "String"
        if kind == TypeMapper.KIND_BUFFER:
            return kotlin_array_type(TypeMapper.buffer_element(p.type))
        return self._kotlin_value_type(p.type)

    def _native_param_type(self, p: Parameter) -> str:
        if TypeMapper.handle_name(p.type):
            return "Long"
        return self._kotlin_param_type(p)

    def _native_return_type(self, method: Method) -> str:
        ret = method.return_type
        if method.is_fallible:
            if not ret:
                return "Int"
            return naming.flat_name(ret) if is_record(ret, self.resolved) else "LongArray"
        if not ret:
            return ""
        if TypeMapper.handle_name(ret):
            return "Long"
        return self._kotlin_value_type(ret)

    def _kotlin_field_type(self, info: TypeInfo, t: str) -> str:
        if (elem := TypeMapper.vector_element(t)) is not None:
            elem = field_type(info, elem, self.resolved)
            if elem == "string":
                return "Array<String>"
            if is_record(elem, self.resolved):
                return f"Array<{naming.flat_name(elem)}>"
            return kotlin_array_type(self._scalar(elem))
        if t == "string":
            return "String"
        qualified = field_type(info, t, self.resolved)
        if is_record(qualified, self.resolved):
            return naming.flat_name(qualified)
        return KOTLIN_TYPES[self._scalar(qualified)]

    # --- Kotlin file ---

    def generate_kotlin(self) -> str:
        lines = self.banner()
        lines.extend(["", f"package {self.package}", ""])

        for error in collect_error_types(self.api):
            lines.append(f'class {exception_name(error)}(val errorCode: Int) : Exception("{error} error code: $errorCode")')
            lines.append("")

        for name in marshalled_records(self.api, self.resolved):
            info = self.record_info(name)
            fields = ", ".join(f"val {naming.to_camel_case(f.name)}: {self._kotlin_field_type(info, f.type)}"
                               for f in info.fields)
            lines.append(f"data class {naming.flat_name(name)}({fields})")
            lines.append("")

        owners = destructor_owners(self.api)
        for handle in self.api.handles:
            lines.extend(self._handle_class(handle, owners.get(handle.name)))

        lines.extend(self._native_object())
        return "\n".join(lines)

    def _handle_class(self, handle, dtor: ExportedFunction) -> list[str]:
        lines = []
        if handle.description:
            lines.extend(["/**", f" * {handle.description}", " */"])
        lines.extend([
            f"class {handle.name} internal constructor(internal val handle: Long) : AutoCloseable {{",
            "    private var closed = false",
            "",
        ])
        for fn in all_exported_functions(self.api):
            if fn.role == "method" and instance_handle(fn.method) == handle.name:
                lines.extend(self._wrapper(fn, instance=True))
        lines.append("    override fun close() {")
        if dtor is not None:
            lines.extend([
                "        if (closed) return",
                "        closed = true",
                f"        {self.pascal}.{native_method_name(dtor.interface.name, dtor.method.name)}(handle)",
            ])
        else:
            lines.append("        closed = true")
        lines.extend(["    }", "}", ""])
        return lines

    def _native_object(self) -> list[str]:
        lines = [
            f"object {self.pascal} {{",
            "    init {",
            f'        System.loadLibrary("{self.api_name}")',
            "    }",
            "",
        ]
        fns = all_exported_functions(self.api)
        for fn in fns:
            if fn.is_constructor:
                lines.extend(self._wrapper(fn))
        for fn in fns:
            if fn.role == "method" and instance_handle(fn.method) is None:
                lines.extend(self._wrapper(fn))
        for fn in fns:
            params = ", ".join(f"{naming.to_camel_case(p.name)}: {self._native_param_type(p)}"
                               for p in fn.method.parameters)
            ret = self._native_return_type(fn.method)
            suffix = f": {ret}" if ret else ""
            lines.append(f"    external fun {native_method_name(fn.interface.name, fn.method.name)}({params}){suffix}")
        lines.extend(["}", ""])
        return lines

    def _wrapper(self, fn: ExportedFunction, instance: bool = False) -> list[str]:
        method = fn.method
        params = method.parameters[1:] if instance else method.parameters
        decls = ", ".join(f"{naming.to_camel_case(p.name)}: {self._kotlin_param_type(p)}" for p in params)
        args = ["handle"] if instance else []
        for p in params:
            name = naming.to_camel_case(p.name)
            args.append(f"{name}.handle" if TypeMapper.handle_name(p.type) else name)

        native = native_method_name(fn.interface.name, method.name)
        if instance:
            native = f"{self.pascal}.{native}"
        call = f"{native}({', '.join(args)})"

        ret = method.return_type
        suffix = f": {self._kotlin_value_type(ret)}" if ret else ""
        lines = []
        if method.description:
            lines.extend(["    /**", f"     * {method.description}", "     */"])
        lines.append(f"    fun {naming.to_camel_case(method.name)}({decls}){suffix} {{")

        if method.is_fallible and ret and not is_record(ret, self.resolved):
            lines.append(f"        val result = {call}")
            lines.append(f"        if (result[0] != 0L) throw {exception_name(method.error)}(result[0].toInt())")
            lines.append(f"        return {self._from_long('result[1]', ret)}")
        elif method.is_fallible and not ret:
            lines.append(f"        val rc = {call}")
            lines.append(f"        if (rc != 0) throw {exception_name(method.error)}(rc)")
        elif ret and (handle := TypeMapper.handle_name(ret)):
            lines.append(f"        return {handle}({call})")
        elif ret:
            lines.append(f"        return {call}")
        else:
            lines.append(f"        {call}")
        lines.extend(["    }", ""])
        return lines

    def _from_long(self, expr: str, t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return f"{handle}({expr})"
        kotlin = KOTLIN_TYPES[self._scalar(t)]
        if kotlin == "Long":
            return expr
        if kotlin == "Boolean":
            return f"{expr} != 0L"
        if kotlin == "Float":
            return f"Float.fromBits({expr}.toInt())"
        if kotlin == "Double":
            return f"Double.fromBits({expr})"
        return f"{expr}.to{kotlin}()"

    # --- JNI bridge ---

    def generate_jni(self) -> str:
        param_records = reachable_records(collect_flatbuffer_params(self.api, self.resolved), self.resolved)
        return_records = reachable_records(collect_flatbuffer_returns(self.api, self.resolved), self.resolved)

        lines = self.banner()
        lines.extend([
            "",
            "#include <jni.h>",
            "#include <stdint.h>",
            "#include <stdlib.h>",
            "#include <string.h>",
            "",
            f'#include "{self.api_name}.h"',
            "",
        ])
        if param_records:
            lines.extend(self._pin_helpers())
        if return_records:
            lines.extend([
                "static jstring jni_new_string(JNIEnv *env, const char *s) {",
                '    return (*env)->NewStringUTF(env, s != NULL ? s : "");',
                "}",
                "",
            ])
        if any(fn.method.is_fallible and is_record(fn.method.return_type, self.resolved)
               for fn in all_exported_functions(self.api)):
            lines.extend([
                "static void jni_throw_error(JNIEnv *env, const char *class_name, int32_t code) {",
                "    jclass cls = (*env)->FindClass(env, class_name);",
                "    if (cls == NULL) {",
                "        return;",
                "    }",
                '    jmethodID ctor = (*env)->GetMethodID(env, cls, "<init>", "(I)V");',
                "    (*env)->Throw(env, (jthrowable)(*env)->NewObject(env, cls, ctor, (jint)code));",
                "}",
                "",
            ])
        for name in param_records:
            lines.extend(self._jni_reader(name))
        for name in return_records:
            lines.extend(self._jni_constructor(name))

        for iface in self.api.interfaces:
            lines.append(f"/* {iface.name} */")
            for fn in exported_functions(self.api_name, iface):
                lines.extend(self._jni_function(fn))
        return "\n".join(lines)

    @staticmethod
    def _pin_helpers() -> list[str]:
        return [
            "/* Strings and blocks borrowed for the duration of one native call */",
            "typedef struct {",
            "    jstring str;",
            "    const char *chars;",
            "    void *block;",
            "} jni_pin;",
            "",
            "typedef struct {",
            "    jni_pin *items;",
            "    size_t count;",
            "} jni_pins;",
            "",
            "static void jni_pins_push(jni_pins *pins, jstring str, const char *chars, void *block) {",
            "    jni_pin *items = (jni_pin *)realloc(pins->items, (pins->count + 1) * sizeof(jni_pin));",
            "    if (items == NULL) {",
            "        return;",
            "    }",
            "    items[pins->count].str = str;",
            "    items[pins->count].chars = chars;",
            "    items[pins->count].block = block;",
            "    pins->items = items;",
            "    pins->count++;",
            "}",
            "",
            "static const char *jni_pin_string(JNIEnv *env, jni_pins *pins, jstring str) {",
            "    if (str == NULL) {",
            "        return NULL;",
            "    }",
            "    const char *chars = (*env)->GetStringUTFChars(env, str, NULL);",
            "    jni_pins_push(pins, str, chars, NULL);",
            "    return chars;",
            "}",
            "",
            "static void *jni_pin_alloc(jni_pins *pins, size_t size) {",
            "    if (size == 0) {",
            "        return NULL;",
            "    }",
            "    void *block = malloc(size);",
            "    jni_pins_push(pins, NULL, NULL, block);",
            "    return block;",
            "}",
            "",
            "static void jni_pins_release(JNIEnv *env, jni_pins *pins) {",
            "    for (size_t i = 0; i < pins->count; i++) {",
            "        if (pins->items[i].str != NULL) {",
            "            (*env)->ReleaseStringUTFChars(env, pins->items[i].str, pins->items[i].chars);",
            "        }",
            "        free(pins->items[i].block);",
            "    }",
            "    free(pins->items);",
            "    pins->items = NULL;",
            "    pins->count = 0;",
            "}",
            "",
        ]

    def _descriptor(self, info: TypeInfo, t: str) -> str:
        if (elem := TypeMapper.vector_element(t)) is not None:
            return "[" + self._descriptor(info, elem)
        if t == "string":
            return STRING_DESCRIPTOR
        qualified = field_type(info, t, self.resolved)
        if is_record(qualified, self.resolved):
            return f"L{self.class_path}/{naming.flat_name(qualified)};"
        return JNI_DESCRIPTORS[JNI_STEMS[self._scalar(qualified)]]

    def _record_class(self, name: str) -> str:
        return f"{self.class_path}/{naming.flat_name(name)}"

    def _jni_reader(self, name: str) -> list[str]:
        """jni_read_X copies a Kotlin data class into its C struct"""
        info = self.record_info(name)
        c_name = naming.flatbuffer_c_name(name)
        lines = [
            f"static void jni_read_{c_name}(JNIEnv *env, jobject obj, {c_name} *out, jni_pins *pins) {{",
            "    jclass cls = (*env)->GetObjectClass(env, obj);",
        ]
        for f in info.fields:
            kname = naming.to_camel_case(f.name)
            fid = f'(*env)->GetFieldID(env, cls, "{kname}", "{self._descriptor(info, f.type)}")'
            if (elem := TypeMapper.vector_element(f.type)) is not None:
                lines.extend(self._jni_read_vector(info, f.name, fid, field_type(info, elem, self.resolved)))
            elif f.type == "string":
                lines.append(f"    out->{f.name} = jni_pin_string(env, pins, (jstring)(*env)->GetObjectField(env, obj, {fid}));")
            elif is_record(qualified := field_type(info, f.type, self.resolved), self.resolved):
                lines.append(f"    jni_read_{naming.flatbuffer_c_name(qualified)}"
                             f"(env, (*env)->GetObjectField(env, obj, {fid}), &out->{f.name}, pins);")
            else:
                c_type = TypeMapper.fbs_to_c(f.type, info.namespace, self.resolved)
                stem = JNI_STEMS[self._scalar(qualified)]
                lines.append(f"    out->{f.name} = ({c_type})(*env)->Get{stem}Field(env, obj, {fid});")
        lines.extend(["}", ""])
        return lines

    def _jni_read_vector(self, info: TypeInfo, field: str, fid: str, elem: str) -> list[str]:
        elem_c = TypeMapper.fbs_to_c(elem, info.namespace, self.resolved)
        lines = ["    {"]
        if elem == "string" or is_record(elem, self.resolved):
            lines.append(f"        jobjectArray arr = (jobjectArray)(*env)->GetObjectField(env, obj, {fid});")
        else:
            lines.append(f"        {jni_array_type(self._scalar(elem))} arr = "
                         f"({jni_array_type(self._scalar(elem))})(*env)->GetObjectField(env, obj, {fid});")
        lines.extend([
            "        jsize n = arr != NULL ? (*env)->GetArrayLength(env, arr) : 0;",
            f"        {elem_c} *buf = ({elem_c} *)jni_pin_alloc(pins, (size_t)n * sizeof({elem_c}));",
        ])
        if elem == "string":
            lines.extend([
                "        for (jsize i = 0; i < n; i++) {",
                "            buf[i] = jni_pin_string(env, pins, (jstring)(*env)->GetObjectArrayElement(env, arr, i));",
                "        }",
            ])
        elif is_record(elem, self.resolved):
            lines.extend([
                "        for (jsize i = 0; i < n; i++) {",
                f"            jni_read_{naming.flatbuffer_c_name(elem)}"
                "(env, (*env)->GetObjectArrayElement(env, arr, i), &buf[i], pins);",
                "        }",
            ])
        else:
            scalar = self._scalar(elem)
            lines.extend([
                "        if (n > 0) {",
                f"            (*env)->Get{JNI_STEMS[scalar]}ArrayRegion(env, arr, 0, n, ({jni_type(scalar)} *)buf);",
                "        }",
            ])
        lines.extend([
            f"        out->{field} = buf;",
            f"        out->{field}_count = (uint32_t)n;",
            "    }",
        ])
        return lines

    def _jni_constructor(self, name: str) -> list[str]:
        """jni_new_X builds a Kotlin data class from its C struct"""
        info = self.record_info(name)
        c_name = naming.flatbuffer_c_name(name)
        signature = "".join(self._descriptor(info, f.type) for f in info.fields)
        lines = [
            f"static jobject jni_new_{c_name}(JNIEnv *env, const {c_name} *v) {{",
            f'    jclass cls = (*env)->FindClass(env, "{self._record_class(name)}");',
            f'    jmethodID ctor = (*env)->GetMethodID(env, cls, "<init>", "({signature})V");',
        ]
        args = []
        for f in info.fields:
            local = f"j_{f.name}"
            if (elem := TypeMapper.vector_element(f.type)) is not None:
                lines.extend(self._jni_new_vector(info, f.name, local, field_type(info, elem, self.resolved)))
                args.append(local)
            elif f.type == "string":
                lines.append(f"    jstring {local} = jni_new_string(env, v->{f.name});")
                args.append(local)
            elif is_record(qualified := field_type(info, f.type, self.resolved), self.resolved):
                lines.append(f"    jobject {local} = jni_new_{naming.flatbuffer_c_name(qualified)}(env, &v->{f.name});")
                args.append(local)
            else:
                args.append(f"({jni_type(self._scalar(qualified))})v->{f.name}")
        if args:
            lines.append(f"    return (*env)->NewObject(env, cls, ctor, {', '.join(args)});")
        else:
            lines.append("    return (*env)->NewObject(env, cls, ctor);")
        lines.extend(["}", ""])
        return lines

    def _jni_new_vector(self, info: TypeInfo, field: str, local: str, elem: str) -> list[str]:
        count = f"(jsize)v->{field}_count"
        if elem == "string" or is_record(elem, self.resolved):
            if elem == "string":
                elem_class, make = "java/lang/String", f"jni_new_string(env, v->{field}[i])"
            else:
                elem_class = self._record_class(elem)
                make = f"jni_new_{naming.flatbuffer_c_name(elem)}(env, &v->{field}[i])"
            return [
                f"    jobjectArray {local} = (*env)->NewObjectArray(env, {count}, "
                f'(*env)->FindClass(env, "{elem_class}"), NULL);',
                f"    for (uint32_t i = 0; i < v->{field}_count; i++) {{",
                f"        (*env)->SetObjectArrayElement(env, {local}, (jsize)i, {make});",
                "    }",
            ]
        scalar = self._scalar(elem)
        stem = JNI_STEMS[scalar]
        return [
            f"    {jni_array_type(scalar)} {local} = (*env)->New{stem}Array(env, {count});",
            f"    if (v->{field}_count > 0) {{",
            f"        (*env)->Set{stem}ArrayRegion(env, {local}, 0, {count}, (const {jni_type(scalar)} *)v->{field});",
            "    }",
        ]

    def _jni_param(self, p: Parameter) -> tuple[list[str], list[str], list[str], list[str]]:
        """JNI parameter declarations, setup lines, C ABI arguments and cleanup lines"""
        name = naming.to_camel_case(p.name)
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return (
                [f"jstring {name}"],
                [f"    const char *c_{name} = (*env)->GetStringUTFChars(env, {name}, NULL);"],
                [f"c_{name}"],
                [f"    (*env)->ReleaseStringUTFChars(env, {name}, c_{name});"],
            )
        if kind == TypeMapper.KIND_BUFFER:
            elem = TypeMapper.buffer_element(p.type)
            stem = JNI_STEMS[elem]
            c_type = TypeMapper.to_c_primitive(elem)
            ptr_type = f"{c_type} *" if p.transfer == "ref_mut" else f"const {c_type} *"
            mode = "0" if p.transfer == "ref_mut" else "JNI_ABORT"
            return (
                [f"{jni_array_type(elem)} {name}"],
                [
                    f"    {jni_type(elem)} *c_{name} = (*env)->Get{stem}ArrayElements(env, {name}, NULL);",
                    f"    jsize c_{name}_len = (*env)->GetArrayLength(env, {name});",
                ],
                [f"({ptr_type})c_{name}", f"(uint32_t)c_{name}_len"],
                [f"    (*env)->Release{stem}ArrayElements(env, {name}, c_{name}, {mode});"],
            )
        if handle := TypeMapper.handle_name(p.type):
            return [f"jlong {name}"], [], [f"({naming.handle_typedef(handle)})(intptr_t){name}"], []
        if kind == TypeMapper.KIND_PRIMITIVE:
            return [f"{jni_type(p.type)} {name}"], [], [f"({TypeMapper.to_c_primitive(p.type)}){name}"], []

        c_type = naming.flatbuffer_c_name(p.type)
        by_ptr = p.transfer in ("ref", "ref_mut")
        if is_enum(p.type, self.resolved):
            decl = [f"{jni_type(enum_base(p.type, self.resolved))} {name}"]
            if by_ptr:
                return decl, [f"    {c_type} c_{name} = ({c_type}){name};"], [f"&c_{name}"], []
            return decl, [], [f"({c_type}){name}"], []
        return (
            [f"jobject {name}"],
            [f"    {c_type} c_{name};", f"    jni_read_{c_type}(env, {name}, &c_{name}, &pins);"],
            [f"&c_{name}" if by_ptr else f"c_{name}"],
            [],
        )

    def _jni_function(self, fn: ExportedFunction) -> list[str]:
        method = fn.method
        ret = method.return_type
        record_ret = bool(ret) and is_record(ret, self.resolved)
        if method.is_fallible:
            jni_ret = "jint" if not ret else ("jobject" if record_ret else "jlongArray")
        elif not ret:
            jni_ret = "void"
        elif record_ret:
            jni_ret = "jobject"
        elif TypeMapper.handle_name(ret):
            jni_ret = "jlong"
        else:
            jni_ret = jni_type(self._scalar(ret))

        decls, setup, args, cleanup = ["JNIEnv *env", "jobject thiz"], [], [], []
        for p in method.parameters:
            d, s, a, c = self._jni_param(p)
            decls.extend(d)
            setup.extend(s)
            args.extend(a)
            cleanup.extend(c)
        if any(is_record(p.type, self.resolved) for p in method.parameters):
            setup.insert(0, "    jni_pins pins = { NULL, 0 };")
            cleanup.append("    jni_pins_release(env, &pins);")

        lines = [
            f"JNIEXPORT {jni_ret} JNICALL",
            f"{self.jni_prefix}_{native_method_name(fn.interface.name, method.name)}({', '.join(decls)}) {{",
        ]
        lines.extend(setup)

        c_ret = TypeMapper.to_c_return(ret) if ret else ""
        if method.is_fallible and ret:
            init = "NULL" if TypeMapper.handle_name(ret) else ("{0}" if record_ret else "0")
            lines.append(f"    {c_ret} out_result = {init};")
            args.append("&out_result")
        call = f"{fn.symbol}({', '.join(args)})"

        if method.is_fallible:
            lines.append(f"    int32_t rc = {call};")
            lines.extend(cleanup)
            if not ret:
                lines.append("    return (jint)rc;")
            elif record_ret:
                lines.extend([
                    "    if (rc != 0) {",
                    f'        jni_throw_error(env, "{self.class_path}/{exception_name(method.error)}", rc);',
                    "        return NULL;",
                    "    }",
                    f"    return jni_new_{naming.flatbuffer_c_name(ret)}(env, &out_result);",
                ])
            else:
                lines.extend(self._long_pair(ret))
        elif record_ret:
            lines.append(f"    {c_ret} result = {call};")
            lines.extend(cleanup)
            lines.append(f"    return jni_new_{naming.flatbuffer_c_name(ret)}(env, &result);")
        elif ret:
            lines.append(f"    {c_ret} result = {call};")
            lines.extend(cleanup)
            if TypeMapper.handle_name(ret):
                lines.append("    return (jlong)(intptr_t)result;")
            else:
                lines.append(f"    return ({jni_ret})result;")
        else:
            lines.append(f"    {call};")
            lines.extend(cleanup)
        lines.extend(["}", ""])
        return lines

    def _long_pair(self, ret: str) -> list[str]:
        lines = ["    jlong values[2] = { (jlong)rc, 0 };"]
        if TypeMapper.handle_name(ret):
            lines.append("    values[1] = (jlong)(intptr_t)out_result;")
        elif self._scalar(ret) in ("float32", "float64"):
            lines.append("    memcpy(&values[1], &out_result, sizeof(out_result));")
        else:
            lines.append("    values[1] = (jlong)out_result;")
        lines.extend([
            "    jlongArray arr = (*env)->NewLongArray(env, 2);",
            "    (*env)->SetLongArrayRegion(env, arr, 0, 2, values);",
            "    return arr;",
        ])
        return lines
