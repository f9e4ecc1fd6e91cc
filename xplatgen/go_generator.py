"""Go Implementation Generator - generates the Go interface, cgo shim, types and scaffolds

The Go side is organised around handles: every declared handle gets a
``<Handle>Handle`` interface that embeds one Go interface per API interface
whose methods take that handle as their first parameter. Constructors and
free methods (no leading handle) are package-level functions supplied by the
scaffolded implementation file. Fallible calls return the declared error
enum directly so its value crosses the C boundary unchanged.
"""

from dataclasses import dataclass, field
from typing import Optional

from . import naming
from .c_header_generator import c_type_definitions, handle_typedefs
from .common import (
    BaseGenerator, ExportedFunction, all_exported_functions, exported_functions, field_type,
    instance_handle, is_enum, is_record, marshalled_records, sorted_types,
)
from .type_mapper import TypeMapper
from .types import Artifact, Interface, Method, Parameter, TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE

GO_TYPES = {
    'int8': 'int8',
    'int16': 'int16',
    'int32': 'int32',
    'int64': 'int64',
    'uint8': 'uint8',
    'uint16': 'uint16',
    'uint32': 'uint32',
    'uint64': 'uint64',
    'float32': 'float32',
    'float64': 'float64',
    'bool': 'bool',
}

CGO_TYPES = {
    'int8': 'C.int8_t',
    'int16': 'C.int16_t',
    'int32': 'C.int32_t',
    'int64': 'C.int64_t',
    'uint8': 'C.uint8_t',
    'uint16': 'C.uint16_t',
    'uint32': 'C.uint32_t',
    'uint64': 'C.uint64_t',
    'float32': 'C.float',
    'float64': 'C.double',
    'bool': 'C.bool',
}

GO_KEYWORDS = {
    'break', 'case', 'chan', 'const', 'continue', 'default', 'defer', 'else',
    'fallthrough', 'for', 'func', 'go', 'goto', 'if', 'import', 'interface',
    'map', 'package', 'range', 'return', 'select', 'struct', 'switch', 'type', 'var',
}


def go_ident(name: str) -> str:
    """camelCase local identifier that is never a Go keyword"""
    ident = naming.to_camel_case(name)
    return f"{ident}_" if ident in GO_KEYWORDS else ident


def cgo_field(name: str) -> str:
    """cgo prefixes C members that collide with Go keywords with an underscore"""
    return f"_{name}" if name in GO_KEYWORDS else name


def go_field(name: str) -> str:
    return naming.to_pascal_case(name)


def handle_iface(handle: str) -> str:
    return f"{handle}Handle"


def impl_struct(handle: str) -> str:
    return f"{handle}Impl"


def package_func(iface: Interface, method: Method) -> str:
    return f"{naming.to_pascal_case(iface.name)}{naming.to_pascal_case(method.name)}"


@dataclass
class DispatchGroup:
    """Instance methods of one API interface dispatched on one handle"""
    interface: Interface
    handle: str
    go_name: str
    methods: list[Method] = field(default_factory=list)


class GoModel:
    """Go-side view of the API shared by the cgo and WASM generators"""

    def __init__(self, api, resolved):
        self.api = api
        self.resolved = resolved
        self.groups: list[DispatchGroup] = []
        for iface in api.interfaces:
            by_handle: dict[str, list[Method]] = {}
            for method in iface.methods:
                if handle := instance_handle(method):
                    by_handle.setdefault(handle, []).append(method)
            for handle, methods in by_handle.items():
                go_name = naming.to_pascal_case(iface.name)
                if len(by_handle) > 1:
                    go_name += handle
                self.groups.append(DispatchGroup(iface, handle, go_name, methods))

    def group_for(self, iface: Interface, method: Method) -> Optional[DispatchGroup]:
        handle = instance_handle(method)
        for group in self.groups:
            if group.interface is iface and group.handle == handle:
                return group
        return None

    def groups_for_handle(self, handle: str) -> list[DispatchGroup]:
        return [g for g in self.groups if g.handle == handle]

    def free_methods(self) -> list[tuple[Interface, Method]]:
        return [(iface, m) for iface in self.api.interfaces for m in iface.methods
                if instance_handle(m) is None]

    def records(self) -> list[str]:
        return marshalled_records(self.api, self.resolved)

    # --- Go-side types ---

    def param_type(self, p: Parameter) -> str:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return "string"
        if kind == TypeMapper.KIND_BUFFER:
            return f"[]{GO_TYPES[TypeMapper.buffer_element(p.type)]}"
        if kind == TypeMapper.KIND_HANDLE:
            return handle_iface(TypeMapper.handle_name(p.type))
        if kind == TypeMapper.KIND_PRIMITIVE:
            return GO_TYPES[p.type]
        flat = naming.flat_name(p.type)
        if p.transfer == "ref_mut" and is_record(p.type, self.resolved):
            return f"*{flat}"
        return flat

    def value_type(self, t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return handle_iface(handle)
        if TypeMapper.is_primitive(t):
            return GO_TYPES[t]
        return naming.flat_name(t)

    def zero_value(self, t: str) -> str:
        if TypeMapper.handle_name(t):
            return "nil"
        if t == "bool":
            return "false"
        if TypeMapper.is_primitive(t) or is_enum(t, self.resolved):
            return "0"
        return f"{naming.flat_name(t)}{{}}"

    def result_signature(self, method: Method) -> str:
        ret = method.return_type
        if method.is_fallible:
            err = naming.flat_name(method.error)
            return f" ({self.value_type(ret)}, {err})" if ret else f" {err}"
        return f" {self.value_type(ret)}" if ret else ""

    def signature(self, name: str, params: list[Parameter], method: Method) -> str:
        decls = ", ".join(f"{go_ident(p.name)} {self.param_type(p)}" for p in params)
        return f"{name}({decls}){self.result_signature(method)}"

    def zero_return(self, method: Method) -> str:
        ret = method.return_type
        if method.is_fallible:
            return f"return {self.zero_value(ret)}, 0" if ret else "return 0"
        return f"return {self.zero_value(ret)}" if ret else ""


class GoGenerator(BaseGenerator):
    """Generates the cgo flavour of the Go implementation layer"""

    name = "impl_go"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.model = GoModel(self.api, self.resolved)

    def generate(self) -> list[Artifact]:
        artifacts = [
            Artifact(path=f"{self.api_name}_interface.go", content=self.generate_interface()),
            Artifact(path=f"{self.api_name}_cgo.go", content=self.generate_cgo()),
        ]
        if self.resolved:
            artifacts.append(Artifact(path=f"{self.api_name}_types.go", content=self.generate_types()))
        artifacts.extend([
            Artifact(path=f"{self.api_name}_impl.go", content=self.generate_impl(),
                     scaffold=True, project_file=True),
            Artifact(path="go.mod", content=self.generate_go_mod(),
                     scaffold=True, project_file=True),
            Artifact(path=".gitignore", content=self.generate_gitignore(),
                     scaffold=True, project_file=True),
        ])
        return artifacts

    def go_banner(self) -> list[str]:
        return [
            f"// Code generated by xplatgen from {self.ctx.source_name}. DO NOT EDIT.",
            "",
        ]

    # --- interface ---

    def generate_interface(self) -> str:
        lines = self.go_banner()
        lines.extend(["package main", ""])

        for group in self.model.groups:
            lines.append(f"// {group.go_name} holds the {group.interface.name} methods invoked on a {group.handle}.")
            lines.append(f"type {group.go_name} interface {{")
            for method in group.methods:
                sig = self.model.signature(naming.to_pascal_case(method.name), method.parameters[1:], method)
                lines.append(f"\t{sig}")
            lines.append("}")
            lines.append("")

        for handle in self.api.handles:
            groups = self.model.groups_for_handle(handle.name)
            lines.append(f"// {handle_iface(handle.name)} is the Go object behind a {handle.name} handle.")
            if groups:
                lines.append(f"type {handle_iface(handle.name)} interface {{")
                for group in groups:
                    lines.append(f"\t{group.go_name}")
                lines.append("}")
            else:
                lines.append(f"type {handle_iface(handle.name)} interface{{}}")
            lines.append("")
        return "\n".join(lines)

    # --- types ---

    def generate_types(self) -> str:
        lines = self.go_banner()
        lines.extend(["package main", "", 'import "fmt"', ""])

        for info in sorted_types(self.resolved, TYPE_KIND_ENUM):
            flat = naming.flat_name(info.name)
            base = GO_TYPES.get(info.base_type, "int32")
            lines.append(f"type {flat} {base}")
            lines.append("")
            if info.enum_values:
                lines.append("const (")
                for val in info.enum_values:
                    lines.append(f"\t{flat}{val.name} {flat} = {val.value}")
                lines.append(")")
                lines.append("")
            lines.append(f"func (e {flat}) Error() string {{")
            lines.append(f'\treturn fmt.Sprintf("{flat}(%d)", {base}(e))')
            lines.append("}")
            lines.append("")

        for kind in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE):
            for info in sorted_types(self.resolved, kind):
                lines.append(f"type {naming.flat_name(info.name)} struct {{")
                for f in info.fields:
                    lines.append(f"\t{go_field(f.name)} {self._go_field_type(info, f.type)}")
                lines.append("}")
                lines.append("")
        return "\n".join(lines)

    def _go_field_type(self, info, t: str) -> str:
        if (elem := TypeMapper.vector_element(t)) is not None:
            return f"[]{self._go_field_type(info, elem)}"
        if t == "string":
            return "string"
        if TypeMapper.is_primitive(t):
            return GO_TYPES[t]
        return naming.flat_name(field_type(info, t, self.resolved))

    # --- cgo shim ---

    def generate_cgo(self) -> str:
        lines = self.go_banner()
        lines.extend([
            "package main",
            "",
            "/*",
            "#include <stdint.h>",
            "#include <stdbool.h>",
            "#include <stdlib.h>",
            "",
        ])
        lines.extend(handle_typedefs(self.api))
        if self.api.handles:
            lines.append("")
        lines.extend(c_type_definitions(self.resolved))
        lines.extend([
            "*/",
            'import "C"',
            "",
            "import (",
            '\t"sync"',
            '\t"sync/atomic"',
            '\t"unsafe"',
            ")",
            "",
        ])
        lines.extend(self._cgo_helpers())
        for name in self.model.records():
            lines.extend(self._cgo_record_converters(name))

        for iface in self.api.interfaces:
            lines.append(f"/* {iface.name} */")
            lines.append("")
            for fn in exported_functions(self.api_name, iface):
                lines.extend(self._cgo_export(fn))
                lines.append("")
        return "\n".join(lines)

    def _cgo_helpers(self) -> list[str]:
        return [
            "// Handle table: C handles are integer keys into this map.",
            "var (",
            "\t_handles    sync.Map",
            "\t_nextHandle atomic.Uintptr",
            "\t_retained   sync.Map // handle key -> []unsafe.Pointer owned by the last result",
            ")",
            "",
            "func _allocHandle(obj interface{}) uintptr {",
            "\tkey := _nextHandle.Add(1)",
            "\t_handles.Store(key, obj)",
            "\treturn key",
            "}",
            "",
            "func _lookup(key uintptr) interface{} {",
            "\tobj, _ := _handles.Load(key)",
            "\treturn obj",
            "}",
            "",
            "func _freeHandle(key uintptr) {",
            "\t_handles.Delete(key)",
            "\t_releaseRetained(key)",
            "}",
            "",
            "// _releaseRetained frees C memory handed out by the previous call on a handle.",
            "func _releaseRetained(key uintptr) {",
            "\tif val, ok := _retained.LoadAndDelete(key); ok {",
            "\t\tfor _, p := range val.([]unsafe.Pointer) {",
            "\t\t\tC.free(p)",
            "\t\t}",
            "\t}",
            "}",
            "",
            "func _retain(key uintptr, p unsafe.Pointer) {",
            "\tval, _ := _retained.LoadOrStore(key, []unsafe.Pointer{})",
            "\t_retained.Store(key, append(val.([]unsafe.Pointer), p))",
            "}",
            "",
            "func _cString(key uintptr, s string) *C.char {",
            "\tcs := C.CString(s)",
            "\t_retain(key, unsafe.Pointer(cs))",
            "\treturn cs",
            "}",
            "",
            "func _cAlloc(key uintptr, n int, size uintptr) unsafe.Pointer {",
            "\tif n == 0 {",
            "\t\treturn nil",
            "\t}",
            "\tp := C.malloc(C.size_t(uintptr(n) * size))",
            "\t_retain(key, p)",
            "\treturn p",
            "}",
            "",
        ]

    def _c_type(self, t: str) -> str:
        """cgo spelling of a scalar, string or named field/param type"""
        if t == "string":
            return "*C.char"
        if TypeMapper.is_primitive(t):
            return CGO_TYPES[t]
        return f"C.{naming.flatbuffer_c_name(t)}"

    def _to_go(self, expr: str, t: str) -> str:
        if t == "string":
            return f"C.GoString({expr})"
        if TypeMapper.is_primitive(t):
            return f"{GO_TYPES[t]}({expr})"
        if is_enum(t, self.resolved):
            return f"{naming.flat_name(t)}({expr})"
        return f"_go{naming.flat_name(t)}({expr})"

    def _to_c(self, expr: str, t: str) -> str:
        if t == "string":
            return f"_cString(_key, {expr})"
        if TypeMapper.is_primitive(t):
            return f"{CGO_TYPES[t]}({expr})"
        if is_enum(t, self.resolved):
            return f"C.{naming.flatbuffer_c_name(t)}({expr})"
        return f"_c{naming.flat_name(t)}(_key, {expr})"

    def _cgo_record_converters(self, name: str) -> list[str]:
        info = self.record_info(name)
        flat = naming.flat_name(name)
        c_type = f"C.{naming.flatbuffer_c_name(name)}"

        to_go = [f"func _go{flat}(c {c_type}) {flat} {{", f"\tvar v {flat}"]
        to_c = [f"func _c{flat}(_key uintptr, v {flat}) {c_type} {{", f"\tvar c {c_type}"]
        for f in info.fields:
            cf, gf = cgo_field(f.name), go_field(f.name)
            if (elem := TypeMapper.vector_element(f.type)) is not None:
                elem = field_type(info, elem, self.resolved)
                elem_c = self._c_type(elem)
                to_go.extend([
                    f"\tif c.{cf} != nil {{",
                    f"\t\tfor _, e := range unsafe.Slice(c.{cf}, int(c.{f.name}_count)) {{",
                    f"\t\t\tv.{gf} = append(v.{gf}, {self._to_go('e', elem)})",
                    "\t\t}",
                    "\t}",
                ])
                to_c.extend([
                    f"\tif n := len(v.{gf}); n > 0 {{",
                    f"\t\tp := (*{elem_c})(_cAlloc(_key, n, unsafe.Sizeof(*new({elem_c}))))",
                    "\t\tdst := unsafe.Slice(p, n)",
                    f"\t\tfor i, e := range v.{gf} {{",
                    f"\t\t\tdst[i] = {self._to_c('e', elem)}",
                    "\t\t}",
                    f"\t\tc.{cf} = p",
                    f"\t\tc.{f.name}_count = C.uint32_t(n)",
                    "\t}",
                ])
                continue
            ftype = field_type(info, f.type, self.resolved)
            to_go.append(f"\tv.{gf} = {self._to_go(f'c.{cf}', ftype)}")
            to_c.append(f"\tc.{cf} = {self._to_c(f'v.{gf}', ftype)}")
        to_go.extend(["\treturn v", "}", ""])
        to_c.extend(["\treturn c", "}", ""])
        return to_go + to_c

    def _cgo_params(self, method: Method) -> list[str]:
        decls = []
        for p in method.parameters:
            name = go_ident(p.name)
            kind = TypeMapper.classify(p.type)
            if kind == TypeMapper.KIND_STRING:
                decls.append(f"{name} *C.char")
            elif kind == TypeMapper.KIND_BUFFER:
                decls.append(f"{name} *{CGO_TYPES[TypeMapper.buffer_element(p.type)]}")
                decls.append(f"{name}_len C.uint32_t")
            elif kind == TypeMapper.KIND_HANDLE:
                decls.append(f"{name} C.{naming.handle_typedef(TypeMapper.handle_name(p.type))}")
            elif kind == TypeMapper.KIND_PRIMITIVE:
                decls.append(f"{name} {CGO_TYPES[p.type]}")
            elif p.transfer in ("ref", "ref_mut"):
                decls.append(f"{name} *{self._c_type(p.type)}")
            else:
                decls.append(f"{name} {self._c_type(p.type)}")
        return decls

    def _c_result_type(self, t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return f"C.{naming.handle_typedef(handle)}"
        return self._c_type(t)

    def _cgo_arg(self, p: Parameter) -> tuple[list[str], str, list[str]]:
        """Conversion lines, call argument and write-back lines for one parameter"""
        name = go_ident(p.name)
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_BUFFER:
            elem = GO_TYPES[TypeMapper.buffer_element(p.type)]
            return [], f"unsafe.Slice((*{elem})(unsafe.Pointer({name})), int({name}_len))", []
        if kind == TypeMapper.KIND_HANDLE:
            iface = handle_iface(TypeMapper.handle_name(p.type))
            return [f"\t{name}Obj, _ := _lookup(uintptr(unsafe.Pointer({name}))).({iface})"], f"{name}Obj", []
        if kind in (TypeMapper.KIND_STRING, TypeMapper.KIND_PRIMITIVE):
            return [], self._to_go(name, p.type), []
        by_ptr = p.transfer in ("ref", "ref_mut")
        source = f"*{name}" if by_ptr else name
        if is_enum(p.type, self.resolved):
            return [], self._to_go(source, p.type), []
        conv = [f"\t{name}Val := {self._to_go(source, p.type)}"]
        if p.transfer == "ref_mut":
            return conv, f"&{name}Val", [f"\t*{name} = {self._to_c(f'{name}Val', p.type)}"]
        return conv, f"{name}Val", []

    def _cgo_export(self, fn: ExportedFunction) -> list[str]:
        method = fn.method
        params = self._cgo_params(method)
        ret = method.return_type
        if method.is_fallible:
            if ret:
                params.append(f"out_result *{self._c_result_type(ret)}")
            suffix = " C.int32_t"
        elif ret:
            suffix = f" {self._c_result_type(ret)}"
        else:
            suffix = ""

        lines = [
            f"//export {fn.symbol}",
            f"func {fn.symbol}({', '.join(params)}){suffix} {{",
        ]

        if fn.is_destructor:
            lines.append(f"\t_freeHandle(uintptr(unsafe.Pointer({go_ident(method.parameters[0].name)})))")
            lines.append("}")
            return lines

        handle = instance_handle(method) if fn.role == "method" else None
        call_params = method.parameters[1:] if handle else method.parameters
        if handle:
            group = self.model.group_for(fn.interface, method)
            if group is None:
                raise self.fail(f"{fn.symbol} has no {handle} dispatch interface")
            receiver = go_ident(method.parameters[0].name)
            lines.append(f"\t_key := uintptr(unsafe.Pointer({receiver}))")
            lines.append(f"\timpl := _lookup(_key).({group.go_name})")
            target = f"impl.{naming.to_pascal_case(method.name)}"
        else:
            lines.append("\tconst _key = uintptr(0)")
            target = package_func(fn.interface, method)

        args, after = [], []
        for p in call_params:
            conv, arg, back = self._cgo_arg(p)
            lines.extend(conv)
            args.append(arg)
            after.extend(back)
        call = f"{target}({', '.join(args)})"

        if method.is_fallible:
            if ret:
                lines.append(f"\tresult, code := {call}")
            else:
                lines.append(f"\tcode := {call}")
            lines.extend(after)
            lines.extend(["\tif code != 0 {", "\t\treturn C.int32_t(code)", "\t}"])
            if ret:
                lines.extend(self._store_result("*out_result", "result", ret))
            lines.append("\treturn 0")
        elif ret:
            lines.append(f"\tresult := {call}")
            lines.extend(after)
            lines.extend(self._store_result("cResult", "result", ret, declare=True))
            lines.append("\treturn cResult")
        else:
            lines.append(f"\t{call}")
            lines.extend(after)
        lines.append("}")
        return lines

    def _store_result(self, dest: str, src: str, t: str, declare: bool = False) -> list[str]:
        assign = ":=" if declare else "="
        if handle := TypeMapper.handle_name(t):
            typedef = naming.handle_typedef(handle)
            return [f"\t{dest} {assign} C.{typedef}(unsafe.Pointer(_allocHandle({src})))"]
        if is_record(t, self.resolved):
            return ["\t_releaseRetained(_key)", f"\t{dest} {assign} {self._to_c(src, t)}"]
        return [f"\t{dest} {assign} {self._to_c(src, t)}"]

    # --- scaffolds ---

    def generate_impl(self) -> str:
        lines = self.scaffold_banner()
        lines.extend(["", "package main", ""])

        for handle in self.api.handles:
            impl = impl_struct(handle.name)
            lines.append(f"// {impl} backs every {handle.name} handle.")
            lines.append(f"type {impl} struct{{}}")
            lines.append("")
            lines.append(f"var _ {handle_iface(handle.name)} = (*{impl})(nil)")
            lines.append("")
            for group in self.model.groups_for_handle(handle.name):
                for method in group.methods:
                    sig = self.model.signature(naming.to_pascal_case(method.name), method.parameters[1:], method)
                    lines.extend(self._stub(f"func (h *{impl}) {sig}", method))

        for fn in all_exported_functions(self.api):
            if fn.is_constructor:
                handle = TypeMapper.handle_name(fn.method.return_type)
                sig = self.model.signature(package_func(fn.interface, fn.method), fn.method.parameters, fn.method)
                lines.extend([
                    f"func {sig} {{",
                    f"\treturn &{impl_struct(handle)}{{}}, 0",
                    "}",
                    "",
                ])
        for iface, method in self.model.free_methods():
            sig = self.model.signature(package_func(iface, method), method.parameters, method)
            lines.extend(self._stub(f"func {sig}", method))

        lines.extend(["func main() {}", ""])
        return "\n".join(lines)

    def _stub(self, header: str, method: Method) -> list[str]:
        lines = [f"{header} {{", "\t// TODO: implement"]
        if ret := self.model.zero_return(method):
            lines.append(f"\t{ret}")
        lines.extend(["}", ""])
        return lines

    def generate_go_mod(self) -> str:
        lines = self.scaffold_banner()
        lines.extend([
            "",
            f"module {self.api_name.replace('_', '-')}",
            "",
            "go 1.24",
            "",
        ])
        return "\n".join(lines)

    def generate_gitignore(self) -> str:
        """Generated Go sources are copied next to the scaffold by the Makefile"""
        lines = ["# Generated Go sources copied from the output directory by the Makefile"]
        for suffix in ("interface", "cgo", "types", "wasm"):
            lines.append(f"{self.api_name}_{suffix}.go")
        lines.append("")
        return "\n".join(lines)
