"""Go WASM Generator - generates //go:wasmexport shims for GOOS=wasip1 builds

The WASM file complements the cgo shim: files importing "C" drop out of a
CGO_ENABLED=0 wasip1 build, so the helpers here reuse the same names. Every
value crosses the boundary with a wasm-legal Go type, records travel as
pointers into linear memory decoded with the shared WASM32 layout, and
infallible record returns use a leading ``sret`` pointer.
"""

from . import naming
from .common import BaseGenerator, ExportedFunction, enum_base, exported_functions, instance_handle, is_enum, is_record
from .go_generator import GO_TYPES, GoModel, go_field, go_ident, handle_iface, package_func
from .errors import GeneratorError
from .layout import POINTER_SIZE, StructLayout, wasm_struct_layout, wasm_value_size
from .type_mapper import TypeMapper
from .types import Artifact, Parameter

# Go types accepted in //go:wasmexport signatures
WASM_TYPES = {
    'int8': 'int32',
    'int16': 'int32',
    'int32': 'int32',
    'int64': 'int64',
    'uint8': 'uint32',
    'uint16': 'uint32',
    'uint32': 'uint32',
    'uint64': 'uint64',
    'float32': 'float32',
    'float64': 'float64',
    'bool': 'int32',
}


def wasm_scalar(t: str) -> str:
    return WASM_TYPES[t]


class GoWasmGenerator(BaseGenerator):
    """Generates <api>_wasm.go for the Go implementation on wasip1"""

    name = "impl_go_wasm"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.model = GoModel(self.api, self.resolved)
        self._layouts: dict[str, StructLayout] = {}

    def generate(self) -> list[Artifact]:
        return [Artifact(path=f"{self.api_name}_wasm.go", content=self.generate_wasm())]

    def layout(self, name: str) -> StructLayout:
        if name not in self._layouts:
            try:
                self._layouts[name] = wasm_struct_layout(name, self.resolved)
            except GeneratorError as e:
                raise self.fail(e.message) from e
        return self._layouts[name]

    def generate_wasm(self) -> str:
        lines = [
            "//go:build wasip1",
            "",
            f"// Code generated by xplatgen from {self.ctx.source_name}. DO NOT EDIT.",
            "",
            "package main",
            "",
            "import (",
            '\t"sync"',
            '\t"sync/atomic"',
            '\t"unsafe"',
            ")",
            "",
        ]
        lines.extend(self._allocator())
        lines.extend(self._handle_table())
        lines.extend(self._memory_helpers())
        lines.extend(self._platform_imports())
        for name in self.model.records():
            lines.extend(self._record_reader(name))
            lines.extend(self._record_writer(name))

        for iface in self.api.interfaces:
            lines.append(f"/* {iface.name} */")
            lines.append("")
            for fn in exported_functions(self.api_name, iface):
                lines.extend(self._export(fn))
                lines.append("")
        return "\n".join(lines)

    # --- runtime helpers ---

    @staticmethod
    def _allocator() -> list[str]:
        return [
            "// Linear memory allocations handed to the host; the map pins the backing slices.",
            "var _wasmAllocs sync.Map",
            "",
            "//go:wasmexport malloc",
            "func _wasmMalloc(size uint32) uintptr {",
            "\tif size == 0 {",
            "\t\tsize = 1",
            "\t}",
            "\tbuf := make([]byte, size)",
            "\tptr := uintptr(unsafe.Pointer(&buf[0]))",
            "\t_wasmAllocs.Store(ptr, buf)",
            "\treturn ptr",
            "}",
            "",
            "//go:wasmexport free",
            "func _wasmFree(ptr uintptr) {",
            "\t_wasmAllocs.Delete(ptr)",
            "}",
            "",
        ]

    @staticmethod
    def _handle_table() -> list[str]:
        return [
            "// Handle table: WASM handles are integer keys into this map.",
            "var (",
            "\t_handles    sync.Map",
            "\t_nextHandle atomic.Uintptr",
            "\t_retained   sync.Map // handle key -> []uintptr owned by the last result",
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
            "// _releaseRetained frees linear memory handed out by the previous call on a handle.",
            "func _releaseRetained(key uintptr) {",
            "\tif val, ok := _retained.LoadAndDelete(key); ok {",
            "\t\tfor _, p := range val.([]uintptr) {",
            "\t\t\t_wasmFree(p)",
            "\t\t}",
            "\t}",
            "}",
            "",
            "func _retainAlloc(key uintptr, size uint32) uintptr {",
            "\tp := _wasmMalloc(size)",
            "\tval, _ := _retained.LoadOrStore(key, []uintptr{})",
            "\t_retained.Store(key, append(val.([]uintptr), p))",
            "\treturn p",
            "}",
            "",
        ]

    @staticmethod
    def _memory_helpers() -> list[str]:
        return [
            "// _cstring reads a null-terminated string from linear memory.",
            "func _cstring(ptr uintptr) string {",
            "\tif ptr == 0 {",
            '\t\treturn ""',
            "\t}",
            "\tvar n int",
            "\tfor *(*byte)(unsafe.Pointer(ptr + uintptr(n))) != 0 {",
            "\t\tn++",
            "\t}",
            "\treturn string(unsafe.Slice((*byte)(unsafe.Pointer(ptr)), n))",
            "}",
            "",
            "// _wasmString copies s into linear memory owned by the handle key.",
            "func _wasmString(key uintptr, s string) uintptr {",
            "\tptr := _retainAlloc(key, uint32(len(s)+1))",
            "\tbuf := unsafe.Slice((*byte)(unsafe.Pointer(ptr)), len(s)+1)",
            "\tcopy(buf, s)",
            "\tbuf[len(s)] = 0",
            "\treturn ptr",
            "}",
            "",
            "func _b2i(b bool) int32 {",
            "\tif b {",
            "\t\treturn 1",
            "\t}",
            "\treturn 0",
            "}",
            "",
        ]

    def _platform_imports(self) -> list[str]:
        api = self.api_name
        decls = [
            ("log_sink", "_platformLogSink(level int32, tag uintptr, message uintptr)"),
            ("resource_count", "_platformResourceCount() uint32"),
            ("resource_name", "_platformResourceName(index uint32, buffer uintptr, bufferSize uint32) int32"),
            ("resource_exists", "_platformResourceExists(name uintptr) int32"),
            ("resource_size", "_platformResourceSize(name uintptr) uint32"),
            ("resource_read", "_platformResourceRead(name uintptr, buffer uintptr, bufferSize uint32) int32"),
        ]
        lines = ["// Platform services supplied by the host as WASM imports."]
        for symbol, signature in decls:
            lines.append(f"//go:wasmimport env {api}_{symbol}")
            lines.append(f"func {signature}")
            lines.append("")
        return lines

    # --- linear memory access ---

    def _stride(self, t: str) -> int:
        if t == "string":
            return POINTER_SIZE
        return wasm_value_size(t, self.resolved)

    def _load(self, addr: str, t: str) -> str:
        """Expression reading a value of type t stored at addr"""
        if t == "string":
            return f"_cstring(uintptr(*(*uint32)(unsafe.Pointer({addr}))))"
        if t == "bool":
            return f"*(*byte)(unsafe.Pointer({addr})) != 0"
        if TypeMapper.is_primitive(t):
            return f"*(*{GO_TYPES[t]})(unsafe.Pointer({addr}))"
        if is_enum(t, self.resolved):
            base = GO_TYPES[enum_base(t, self.resolved)]
            return f"{naming.flat_name(t)}(*(*{base})(unsafe.Pointer({addr})))"
        return f"_read{naming.flat_name(t)}({addr})"

    def _store(self, addr: str, value: str, t: str) -> str:
        """Statement writing value of type t to addr"""
        if t == "string":
            return f"*(*uint32)(unsafe.Pointer({addr})) = uint32(_wasmString(_key, {value}))"
        if t == "bool":
            return f"*(*byte)(unsafe.Pointer({addr})) = byte(_b2i({value}))"
        if TypeMapper.is_primitive(t):
            return f"*(*{GO_TYPES[t]})(unsafe.Pointer({addr})) = {value}"
        if is_enum(t, self.resolved):
            base = GO_TYPES[enum_base(t, self.resolved)]
            return f"*(*{base})(unsafe.Pointer({addr})) = {base}({value})"
        return f"_write{naming.flat_name(t)}(_key, {addr}, {value})"

    @staticmethod
    def _at(base: str, offset: int) -> str:
        return base if offset == 0 else f"{base}+{offset}"

    def _record_reader(self, name: str) -> list[str]:
        layout = self.layout(name)
        flat = naming.flat_name(name)
        lines = [f"func _read{flat}(ptr uintptr) {flat} {{", f"\tvar v {flat}"]
        for f in layout.fields:
            gf = go_field(f.name)
            if f.kind == "vector":
                count = layout.field(f"{f.name}_count")
                stride = self._stride(f.element)
                lines.extend([
                    f"\tif n := int(*(*uint32)(unsafe.Pointer({self._at('ptr', count.offset)}))); n > 0 {{",
                    f"\t\tbase := uintptr(*(*uint32)(unsafe.Pointer({self._at('ptr', f.offset)})))",
                    "\t\tfor i := 0; i < n; i++ {",
                    f"\t\t\tv.{gf} = append(v.{gf}, {self._load(f'base+uintptr(i*{stride})', f.element)})",
                    "\t\t}",
                    "\t}",
                ])
            elif f.kind in ("string", "scalar", "enum", "struct"):
                lines.append(f"\tv.{gf} = {self._load(self._at('ptr', f.offset), f.type)}")
        lines.extend(["\treturn v", "}", ""])
        return lines

    def _record_writer(self, name: str) -> list[str]:
        layout = self.layout(name)
        flat = naming.flat_name(name)
        lines = [f"func _write{flat}(_key uintptr, ptr uintptr, v {flat}) {{"]
        for f in layout.fields:
            gf = go_field(f.name)
            if f.kind == "vector":
                count = layout.field(f"{f.name}_count")
                stride = self._stride(f.element)
                lines.extend([
                    f"\t*(*uint32)(unsafe.Pointer({self._at('ptr', count.offset)})) = uint32(len(v.{gf}))",
                    f"\t*(*uint32)(unsafe.Pointer({self._at('ptr', f.offset)})) = 0",
                    f"\tif n := len(v.{gf}); n > 0 {{",
                    f"\t\tbase := _retainAlloc(_key, uint32(n*{stride}))",
                    f"\t\tfor i, e := range v.{gf} {{",
                    f"\t\t\t{self._store(f'base+uintptr(i*{stride})', 'e', f.element)}",
                    "\t\t}",
                    f"\t\t*(*uint32)(unsafe.Pointer({self._at('ptr', f.offset)})) = uint32(base)",
                    "\t}",
                ])
            elif f.kind in ("string", "scalar", "enum", "struct"):
                lines.append(f"\t{self._store(self._at('ptr', f.offset), f'v.{gf}', f.type)}")
        lines.extend(["}", ""])
        return lines

    # --- exports ---

    def _wasm_params(self, p: Parameter) -> list[str]:
        name = go_ident(p.name)
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return [f"{name} uintptr"]
        if kind == TypeMapper.KIND_BUFFER:
            return [f"{name} uintptr", f"{name}_len uint32"]
        if kind == TypeMapper.KIND_HANDLE:
            return [f"{name} uint32"]
        if kind == TypeMapper.KIND_PRIMITIVE:
            return [f"{name} {wasm_scalar(p.type)}"]
        if is_enum(p.type, self.resolved) and p.transfer not in ("ref", "ref_mut"):
            return [f"{name} {wasm_scalar(enum_base(p.type, self.resolved))}"]
        return [f"{name} uintptr"]

    def _wasm_return(self, t: str) -> str:
        if TypeMapper.handle_name(t):
            return "uint32"
        if TypeMapper.is_primitive(t):
            return wasm_scalar(t)
        if is_enum(t, self.resolved):
            return wasm_scalar(enum_base(t, self.resolved))
        return ""

    def _arg(self, p: Parameter) -> tuple[list[str], str, list[str]]:
        """Conversion lines, call argument and write-back lines for one parameter"""
        name = go_ident(p.name)
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return [], f"_cstring({name})", []
        if kind == TypeMapper.KIND_BUFFER:
            elem = GO_TYPES[TypeMapper.buffer_element(p.type)]
            return [], f"unsafe.Slice((*{elem})(unsafe.Pointer({name})), int({name}_len))", []
        if kind == TypeMapper.KIND_HANDLE:
            iface = handle_iface(TypeMapper.handle_name(p.type))
            return [f"\t{name}Obj, _ := _lookup(uintptr({name})).({iface})"], f"{name}Obj", []
        if kind == TypeMapper.KIND_PRIMITIVE:
            if p.type == "bool":
                return [], f"{name} != 0", []
            return [], f"{GO_TYPES[p.type]}({name})", []
        by_ptr = p.transfer in ("ref", "ref_mut")
        if is_enum(p.type, self.resolved):
            if by_ptr:
                return [], self._load(name, p.type), []
            return [], f"{naming.flat_name(p.type)}({name})", []
        conv = [f"\t{name}Val := _read{naming.flat_name(p.type)}({name})"]
        if p.transfer == "ref_mut":
            return conv, f"&{name}Val", [f"\t{self._store(name, f'{name}Val', p.type)}"]
        return conv, f"{name}Val", []

    def _export(self, fn: ExportedFunction) -> list[str]:
        method = fn.method
        ret = method.return_type
        params = [decl for p in method.parameters for decl in self._wasm_params(p)]
        sret = bool(ret) and not method.is_fallible and is_record(ret, self.resolved)
        if sret:
            params.insert(0, "sret uintptr")
        if method.is_fallible:
            if ret:
                params.append("out_result uintptr")
            suffix = " int32"
        elif ret and not sret:
            suffix = f" {self._wasm_return(ret)}"
        else:
            suffix = ""

        lines = [
            f"//go:wasmexport {fn.symbol}",
            f"func {fn.symbol}({', '.join(params)}){suffix} {{",
        ]

        if fn.is_destructor:
            lines.append(f"\t_freeHandle(uintptr({go_ident(method.parameters[0].name)}))")
            lines.append("}")
            return lines

        handle = instance_handle(method) if not fn.is_constructor else None
        call_params = method.parameters[1:] if handle else method.parameters
        if handle:
            group = self.model.group_for(fn.interface, method)
            if group is None:
                raise self.fail(f"{fn.symbol} has no {handle} dispatch interface")
            lines.append(f"\t_key := uintptr({go_ident(method.parameters[0].name)})")
            lines.append(f"\timpl := _lookup(_key).({group.go_name})")
            target = f"impl.{naming.to_pascal_case(method.name)}"
        else:
            lines.append("\tconst _key = uintptr(0)")
            target = package_func(fn.interface, method)

        args, after = [], []
        for p in call_params:
            conv, arg, back = self._arg(p)
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
            lines.extend(["\tif code != 0 {", "\t\treturn int32(code)", "\t}"])
            if ret:
                lines.extend(self._write_result("out_result", ret))
            lines.append("\treturn 0")
        elif sret:
            lines.append(f"\tresult := {call}")
            lines.extend(after)
            lines.extend(self._write_result("sret", ret))
        elif ret:
            lines.append(f"\tresult := {call}")
            lines.extend(after)
            lines.append(f"\treturn {self._return_value(ret)}")
        else:
            lines.append(f"\t{call}")
            lines.extend(after)
        lines.append("}")
        return lines

    def _write_result(self, dest: str, t: str) -> list[str]:
        if TypeMapper.handle_name(t):
            return [f"\t*(*uint32)(unsafe.Pointer({dest})) = uint32(_allocHandle(result))"]
        if is_record(t, self.resolved):
            return ["\t_releaseRetained(_key)", f"\t{self._store(dest, 'result', t)}"]
        return [f"\t{self._store(dest, 'result', t)}"]

    def _return_value(self, t: str) -> str:
        if TypeMapper.handle_name(t):
            return "uint32(_allocHandle(result))"
        if t == "bool":
            return "_b2i(result)"
        return f"{self._wasm_return(t)}(result)"
