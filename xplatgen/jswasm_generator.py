"""JS/WASM Generator - generates an ES module that loads and wraps a WASM build of the C ABI"""

from . import naming
from .common import (
    BaseGenerator, ExportedFunction, destructor_owners, enum_base, exported_functions,
    instance_handle, is_enum, is_record, marshalled_records,
)
from .errors import GeneratorError
from .layout import POINTER_SIZE, StructLayout, wasm_struct_layout, wasm_value_size
from .type_mapper import TypeMapper
from .types import Artifact, Parameter

# primitive -> DataView accessor suffix
DATAVIEW_TYPES = {
    'int8': 'Int8',
    'uint8': 'Uint8',
    'int16': 'Int16',
    'uint16': 'Uint16',
    'int32': 'Int32',
    'uint32': 'Uint32',
    'float32': 'Float32',
    'float64': 'Float64',
    'int64': 'BigInt64',
    'uint64': 'BigUint64',
    'bool': 'Uint8',
}

BIGINT_TYPES = {'int64', 'uint64'}


class JSWasmGenerator(BaseGenerator):
    """Generates <api>.js: loader, WASI shim, platform imports and wrappers.

    Argument order follows the WASM32 C ABI: an infallible record return is
    written through a pointer prepended to the arguments (sret) while a
    fallible return is written through a trailing out-parameter.
    """

    name = "jswasm"

    def __init__(self, ctx):
        super().__init__(ctx)
        self._layouts: dict[str, StructLayout] = {}

    def generate(self) -> list[Artifact]:
        return [Artifact(path=f"{self.api_name}.js", content=self.generate_module())]

    def layout(self, name: str) -> StructLayout:
        if name not in self._layouts:
            try:
                self._layouts[name] = wasm_struct_layout(name, self.resolved)
            except GeneratorError as e:
                raise self.fail(e.message) from e
        return self._layouts[name]

    @property
    def loader_name(self) -> str:
        return f"load{naming.to_pascal_case(self.api_name)}"

    @staticmethod
    def api_object(iface_name: str) -> str:
        return f"_{naming.to_camel_case(iface_name)}Api"

    def generate_module(self) -> str:
        lines = self.banner()
        lines.extend([
            "",
            "const _encoder = new TextEncoder();",
            "const _decoder = new TextDecoder();",
            "",
            "let _wasm = null;",
            "",
        ])
        lines.extend(self._memory_helpers())
        for name in marshalled_records(self.api, self.resolved):
            lines.extend(self._record_reader(name))
            lines.extend(self._record_writer(name))
        lines.extend(self._handle_classes())
        lines.extend(self._wasi_shim())
        lines.extend(self._platform_imports())
        lines.extend(self._loader())
        for iface in self.api.interfaces:
            lines.extend(self._interface_wrapper(iface))
        lines.append("// Exports")
        lines.append(f"export {{ {self.loader_name} }};")
        for handle in self.api.handles:
            lines.append(f"export {{ {handle.name} }};")
        lines.append("")
        return "\n".join(lines)

    # --- static helpers ---

    @staticmethod
    def _memory_helpers() -> list[str]:
        return [
            "// Memory management helpers",
            "function _malloc(size) {",
            "  return _wasm.exports.malloc(size);",
            "}",
            "",
            "function _free(ptr) {",
            "  _wasm.exports.free(ptr);",
            "}",
            "",
            "function _memoryBuffer() {",
            "  return _wasm.exports.memory.buffer;",
            "}",
            "",
            "function _view() {",
            "  return new DataView(_memoryBuffer());",
            "}",
            "",
            "// String marshalling",
            "function _encodeString(str) {",
            "  const bytes = _encoder.encode(str);",
            "  const ptr = _malloc(bytes.length + 1);",
            "  const dest = new Uint8Array(_memoryBuffer(), ptr, bytes.length + 1);",
            "  dest.set(bytes);",
            "  dest[bytes.length] = 0;",
            "  return ptr;",
            "}",
            "",
            "function _decodeString(ptr) {",
            "  if (ptr === 0) return '';",
            "  const mem = new Uint8Array(_memoryBuffer());",
            "  let end = ptr;",
            "  while (mem[end] !== 0) end++;",
            "  return _decoder.decode(mem.subarray(ptr, end));",
            "}",
            "",
            "function _allocString(str, allocs) {",
            "  const ptr = _encodeString(str ?? '');",
            "  allocs.push(ptr);",
            "  return ptr;",
            "}",
            "",
            "// Buffer marshalling",
            "function _copyBufferToWasm(typedArray) {",
            "  const bytes = new Uint8Array(typedArray.buffer, typedArray.byteOffset, typedArray.byteLength);",
            "  const ptr = _malloc(Math.max(bytes.length, 1));",
            "  new Uint8Array(_memoryBuffer(), ptr, bytes.length).set(bytes);",
            "  return [ptr, typedArray.length];",
            "}",
            "",
            "function _copyBufferFromWasm(ptr, typedArray) {",
            "  const bytes = new Uint8Array(typedArray.buffer, typedArray.byteOffset, typedArray.byteLength);",
            "  bytes.set(new Uint8Array(_memoryBuffer(), ptr, bytes.length));",
            "}",
            "",
            "// Vector marshalling",
            "function _readVector(ptr, count, stride, readElem) {",
            "  const out = [];",
            "  for (let i = 0; i < count; i++) {",
            "    out.push(readElem(ptr + i * stride));",
            "  }",
            "  return out;",
            "}",
            "",
            "function _writeVector(items, stride, writeElem, allocs) {",
            "  const list = items || [];",
            "  if (list.length === 0) return 0;",
            "  const ptr = _malloc(list.length * stride);",
            "  allocs.push(ptr);",
            "  list.forEach((item, i) => writeElem(ptr + i * stride, item));",
            "  return ptr;",
            "}",
            "",
        ]

    @staticmethod
    def _wasi_shim() -> list[str]:
        return [
            "// Minimal WASI snapshot_preview1 implementation for command-style and wasip1 binaries",
            "function _buildWasiImports() {",
            "  const ERRNO_SUCCESS = 0;",
            "  const ERRNO_BADF = 8;",
            "  const ERRNO_NOSYS = 52;",
            "  return {",
            "    fd_write(fd, iovsPtr, iovsLen, nwrittenPtr) {",
            "      const mem = _memoryBuffer();",
            "      const view = new DataView(mem);",
            "      let written = 0;",
            "      for (let i = 0; i < iovsLen; i++) {",
            "        const base = iovsPtr + i * 8;",
            "        const ptr = view.getUint32(base, true);",
            "        const len = view.getUint32(base + 4, true);",
            "        if (len > 0 && (fd === 1 || fd === 2)) {",
            "          const text = _decoder.decode(new Uint8Array(mem, ptr, len));",
            "          (fd === 2 ? console.error : console.log)(text.replace(/\\n$/, ''));",
            "        }",
            "        written += len;",
            "      }",
            "      view.setUint32(nwrittenPtr, written, true);",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    fd_read: () => ERRNO_NOSYS,",
            "    fd_seek: () => ERRNO_NOSYS,",
            "    fd_close: () => ERRNO_SUCCESS,",
            "    fd_fdstat_get: () => ERRNO_NOSYS,",
            "    fd_fdstat_set_flags: () => ERRNO_NOSYS,",
            "    // BADF means no preopened directories",
            "    fd_prestat_get: () => ERRNO_BADF,",
            "    fd_prestat_dir_name: () => ERRNO_BADF,",
            "    path_open: () => ERRNO_NOSYS,",
            "    path_filestat_get: () => ERRNO_NOSYS,",
            "    environ_sizes_get(countPtr, bufSizePtr) {",
            "      const view = _view();",
            "      view.setUint32(countPtr, 0, true);",
            "      view.setUint32(bufSizePtr, 0, true);",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    environ_get: () => ERRNO_SUCCESS,",
            "    args_sizes_get(argcPtr, bufSizePtr) {",
            "      const view = _view();",
            "      view.setUint32(argcPtr, 0, true);",
            "      view.setUint32(bufSizePtr, 0, true);",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    args_get: () => ERRNO_SUCCESS,",
            "    // proc_exit never returns: the caller follows it with an unreachable instruction",
            "    proc_exit(code) {",
            "      const e = new Error(`proc_exit(${code})`);",
            "      e.wasiExitCode = code;",
            "      throw e;",
            "    },",
            "    random_get(bufPtr, bufLen) {",
            "      crypto.getRandomValues(new Uint8Array(_memoryBuffer(), bufPtr, bufLen));",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    clock_time_get(_clockId, _precision, timePtr) {",
            "      _view().setBigUint64(timePtr, BigInt(Date.now()) * 1000000n, true);",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    clock_res_get(_clockId, resPtr) {",
            "      _view().setBigUint64(resPtr, 1000000n, true);",
            "      return ERRNO_SUCCESS;",
            "    },",
            "    sched_yield: () => ERRNO_SUCCESS,",
            "    poll_oneoff: () => ERRNO_NOSYS,",
            "    sock_accept: () => ERRNO_NOSYS,",
            "    sock_recv: () => ERRNO_NOSYS,",
            "    sock_send: () => ERRNO_NOSYS,",
            "    sock_shutdown: () => ERRNO_NOSYS,",
            "  };",
            "}",
            "",
        ]

    def _platform_imports(self) -> list[str]:
        n = self.api_name
        return [
            "// Platform service imports",
            "function _buildPlatformImports(services) {",
            "  services = services || {};",
            "  return {",
            "    env: {",
            f"      {n}_log_sink: (level, tagPtr, msgPtr) => {{",
            "        if (services.logSink) {",
            "          services.logSink(level, _decodeString(tagPtr), _decodeString(msgPtr));",
            "        }",
            "      },",
            f"      {n}_resource_count: () => {{",
            "        return services.resourceCount ? services.resourceCount() : 0;",
            "      },",
            f"      {n}_resource_name: (index, bufferPtr, bufferSize) => {{",
            "        if (!services.resourceName) return -1;",
            "        const name = services.resourceName(index);",
            "        if (!name) return -1;",
            "        const bytes = _encoder.encode(name);",
            "        if (bytes.length + 1 > bufferSize) return -1;",
            "        const dest = new Uint8Array(_memoryBuffer(), bufferPtr, bufferSize);",
            "        dest.set(bytes);",
            "        dest[bytes.length] = 0;",
            "        return bytes.length;",
            "      },",
            f"      {n}_resource_exists: (namePtr) => {{",
            "        if (!services.resourceExists) return 0;",
            "        return services.resourceExists(_decodeString(namePtr)) ? 1 : 0;",
            "      },",
            f"      {n}_resource_size: (namePtr) => {{",
            "        if (!services.resourceSize) return 0;",
            "        return services.resourceSize(_decodeString(namePtr));",
            "      },",
            f"      {n}_resource_read: (namePtr, bufferPtr, bufferSize) => {{",
            "        if (!services.resourceRead) return -1;",
            "        const data = services.resourceRead(_decodeString(namePtr));",
            "        if (!data || data.byteLength > bufferSize) return -1;",
            "        const bytes = new Uint8Array(data.buffer || data, data.byteOffset || 0, data.byteLength);",
            "        new Uint8Array(_memoryBuffer(), bufferPtr, bufferSize).set(bytes);",
            "        return bytes.length;",
            "      },",
            "    },",
            "    wasi_snapshot_preview1: _buildWasiImports(),",
            "  };",
            "}",
            "",
        ]

    def _loader(self) -> list[str]:
        lines = [
            "// WASM module loader",
            f"async function {self.loader_name}(wasmSource, platformServices) {{",
            "  const imports = _buildPlatformImports(platformServices);",
            "  if (wasmSource instanceof WebAssembly.Module) {",
            "    _wasm = await WebAssembly.instantiate(wasmSource, imports);",
            "  } else if (wasmSource instanceof Response || typeof wasmSource === 'string') {",
            "    const response = typeof wasmSource === 'string' ? fetch(wasmSource) : wasmSource;",
            "    _wasm = (await WebAssembly.instantiateStreaming(response, imports)).instance;",
            "  } else if (wasmSource instanceof ArrayBuffer || ArrayBuffer.isView(wasmSource)) {",
            "    _wasm = (await WebAssembly.instantiate(wasmSource, imports)).instance;",
            "  } else {",
            "    throw new Error('wasmSource must be a URL string, Response, WebAssembly.Module or ArrayBuffer');",
            "  }",
            "  // Reactor binaries export _initialize; command binaries run _start and exit via proc_exit.",
            "  if (_wasm.exports._initialize) {",
            "    _wasm.exports._initialize();",
            "  } else if (_wasm.exports._start) {",
            "    try {",
            "      _wasm.exports._start();",
            "    } catch (e) {",
            "      if (!e || e.wasiExitCode !== 0) throw e;",
            "    }",
            "  }",
            "  return {",
        ]
        for iface in self.api.interfaces:
            lines.append(f"    {naming.to_camel_case(iface.name)}: {self.api_object(iface.name)},")
        lines.extend(["  };", "}", ""])
        return lines

    # --- handle classes ---

    def _handle_classes(self) -> list[str]:
        if not self.api.handles:
            return []
        owners = destructor_owners(self.api)
        instance_methods: dict[str, list[tuple[str, list[Parameter], str]]] = {}
        for iface in self.api.interfaces:
            for method in iface.methods:
                if handle := instance_handle(method):
                    instance_methods.setdefault(handle, []).append(
                        (naming.to_camel_case(method.name), method.parameters[1:], self.api_object(iface.name)))

        lines = ["// Handle wrapper classes"]
        for handle in self.api.handles:
            lines.extend([
                f"class {handle.name} {{",
                "  #ptr;",
                "",
                "  /** @internal */",
                "  constructor(ptr) {",
                "    this.#ptr = ptr;",
                "  }",
                "",
                "  /** @internal */",
                "  get _ptr() {",
                "    if (this.#ptr === 0) {",
                f"      throw new Error('{handle.name} has been disposed');",
                "    }",
                "    return this.#ptr;",
                "  }",
                "",
                "  dispose() {",
                "    if (this.#ptr !== 0) {",
            ])
            if dtor := owners.get(handle.name):
                lines.append(f"      _wasm.exports.{dtor.symbol}(this.#ptr);")
            lines.extend([
                "      this.#ptr = 0;",
                "    }",
                "  }",
                "",
                "  close() {",
                "    this.dispose();",
                "  }",
                "",
                "  [Symbol.dispose]() {",
                "    this.dispose();",
                "  }",
            ])
            for js_name, params, api_obj in instance_methods.get(handle.name, []):
                args = [naming.to_camel_case(p.name) for p in params]
                lines.extend([
                    "",
                    f"  {js_name}({', '.join(args)}) {{",
                    f"    return {api_obj}.{js_name}({', '.join(['this'] + args)});",
                    "  }",
                ])
            lines.extend(["}", ""])
        return lines

    # --- records ---

    def _stride(self, t: str) -> int:
        if t == "string":
            return POINTER_SIZE
        return wasm_value_size(t, self.resolved)

    def _scalar_of(self, t: str) -> str:
        return enum_base(t, self.resolved) if is_enum(t, self.resolved) else t

    def _load(self, addr: str, t: str) -> str:
        if t == "string":
            return f"_decodeString(_view().getUint32({addr}, true))"
        if is_record(t, self.resolved):
            return f"_read{naming.flat_name(t)}({addr})"
        scalar = self._scalar_of(t)
        expr = f"_view().get{DATAVIEW_TYPES[scalar]}({addr}, true)"
        return f"{expr} !== 0" if scalar == "bool" else expr

    def _store(self, addr: str, value: str, t: str) -> str:
        if t == "string":
            return f"_view().setUint32({addr}, _allocString({value}, allocs), true);"
        if is_record(t, self.resolved):
            return f"_write{naming.flat_name(t)}({addr}, {value}, allocs);"
        scalar = self._scalar_of(t)
        if scalar == "bool":
            value = f"{value} ? 1 : 0"
        elif scalar in BIGINT_TYPES:
            value = f"BigInt({value})"
        return f"_view().set{DATAVIEW_TYPES[scalar]}({addr}, {value}, true);"

    @staticmethod
    def _at(base: str, offset: int) -> str:
        return f"{base} + {offset}" if offset else base

    def _record_reader(self, name: str) -> list[str]:
        layout = self.layout(name)
        lines = [f"function _read{naming.flat_name(name)}(ptr) {{", "  return {"]
        for f in layout.fields:
            js = naming.to_camel_case(f.name)
            if f.kind == "vector":
                count = layout.field(f"{f.name}_count")
                lines.append(
                    f"    {js}: _readVector(_view().getUint32({self._at('ptr', f.offset)}, true), "
                    f"_view().getUint32({self._at('ptr', count.offset)}, true), {self._stride(f.element)}, "
                    f"(p) => {self._load('p', f.element)}),")
            elif f.kind in ("string", "scalar", "enum", "struct"):
                lines.append(f"    {js}: {self._load(self._at('ptr', f.offset), f.type)},")
        lines.extend(["  };", "}", ""])
        return lines

    def _record_writer(self, name: str) -> list[str]:
        layout = self.layout(name)
        lines = [f"function _write{naming.flat_name(name)}(ptr, obj, allocs) {{"]
        for f in layout.fields:
            js = naming.to_camel_case(f.name)
            if f.kind == "vector":
                count = layout.field(f"{f.name}_count")
                stride = self._stride(f.element)
                lines.extend([
                    f"  const {js}Ptr = _writeVector(obj.{js}, {stride}, "
                    f"(p, e) => {self._store('p', 'e', f.element).rstrip(';')}, allocs);",
                    f"  _view().setUint32({self._at('ptr', f.offset)}, {js}Ptr, true);",
                    f"  _view().setUint32({self._at('ptr', count.offset)}, (obj.{js} || []).length, true);",
                ])
            elif f.kind in ("string", "scalar", "enum", "struct"):
                lines.append(f"  {self._store(self._at('ptr', f.offset), f'obj.{js}', f.type)}")
        lines.extend(["}", ""])
        return lines

    # --- interface wrappers ---

    def _interface_wrapper(self, iface) -> list[str]:
        factory = f"_create{naming.to_pascal_case(iface.name)}"
        lines = [f"// {iface.name} interface", f"function {factory}() {{", "  return {"]
        fns = exported_functions(self.api_name, iface)
        for i, fn in enumerate(fns):
            lines.extend(self._wrapper(fn))
            if i < len(fns) - 1:
                lines.append("")
        lines.extend([
            "  };",
            "}",
            "",
            f"const {self.api_object(iface.name)} = {factory}();",
            "",
        ])
        return lines

    def _marshal(self, p: Parameter) -> tuple[list[str], list[str], list[str], list[str], list[str]]:
        """Locals to declare, setup lines, call arguments, epilogue lines and pointers to free"""
        js = naming.to_camel_case(p.name)
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            ptr = f"_{js}Ptr"
            return [ptr], [f"{ptr} = _encodeString({js});"], [ptr], [], [ptr]
        if kind == TypeMapper.KIND_BUFFER:
            ptr, length = f"_{js}Ptr", f"_{js}Len"
            after = [f"_copyBufferFromWasm({ptr}, {js});"] if p.transfer == "ref_mut" else []
            return [ptr, length], [f"[{ptr}, {length}] = _copyBufferToWasm({js});"], [ptr, length], after, [ptr]
        if kind == TypeMapper.KIND_HANDLE:
            return [], [], [f"{js}._ptr"], [], []
        if kind == TypeMapper.KIND_PRIMITIVE:
            if p.type == "bool":
                return [], [], [f"{js} ? 1 : 0"], [], []
            if p.type in BIGINT_TYPES:
                return [], [], [f"BigInt({js})"], [], []
            return [], [], [js], [], []
        if is_enum(p.type, self.resolved) and p.transfer not in ("ref", "ref_mut"):
            return [], [], [js], [], []

        ptr = f"_{js}Ptr"
        size = wasm_value_size(p.type, self.resolved)
        before = [f"{ptr} = _malloc({size});", self._store(ptr, js, p.type)]
        after = []
        if p.transfer == "ref_mut" and is_record(p.type, self.resolved):
            after = [f"Object.assign({js}, {self._load(ptr, p.type)});"]
        return [ptr], before, [ptr], after, [ptr]

    def _wrapper(self, fn: ExportedFunction) -> list[str]:
        method = fn.method
        js_name = naming.to_camel_case(method.name)
        params = [naming.to_camel_case(p.name) for p in method.parameters]
        lines = [f"    {js_name}({', '.join(params)}) {{"]

        if fn.is_destructor:
            lines.extend([f"      {params[0]}.dispose();", "    },"])
            return lines

        ret = method.return_type
        sret = bool(ret) and not method.is_fallible and is_record(ret, self.resolved)
        out = bool(ret) and (method.is_fallible or sret)
        uses_allocs = any(is_record(p.type, self.resolved) for p in method.parameters)

        # pointers start at 0 and are allocated only inside the try block
        locals_, setup, args, epilogue, frees = [], [], [], [], []
        for p in method.parameters:
            names, before, call_args, after, ptrs = self._marshal(p)
            locals_.extend(names)
            setup.extend(before)
            args.extend(call_args)
            epilogue.extend(after)
            frees.extend(ptrs)
        if out:
            locals_.append("_outPtr")
            setup.append(f"_outPtr = _malloc({wasm_value_size(ret, self.resolved)});")
            frees.append("_outPtr")
            if sret:
                args.insert(0, "_outPtr")
            else:
                args.append("_outPtr")

        body = list(setup)
        call = f"_wasm.exports.{fn.symbol}({', '.join(args)})"
        if method.is_fallible:
            body.append(f"const _rc = {call};")
            body.extend(epilogue)
            body.extend([
                "if (_rc !== 0) {",
                f"  throw new Error(`{js_name} failed with error code ${{_rc}}`);",
                "}",
            ])
            if ret:
                body.extend(self._read_out(ret))
        elif sret:
            body.append(f"{call};")
            body.extend(epilogue)
            body.append(f"return {self._load('_outPtr', ret)};")
        elif ret:
            body.append(f"const _result = {call};")
            body.extend(epilogue)
            body.append(f"return {self._direct_return(ret)};")
        else:
            body.append(f"{call};")
            body.extend(epilogue)

        needs_cleanup = bool(frees) or uses_allocs
        if not needs_cleanup:
            lines.extend(f"      {line}" for line in body)
            lines.append("    },")
            return lines

        if uses_allocs:
            lines.append("      const allocs = [];")
        lines.extend(f"      let {name} = 0;" for name in locals_)
        lines.append("      try {")
        lines.extend(f"        {line}" for line in body)
        lines.append("      } finally {")
        for ptr in frees:
            lines.append(f"        if ({ptr}) _free({ptr});")
        if uses_allocs:
            lines.append("        allocs.forEach(_free);")
        lines.extend(["      }", "    },"])
        return lines

    def _read_out(self, t: str) -> list[str]:
        if handle := TypeMapper.handle_name(t):
            return [
                "const _handleVal = _view().getUint32(_outPtr, true);",
                f"return new {handle}(_handleVal);",
            ]
        return [f"return {self._load('_outPtr', t)};"]

    @staticmethod
    def _direct_return(t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return f"new {handle}(_result)"
        if t == "bool":
            return "_result !== 0"
        return "_result"
