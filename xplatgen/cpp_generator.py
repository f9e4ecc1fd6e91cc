"""C++ Implementation Generator - generates an abstract interface, the C ABI shim and stub scaffolds"""

from pathlib import Path

from . import naming
from .common import (
    BaseGenerator, ExportedFunction, all_exported_functions, c_signature, instance_handle,
)
from .type_mapper import TypeMapper
from .types import Artifact, Method, Parameter


class CppGenerator(BaseGenerator):
    """Generates the C++ implementation layer.

    The abstract class declares one pure virtual per method; constructors
    and destructors live only in the shim. The leading handle of an
    instance method is the dispatch target and is not repeated in the
    virtual's parameter list.
    """

    name = "impl_cpp"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.iface_class = f"{naming.to_pascal_case(self.api_name)}Interface"
        self.impl_class = f"{naming.to_pascal_case(self.api_name)}Impl"
        self.factory = f"create_{self.api_name}_instance"

    def generate(self) -> list[Artifact]:
        return [
            Artifact(path=f"{self.api_name}_interface.h", content=self.generate_interface()),
            Artifact(path=f"{self.api_name}_shim.cpp", content=self.generate_shim()),
            Artifact(path=f"{self.api_name}_impl.h", content=self.generate_impl_header(),
                     scaffold=True, project_file=True),
            Artifact(path=f"{self.api_name}_impl.cpp", content=self.generate_impl_source(),
                     scaffold=True, project_file=True),
            Artifact(path="CMakeLists.txt", content=self.generate_cmake(),
                     scaffold=True, project_file=True),
        ]

    def _virtuals(self) -> list[ExportedFunction]:
        """Exports that get a pure virtual; parameterized constructors become init hooks"""
        result = []
        for fn in all_exported_functions(self.api):
            if fn.is_destructor:
                continue
            if fn.is_constructor and not fn.method.parameters:
                continue
            result.append(fn)
        return result

    def _virtual_signature(self, fn: ExportedFunction) -> tuple[str, list[str]]:
        method = fn.method
        decls = [decl for p in self._forwarded_params(method) for decl in self._cpp_param(p)]
        if method.is_fallible:
            if (ret := method.return_type) and not fn.is_constructor:
                decls.append(f"{self._cpp_return(ret)}* out_result")
            return "int32_t", decls
        if ret := method.return_type:
            return self._cpp_return(ret), decls
        return "void", decls

    def _forwarded_params(self, method: Method) -> list[Parameter]:
        if instance_handle(method):
            return method.parameters[1:]
        return list(method.parameters)

    def generate_interface(self) -> str:
        guard = f"{self.api_name.upper()}_INTERFACE_H"
        lines = self.banner()
        lines.extend([
            "",
            f"#ifndef {guard}",
            f"#define {guard}",
            "",
            "#include <cstddef>",
            "#include <cstdint>",
            "#include <span>",
            "#include <string_view>",
            "",
            f'#include "{self.api_name}.h"',
            "",
            f"class {self.iface_class} {{",
            "public:",
            f"    virtual ~{self.iface_class}() = default;",
        ])

        current = None
        for fn in self._virtuals():
            if fn.interface.name != current:
                lines.append("")
                lines.append(f"    /* {fn.interface.name} */")
                current = fn.interface.name
            ret, params = self._virtual_signature(fn)
            lines.append(f"    virtual {ret} {fn.method.name}({', '.join(params)}) = 0;")

        lines.extend([
            "};",
            "",
            "// Implement this to return your concrete instance",
            f"{self.iface_class}* {self.factory}();",
            "",
            f"#endif /* {guard} */",
            "",
        ])
        return "\n".join(lines)

    def generate_shim(self) -> str:
        lines = self.banner()
        lines.extend([
            "",
            f'#include "{self.api_name}.h"',
            f'#include "{self.api_name}_interface.h"',
            "",
            "namespace {",
            "",
            f"{self.iface_class}* shared_instance() {{",
            f"    static {self.iface_class}* instance = {self.factory}();",
            "    return instance;",
            "}",
            "",
            "} // namespace",
            "",
            'extern "C" {',
            "",
        ])

        current = None
        for fn in all_exported_functions(self.api):
            if fn.interface.name != current:
                lines.append(f"/* {fn.interface.name} */")
                current = fn.interface.name
            lines.extend(self._shim_function(fn))
            lines.append("")

        lines.append('} // extern "C"')
        lines.append("")
        return "\n".join(lines)

    def _shim_function(self, fn: ExportedFunction) -> list[str]:
        ret, params = c_signature(fn.symbol, fn.method)
        export = naming.export_macro(self.api_name)
        lines = [f"{export} {ret} {fn.symbol}({', '.join(params) or 'void'}) {{"]

        if fn.is_constructor:
            handle = naming.handle_typedef(TypeMapper.handle_name(fn.method.return_type))
            lines.extend([
                f"    {self.iface_class}* instance = {self.factory}();",
                "    if (!instance) {",
                "        return -1;",
                "    }",
            ])
            if fn.method.parameters:
                args = ", ".join(self._call_args(fn.method.parameters))
                lines.extend([
                    f"    int32_t rc = instance->{fn.method.name}({args});",
                    "    if (rc != 0) {",
                    "        delete instance;",
                    "        return rc;",
                    "    }",
                ])
            lines.append(f"    *out_result = reinterpret_cast<{handle}>(instance);")
            lines.append("    return 0;")
        elif fn.is_destructor:
            param = fn.method.parameters[0].name
            lines.append(f"    delete reinterpret_cast<{self.iface_class}*>({param});")
        else:
            lines.extend(self._shim_delegation(fn.method))

        lines.append("}")
        return lines

    def _shim_delegation(self, method: Method) -> list[str]:
        if instance_handle(method):
            target = method.parameters[0].name
            lines = [f"    {self.iface_class}* self = reinterpret_cast<{self.iface_class}*>({target});"]
        else:
            lines = [f"    {self.iface_class}* self = shared_instance();"]

        args = self._call_args(self._forwarded_params(method))
        ret = method.return_type
        if method.is_fallible and ret:
            if TypeMapper.handle_name(ret):
                args.append("reinterpret_cast<void**>(out_result)")
            else:
                args.append("out_result")
        call = f"self->{method.name}({', '.join(args)})"

        if method.is_fallible:
            lines.append(f"    return {call};")
        elif ret and (handle := TypeMapper.handle_name(ret)):
            lines.append(f"    return reinterpret_cast<{naming.handle_typedef(handle)}>({call});")
        elif ret:
            lines.append(f"    return {call};")
        else:
            lines.append(f"    {call};")
        return lines

    def _call_args(self, params: list[Parameter]) -> list[str]:
        args = []
        for p in params:
            kind = TypeMapper.classify(p.type)
            if kind == TypeMapper.KIND_STRING:
                args.append(f"std::string_view({p.name})")
            elif kind == TypeMapper.KIND_BUFFER:
                args.append(f"std::span({p.name}, {p.name}_len)")
            elif kind == TypeMapper.KIND_HANDLE:
                args.append(f"static_cast<void*>({p.name})")
            elif kind == TypeMapper.KIND_FLATBUFFER and p.transfer not in ("ref", "ref_mut"):
                args.append(f"&{p.name}")
            else:
                args.append(p.name)
        return args

    def _cpp_param(self, p: Parameter) -> list[str]:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return [f"std::string_view {p.name}"]
        if kind == TypeMapper.KIND_BUFFER:
            c_type = TypeMapper.to_c_primitive(TypeMapper.buffer_element(p.type))
            if p.transfer == "ref_mut":
                return [f"std::span<{c_type}> {p.name}"]
            return [f"std::span<const {c_type}> {p.name}"]
        if kind == TypeMapper.KIND_HANDLE:
            return [f"void* {p.name}"]
        if kind == TypeMapper.KIND_PRIMITIVE:
            return [f"{TypeMapper.to_c_primitive(p.type)} {p.name}"]
        c_type = naming.flatbuffer_c_name(p.type)
        if p.transfer == "ref_mut":
            return [f"{c_type}* {p.name}"]
        return [f"const {c_type}* {p.name}"]

    @staticmethod
    def _cpp_return(t: str) -> str:
        if TypeMapper.handle_name(t):
            return "void*"
        if TypeMapper.is_primitive(t):
            return TypeMapper.to_c_primitive(t)
        return naming.flatbuffer_c_name(t)

    def generate_impl_header(self) -> str:
        guard = f"{self.api_name.upper()}_IMPL_H"
        lines = self.scaffold_banner()
        lines.extend([
            "",
            f"#ifndef {guard}",
            f"#define {guard}",
            "",
            f'#include "{self.api_name}_interface.h"',
            "",
            f"class {self.impl_class} : public {self.iface_class} {{",
            "public:",
            f"    {self.impl_class}();",
            f"    ~{self.impl_class}() override;",
        ])
        current = None
        for fn in self._virtuals():
            if fn.interface.name != current:
                lines.append("")
                lines.append(f"    /* {fn.interface.name} */")
                current = fn.interface.name
            ret, params = self._virtual_signature(fn)
            lines.append(f"    {ret} {fn.method.name}({', '.join(params)}) override;")
        lines.extend([
            "};",
            "",
            f"#endif /* {guard} */",
            "",
        ])
        return "\n".join(lines)

    def generate_impl_source(self) -> str:
        lines = self.scaffold_banner()
        lines.extend([
            "",
            f'#include "{self.api_name}_impl.h"',
            "",
            f"{self.impl_class}::{self.impl_class}() {{",
            "}",
            "",
            f"{self.impl_class}::~{self.impl_class}() {{",
            "}",
            "",
        ])
        for fn in self._virtuals():
            ret, params = self._virtual_signature(fn)
            lines.append(f"{ret} {self.impl_class}::{fn.method.name}({', '.join(params)}) {{")
            lines.append("    // TODO: implement")
            if ret == "int32_t" and fn.method.is_fallible:
                lines.append("    return 0;")
            elif ret != "void":
                lines.append("    return {};")
            lines.append("}")
            lines.append("")

        lines.extend([
            f"{self.iface_class}* {self.factory}() {{",
            f"    return new {self.impl_class}();",
            "}",
            "",
        ])
        return "\n".join(lines)

    def generate_cmake(self) -> str:
        project = self.api_name.replace("_", "-")
        generated = Path(self.ctx.output_dir).name or "generated"
        lines = self.scaffold_banner("#")
        lines.extend([
            "",
            "cmake_minimum_required(VERSION 3.15)",
            f"project({project} VERSION {self.api.api.version} LANGUAGES C CXX)",
            "",
            "set(CMAKE_CXX_STANDARD 20)",
            "set(CMAKE_CXX_STANDARD_REQUIRED ON)",
            "set(CMAKE_CXX_VISIBILITY_PRESET hidden)",
            "",
            f"set(GENERATED_DIR ${{CMAKE_CURRENT_SOURCE_DIR}}/{generated})",
            "",
            f"add_library({project} SHARED",
            f"    ${{GENERATED_DIR}}/{self.api_name}_shim.cpp",
            f"    {self.api_name}_impl.cpp",
            "    platform_services/desktop.c",
            ")",
            "",
            f"target_compile_definitions({project} PRIVATE {naming.build_macro(self.api_name)})",
            f"target_include_directories({project} PRIVATE ${{CMAKE_CURRENT_SOURCE_DIR}} ${{GENERATED_DIR}})",
            "",
        ])
        return "\n".join(lines)
