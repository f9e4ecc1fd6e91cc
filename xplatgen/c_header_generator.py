"""C Header Generator - generates the pure C ABI header every binding links against"""

from . import naming
from .common import (
    BaseGenerator, all_exported_functions, c_signature, exported_functions,
    format_c_declaration, reachable_records, sorted_types,
)
from .type_mapper import TypeMapper
from .types import APIDefinition, Artifact, ResolvedTypes, TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE


def platform_service_prototypes(api_name: str) -> list[str]:
    """The six platform-service declarations shared by every header"""
    return [
        f"void {api_name}_log_sink(int32_t level, const char* tag, const char* message);",
        f"uint32_t {api_name}_resource_count(void);",
        f"int32_t {api_name}_resource_name(uint32_t index, char* buffer, uint32_t buffer_size);",
        f"int32_t {api_name}_resource_exists(const char* name);",
        f"uint32_t {api_name}_resource_size(const char* name);",
        f"int32_t {api_name}_resource_read(const char* name, uint8_t* buffer, uint32_t buffer_size);",
    ]


def handle_typedefs(api: APIDefinition) -> list[str]:
    return [
        f"typedef struct {naming.handle_struct_tag(h.name)}* {naming.handle_typedef(h.name)};"
        for h in api.handles
    ]


def c_type_definitions(resolved: ResolvedTypes) -> list[str]:
    """C typedefs for resolved enums, structs and tables.

    Each kind is sorted by qualified name; records are additionally emitted
    dependencies first so nested members are complete types. Enums are
    typedefs of their declared base type so their size matches the schema.
    """
    lines = []
    for info in sorted_types(resolved, TYPE_KIND_ENUM):
        c_name = naming.flatbuffer_c_name(info.name)
        lines.append(f"typedef {TypeMapper.to_c_primitive(info.base_type or 'int32')} {c_name};")
        if info.enum_values:
            lines.append("enum {")
            for i, val in enumerate(info.enum_values):
                sep = "," if i < len(info.enum_values) - 1 else ""
                lines.append(f"    {c_name}_{val.name} = {val.value}{sep}")
            lines.append("};")
        lines.append("")

    emitted: list[str] = []
    for kind in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE):
        names = [info.name for info in sorted_types(resolved, kind)]
        for name in reachable_records(names, resolved):
            if name in emitted:
                continue
            emitted.append(name)
            info = resolved[name]
            c_name = naming.flatbuffer_c_name(name)
            lines.append(f"typedef struct {c_name} {{")
            for f in info.fields:
                for member in TypeMapper.fbs_field_to_c(f.name, f.type, info.namespace, resolved):
                    lines.append(f"    {member};")
            lines.append(f"}} {c_name};")
            lines.append("")
    return lines


class CHeaderGenerator(BaseGenerator):
    """Generates <api>.h"""

    name = "cheader"

    def generate(self) -> list[Artifact]:
        return [Artifact(path=f"{self.api_name}.h", content=self.generate_header())]

    def generate_header(self) -> str:
        guard = f"{self.api_name.upper()}_H"
        lines = self.banner()
        lines.extend([
            "",
            f"#ifndef {guard}",
            f"#define {guard}",
            "",
            "#include <stdint.h>",
            "#include <stdbool.h>",
            "",
        ])
        lines.extend(self._export_macro())
        lines.extend([
            "#ifdef __cplusplus",
            'extern "C" {',
            "#endif",
            "",
        ])

        if self.api.handles:
            lines.extend(handle_typedefs(self.api))
            lines.append("")

        lines.extend(c_type_definitions(self.resolved))

        lines.append("/* Platform services - implement these per platform */")
        lines.extend(platform_service_prototypes(self.api_name))
        lines.append("")

        export = naming.export_macro(self.api_name)
        for iface in self.api.interfaces:
            lines.append(f"/* {iface.name} */")
            for fn in exported_functions(self.api_name, iface):
                ret, params = c_signature(fn.symbol, fn.method)
                lines.extend(format_c_declaration(ret, fn.symbol, params, export=export))
            lines.append("")

        lines.extend([
            "#ifdef __cplusplus",
            "}",
            "#endif",
            "",
            f"#endif /* {guard} */",
            "",
        ])
        return "\n".join(lines)

    def _export_macro(self) -> list[str]:
        export = naming.export_macro(self.api_name)
        build = naming.build_macro(self.api_name)
        return [
            "/* Symbol visibility */",
            "#if defined(_WIN32) || defined(_WIN64)",
            f"  #ifdef {build}",
            f"    #define {export} __declspec(dllexport)",
            "  #else",
            f"    #define {export} __declspec(dllimport)",
            "  #endif",
            "#elif defined(__GNUC__) || defined(__clang__)",
            f'  #define {export} __attribute__((visibility("default")))',
            "#else",
            f"  #define {export}",
            "#endif",
            "",
        ]


def exported_symbols(api: APIDefinition) -> list[str]:
    """Every C ABI symbol in header order"""
    return [fn.symbol for fn in all_exported_functions(api)]
