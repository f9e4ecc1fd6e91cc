"""Rust Implementation Generator - generates traits, the FFI shim, types and crate scaffolds"""

from pathlib import Path

from . import naming
from .common import BaseGenerator, ExportedFunction, exported_functions, sorted_types
from .type_mapper import TypeMapper
from .types import Artifact, Method, Parameter, TypeInfo, TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE

RUST_TYPES = {
    'int8': 'i8',
    'int16': 'i16',
    'int32': 'i32',
    'int64': 'i64',
    'uint8': 'u8',
    'uint16': 'u16',
    'uint32': 'u32',
    'uint64': 'u64',
    'float32': 'f32',
    'float64': 'f64',
    'bool': 'bool',
}


def rust_primitive(t: str) -> str:
    return RUST_TYPES.get(t, t)


class RustGenerator(BaseGenerator):
    """Generates a Rust crate layout around the C ABI.

    Generated files (trait, ffi, types) land in the output directory and are
    pulled into the crate through ``#[path]`` attributes in the scaffolded
    src/lib.rs.
    """

    name = "impl_rust"

    def generate(self) -> list[Artifact]:
        has_types = bool(self.resolved)
        artifacts = [
            Artifact(path=f"{self.api_name}_trait.rs", content=self.generate_trait(has_types)),
            Artifact(path=f"{self.api_name}_ffi.rs", content=self.generate_ffi(has_types)),
        ]
        if has_types:
            artifacts.append(Artifact(path=f"{self.api_name}_types.rs", content=self.generate_types()))
        artifacts.extend([
            Artifact(path=f"src/{self.api_name}_impl.rs", content=self.generate_impl(has_types),
                     scaffold=True, project_file=True),
            Artifact(path="Cargo.toml", content=self.generate_cargo_toml(),
                     scaffold=True, project_file=True),
            Artifact(path="src/lib.rs", content=self.generate_lib_rs(has_types),
                     scaffold=True, project_file=True),
        ])
        return artifacts

    def _uses(self, has_types: bool, *modules: str) -> list[str]:
        lines = []
        if has_types:
            lines.append(f"use crate::{self.api_name}_types::*;")
        for module in modules:
            lines.append(f"use crate::{self.api_name}_{module}::*;")
        return lines

    # --- trait ---

    def generate_trait(self, has_types: bool) -> str:
        lines = self.banner()
        lines.extend(["", "#![allow(unused_imports)]", "", "use std::ffi::c_void;"])
        lines.extend(self._uses(has_types))
        lines.append("")

        for iface in self.api.interfaces:
            trait = naming.to_pascal_case(iface.name)
            if iface.description:
                lines.append(f"/// {iface.description}")
            lines.append(f"pub trait {trait} {{")
            for fn in exported_functions(self.api_name, iface):
                if fn.method.description:
                    lines.append(f"    /// {fn.method.description}")
                lines.append(f"    {self._trait_signature(fn.method)};")
            lines.append("}")
            lines.append("")
        return "\n".join(lines)

    def _trait_signature(self, method: Method) -> str:
        params = ["&self"] + [f"{p.name}: {self._trait_param_type(p)}" for p in method.parameters]
        return f"fn {method.name}({', '.join(params)}){self._trait_return(method)}"

    def _trait_param_type(self, p: Parameter) -> str:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return "&str"
        if kind == TypeMapper.KIND_BUFFER:
            elem = rust_primitive(TypeMapper.buffer_element(p.type))
            return f"&mut [{elem}]" if p.transfer == "ref_mut" else f"&[{elem}]"
        if kind == TypeMapper.KIND_HANDLE:
            return "*mut c_void"
        if kind == TypeMapper.KIND_PRIMITIVE:
            return rust_primitive(p.type)
        rust_type = naming.flat_name(p.type)
        return f"&mut {rust_type}" if p.transfer == "ref_mut" else f"&{rust_type}"

    def _trait_return(self, method: Method) -> str:
        ret = method.return_type
        if method.is_fallible:
            inner = self._value_type(ret) if ret else "()"
            return f" -> Result<{inner}, {naming.flat_name(method.error)}>"
        if ret:
            return f" -> {self._value_type(ret)}"
        return ""

    @staticmethod
    def _value_type(t: str) -> str:
        if TypeMapper.handle_name(t):
            return "*mut c_void"
        if TypeMapper.is_primitive(t):
            return rust_primitive(t)
        return naming.flat_name(t)

    # --- ffi ---

    def generate_ffi(self, has_types: bool) -> str:
        lines = self.banner()
        lines.extend([
            "",
            "#![allow(unused_imports)]",
            "",
            "use std::ffi::{c_void, CStr};",
            "use std::os::raw::c_char;",
        ])
        lines.extend(self._uses(has_types, "trait", "impl"))
        lines.append("")

        for iface in self.api.interfaces:
            lines.append(f"// {iface.name}")
            for fn in exported_functions(self.api_name, iface):
                lines.extend(self._ffi_function(fn))
                lines.append("")
        return "\n".join(lines)

    def _ffi_function(self, fn: ExportedFunction) -> list[str]:
        method = fn.method
        params = [decl for p in method.parameters for decl in self._ffi_params(p)]
        ret = method.return_type
        if method.is_fallible:
            if ret:
                params.append(f"out_result: *mut {self._value_type(ret)}")
            suffix = " -> i32"
        elif ret:
            suffix = f" -> {self._value_type(ret)}"
        else:
            suffix = ""

        lines = [
            "#[no_mangle]",
            f'pub unsafe extern "C" fn {fn.symbol}({", ".join(params)}){suffix} {{',
        ]
        for p in method.parameters:
            lines.extend(self._param_conversion(p, method))

        trait = naming.to_pascal_case(fn.interface.name)
        args = ", ".join(["&Impl"] + [p.name for p in method.parameters])
        call = f"{trait}::{method.name}({args})"

        if method.is_fallible and ret:
            lines.extend([
                f"    match {call} {{",
                "        Ok(val) => {",
                "            *out_result = val;",
                "            0",
                "        }",
                "        Err(e) => e as i32,",
                "    }",
            ])
        elif method.is_fallible:
            lines.extend([
                f"    match {call} {{",
                "        Ok(()) => 0,",
                "        Err(e) => e as i32,",
                "    }",
            ])
        elif ret:
            lines.append(f"    {call}")
        else:
            lines.append(f"    {call};")
        lines.append("}")
        return lines

    def _ffi_params(self, p: Parameter) -> list[str]:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return [f"{p.name}: *const c_char"]
        if kind == TypeMapper.KIND_BUFFER:
            elem = rust_primitive(TypeMapper.buffer_element(p.type))
            ptr = f"*mut {elem}" if p.transfer == "ref_mut" else f"*const {elem}"
            return [f"{p.name}: {ptr}", f"{p.name}_len: u32"]
        if kind == TypeMapper.KIND_HANDLE:
            return [f"{p.name}: *mut c_void"]
        if kind == TypeMapper.KIND_PRIMITIVE:
            return [f"{p.name}: {rust_primitive(p.type)}"]
        rust_type = naming.flat_name(p.type)
        if p.transfer == "ref_mut":
            return [f"{p.name}: *mut {rust_type}"]
        if p.transfer == "ref":
            return [f"{p.name}: *const {rust_type}"]
        return [f"{p.name}: {rust_type}"]

    def _param_conversion(self, p: Parameter, method: Method) -> list[str]:
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            if method.is_fallible:
                return [
                    f"    let {p.name} = match CStr::from_ptr({p.name}).to_str() {{",
                    "        Ok(s) => s,",
                    f"        Err(_) => return {self._invalid_argument_code(method.error)},",
                    "    };",
                ]
            # infallible: invalid UTF-8 is replaced
            return [
                f"    let {p.name} = CStr::from_ptr({p.name}).to_string_lossy();",
                f"    let {p.name}: &str = &{p.name};",
            ]
        if kind == TypeMapper.KIND_BUFFER:
            elem = rust_primitive(TypeMapper.buffer_element(p.type))
            if p.transfer == "ref_mut":
                return [
                    f"    let {p.name}: &mut [{elem}] = if {p.name}.is_null() {{",
                    "        &mut []",
                    "    } else {",
                    f"        std::slice::from_raw_parts_mut({p.name}, {p.name}_len as usize)",
                    "    };",
                ]
            return [
                f"    let {p.name}: &[{elem}] = if {p.name}.is_null() {{",
                "        &[]",
                "    } else {",
                f"        std::slice::from_raw_parts({p.name}, {p.name}_len as usize)",
                "    };",
            ]
        if kind == TypeMapper.KIND_FLATBUFFER:
            if p.transfer == "ref_mut":
                return [f"    let {p.name} = &mut *{p.name};"]
            if p.transfer == "ref":
                return [f"    let {p.name} = &*{p.name};"]
            return [f"    let {p.name} = &{p.name};"]
        return []

    def _invalid_argument_code(self, error: str) -> int:
        """InvalidArgument from the error enum when it defines one, else -1"""
        info = self.resolved.get(error)
        for val in info.enum_values if info else []:
            if val.name.replace("_", "").lower() == "invalidargument":
                return val.value
        return -1

    # --- types ---

    def generate_types(self) -> str:
        lines = self.banner()
        lines.extend(["", "#![allow(dead_code)]", "", "use std::os::raw::c_char;", ""])

        for info in sorted_types(self.resolved, TYPE_KIND_ENUM):
            lines.append(f"#[repr({rust_primitive(info.base_type or 'int32')})]")
            lines.append("#[derive(Debug, Clone, Copy, PartialEq, Eq)]")
            lines.append(f"pub enum {naming.flat_name(info.name)} {{")
            for val in info.enum_values:
                lines.append(f"    {val.name} = {val.value},")
            lines.append("}")
            lines.append("")

        for kind, derive in ((TYPE_KIND_STRUCT, "Debug, Clone, Copy"), (TYPE_KIND_TABLE, "Debug")):
            for info in sorted_types(self.resolved, kind):
                lines.append("#[repr(C)]")
                lines.append(f"#[derive({derive})]")
                lines.append(f"pub struct {naming.flat_name(info.name)} {{")
                lines.extend(self._struct_fields(info))
                lines.append("}")
                lines.append("")
        return "\n".join(lines)

    def _struct_fields(self, info: TypeInfo) -> list[str]:
        lines = []
        for f in info.fields:
            if (elem := TypeMapper.vector_element(f.type)) is not None:
                lines.append(f"    pub {f.name}: *const {self._field_type(info, elem)},")
                lines.append(f"    pub {f.name}_count: u32,")
            else:
                lines.append(f"    pub {f.name}: {self._field_type(info, f.type)},")
        return lines

    def _field_type(self, info: TypeInfo, t: str) -> str:
        if t == "string":
            return "*const c_char"
        if TypeMapper.is_primitive(t):
            return rust_primitive(t)
        return naming.flat_name(TypeMapper.qualify(t, info.namespace, self.resolved))

    # --- scaffolds ---

    def generate_impl(self, has_types: bool) -> str:
        lines = self.scaffold_banner()
        lines.extend(["", "use std::ffi::c_void;"])
        lines.extend(self._uses(has_types, "trait"))
        lines.extend(["", "/// Main implementation type.", "pub struct Impl;", ""])

        for iface in self.api.interfaces:
            lines.append(f"impl {naming.to_pascal_case(iface.name)} for Impl {{")
            fns = exported_functions(self.api_name, iface)
            for i, fn in enumerate(fns):
                lines.append(f"    {self._trait_signature(fn.method)} {{")
                lines.append(f'        todo!("{fn.method.name}")')
                lines.append("    }")
                if i < len(fns) - 1:
                    lines.append("")
            lines.append("}")
            lines.append("")
        return "\n".join(lines)

    def generate_cargo_toml(self) -> str:
        lines = self.scaffold_banner("#")
        lines.extend([
            "",
            "[package]",
            f'name = "{self.api_name}"',
            f'version = "{self.api.api.version}"',
            'edition = "2021"',
            "",
            "[lib]",
            'crate-type = ["cdylib", "staticlib", "rlib"]',
            "",
        ])
        return "\n".join(lines)

    def generate_lib_rs(self, has_types: bool) -> str:
        generated = Path(self.ctx.output_dir).name or "generated"
        modules = (["types"] if has_types else []) + ["trait", "ffi"]
        lines = self.scaffold_banner()
        lines.append("")
        for module in modules:
            lines.append(f'#[path = "../{generated}/{self.api_name}_{module}.rs"]')
            lines.append(f"pub mod {self.api_name}_{module};")
        lines.append(f"pub mod {self.api_name}_impl;")
        lines.append("")
        return "\n".join(lines)
