"""Shared generator helpers - banners, C signatures and IR queries used by every emitter"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import naming
from .errors import GeneratorError
from .type_mapper import TypeMapper
from .types import (
    APIDefinition, Artifact, Interface, Method, Parameter, ResolvedTypes, TypeInfo,
    TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE,
)

ROLE_CONSTRUCTOR = "constructor"
ROLE_DESTRUCTOR = "destructor"
ROLE_METHOD = "method"

MAX_DECL_WIDTH = 80


@dataclass
class GenerationContext:
    """Everything a generator reads: the validated IR plus resolved schemas"""
    api: APIDefinition
    resolved: ResolvedTypes = field(default_factory=dict)
    output_dir: str = "generated"
    api_def_path: str = ""

    @property
    def api_name(self) -> str:
        return self.api.api.name

    @property
    def source_name(self) -> str:
        return Path(self.api_def_path).name if self.api_def_path else f"{self.api_name}.yaml"


@dataclass
class ExportedFunction:
    """One C ABI entry point: a constructor, the synthetic destructor or a method"""
    interface: Interface
    method: Method
    role: str
    symbol: str

    @property
    def is_constructor(self) -> bool:
        return self.role == ROLE_CONSTRUCTOR

    @property
    def is_destructor(self) -> bool:
        return self.role == ROLE_DESTRUCTOR


class BaseGenerator:
    """Base class for emitters; subclasses set ``name`` and implement generate()"""

    name = ""

    def __init__(self, ctx: GenerationContext):
        self.ctx = ctx
        self.api = ctx.api
        self.api_name = ctx.api_name
        self.resolved = ctx.resolved

    def generate(self) -> list[Artifact]:
        raise NotImplementedError

    def banner(self, comment: str = "//") -> list[str]:
        return generated_banner(self.ctx, comment)

    def scaffold_banner(self, comment: str = "//") -> list[str]:
        return scaffold_banner(self.ctx, comment)

    def fail(self, message: str) -> GeneratorError:
        return GeneratorError(self.name, message)

    def record_info(self, name: str) -> TypeInfo:
        """Resolved struct or table ``name``; anything else fails this generator"""
        info = self.resolved.get(name)
        if info is None or info.kind not in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE):
            raise self.fail(f"FlatBuffer type {name} is not a resolved struct or table")
        return info


def generated_banner(ctx: GenerationContext, comment: str = "//") -> list[str]:
    return [
        f"{comment} AUTO-GENERATED by xplatgen from {ctx.source_name} - DO NOT EDIT",
        f"{comment} Regenerate with: xplatgen generate {ctx.source_name}",
    ]


def scaffold_banner(ctx: GenerationContext, comment: str = "//") -> list[str]:
    return [
        f"{comment} Generated once by xplatgen from {ctx.source_name} as a starting point.",
        f"{comment} This file is yours to edit; xplatgen never overwrites it.",
    ]


def constructed_handle(iface: Interface) -> Optional[str]:
    """Handle returned by the interface's constructors, or None"""
    for ctor in iface.constructors:
        if handle := TypeMapper.handle_name(ctor.return_type):
            return handle
    return None


def synthetic_destructor(handle: str) -> Method:
    snake = naming.handle_to_snake(handle)
    return Method(
        name=naming.destructor_name(handle),
        parameters=[Parameter(name=snake, type=f"handle:{handle}")],
        description=f"Destroy a {handle} and release its resources",
    )


def exported_functions(api_name: str, iface: Interface) -> list[ExportedFunction]:
    """Constructors, the synthetic destructor, then methods, in C ABI order"""
    result = []
    for ctor in iface.constructors:
        result.append(ExportedFunction(iface, ctor, ROLE_CONSTRUCTOR,
                                       naming.c_abi_name(api_name, iface.name, ctor.name)))
    if handle := constructed_handle(iface):
        dtor = synthetic_destructor(handle)
        result.append(ExportedFunction(iface, dtor, ROLE_DESTRUCTOR,
                                       naming.c_abi_name(api_name, iface.name, dtor.name)))
    for method in iface.methods:
        result.append(ExportedFunction(iface, method, ROLE_METHOD,
                                       naming.c_abi_name(api_name, iface.name, method.name)))
    return result


def all_exported_functions(api: APIDefinition) -> list[ExportedFunction]:
    result = []
    for iface in api.interfaces:
        result.extend(exported_functions(api.api.name, iface))
    return result


def destructor_owners(api: APIDefinition) -> dict[str, ExportedFunction]:
    """Map each constructed handle name to its destructor export"""
    owners = {}
    for fn in all_exported_functions(api):
        if fn.is_destructor:
            owners[TypeMapper.handle_name(fn.method.parameters[0].type)] = fn
    return owners


def instance_handle(method: Method) -> Optional[str]:
    """Handle name of the method's first parameter, if it is a handle"""
    if method.parameters:
        return TypeMapper.handle_name(method.parameters[0].type)
    return None


def c_signature(fn_symbol: str, method: Method) -> tuple[str, list[str]]:
    """Return type and parameter declarations of a C ABI symbol"""
    params = []
    for p in method.parameters:
        params.extend(TypeMapper.param_to_c(p))

    ret = method.return_type
    if method.is_fallible:
        if ret:
            params.append(f"{TypeMapper.to_c_out_param(ret)} out_result")
        return "int32_t", params
    if ret:
        return TypeMapper.to_c_return(ret), params
    return "void", params


def format_c_declaration(ret: str, symbol: str, params: list[str], suffix: str = ";",
                         export: str = "") -> list[str]:
    """Render a C prototype, one parameter per line when wider than 80 columns.

    A non-empty ``export`` macro is placed before the return type and counts
    toward the width.
    """
    head = f"{export} {ret}" if export else ret
    line = f"{head} {symbol}({', '.join(params) or 'void'}){suffix}"
    if len(line) <= MAX_DECL_WIDTH or len(params) < 2:
        return [line]
    lines = [f"{head} {symbol}("]
    for i, p in enumerate(params):
        lines.append(f"    {p}," if i < len(params) - 1 else f"    {p}")
    lines.append(f"){suffix}")
    return lines


def collect_error_types(api: APIDefinition) -> list[str]:
    """Distinct declared error types in first-seen order"""
    seen = []
    for iface in api.interfaces:
        for method in iface.constructors + iface.methods:
            if method.error and method.error not in seen:
                seen.append(method.error)
    return seen


def collect_flatbuffer_returns(api: APIDefinition, resolved: ResolvedTypes) -> list[str]:
    """Struct and table types used as method returns, in first-seen order"""
    seen = []
    for iface in api.interfaces:
        for method in iface.constructors + iface.methods:
            ret = method.return_type
            if ret and is_record(ret, resolved) and ret not in seen:
                seen.append(ret)
    return seen


def collect_flatbuffer_params(api: APIDefinition, resolved: ResolvedTypes) -> list[str]:
    """Struct and table types used as parameters, in first-seen order"""
    seen = []
    for iface in api.interfaces:
        for method in iface.constructors + iface.methods:
            for p in method.parameters:
                if is_record(p.type, resolved) and p.type not in seen:
                    seen.append(p.type)
    return seen


def reachable_records(roots: list[str], resolved: ResolvedTypes) -> list[str]:
    """Roots plus every struct/table nested in them, dependencies first"""
    ordered: list[str] = []

    def visit(name: str, stack: tuple):
        if name in ordered or name in stack:
            return
        info = resolved.get(name)
        if info is None:
            return
        for f in info.fields:
            ftype = TypeMapper.vector_element(f.type) or f.type
            ftype = TypeMapper.qualify(ftype, info.namespace, resolved)
            if is_record(ftype, resolved):
                visit(ftype, stack + (name,))
        ordered.append(name)

    for root in roots:
        visit(root, ())
    return ordered


def marshalled_records(api: APIDefinition, resolved: ResolvedTypes) -> list[str]:
    """Every struct/table that crosses the boundary as a parameter or return"""
    roots = collect_flatbuffer_params(api, resolved) + collect_flatbuffer_returns(api, resolved)
    return reachable_records(list(dict.fromkeys(roots)), resolved)


def type_info(t: str, resolved: ResolvedTypes) -> Optional[TypeInfo]:
    return resolved.get(t) if TypeMapper.is_flatbuffer(t) else None


def is_enum(t: str, resolved: ResolvedTypes) -> bool:
    info = type_info(t, resolved)
    return info is not None and info.kind == TYPE_KIND_ENUM


def is_record(t: str, resolved: ResolvedTypes) -> bool:
    info = type_info(t, resolved)
    return info is not None and info.kind in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE)


def enum_base(t: str, resolved: ResolvedTypes) -> str:
    """Underlying primitive of an enum, int32 when unknown"""
    info = type_info(t, resolved)
    return info.base_type if info is not None and info.base_type else "int32"


def sorted_types(resolved: ResolvedTypes, kind: str) -> list[TypeInfo]:
    return [resolved[name] for name in sorted(resolved) if resolved[name].kind == kind]


def field_type(info: TypeInfo, fbs_type: str, resolved: ResolvedTypes) -> str:
    """Qualified form of a field type referenced from inside ``info``"""
    return TypeMapper.qualify(fbs_type, info.namespace, resolved)
