"""WebAssembly 32-bit struct layout shared by the JS and Go WASM generators"""

from dataclasses import dataclass, field
from typing import Optional

from .errors import GeneratorError
from .type_mapper import TypeMapper
from .types import ResolvedTypes, TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE

POINTER_SIZE = 4

PRIMITIVE_SIZES = {
    'bool': 1,
    'int8': 1,
    'uint8': 1,
    'int16': 2,
    'uint16': 2,
    'int32': 4,
    'uint32': 4,
    'float32': 4,
    'int64': 8,
    'uint64': 8,
    'float64': 8,
}


@dataclass
class FieldLayout:
    """Placement of one C struct member in linear memory"""
    name: str
    type: str
    offset: int
    size: int
    align: int
    kind: str = "scalar"
    element: str = ""
    nested: Optional["StructLayout"] = None


@dataclass
class StructLayout:
    """Computed WASM32 layout of a FlatBuffers struct or table"""
    name: str
    size: int
    align: int
    fields: list[FieldLayout] = field(default_factory=list)

    def field(self, name: str) -> FieldLayout:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)


def wasm_field_size(field_type: str) -> tuple[int, int]:
    """Size and alignment of a scalar or string field; unknown types are pointer-sized"""
    if field_type == 'string':
        return POINTER_SIZE, POINTER_SIZE
    size = PRIMITIVE_SIZES.get(field_type)
    if size is None:
        return POINTER_SIZE, POINTER_SIZE
    return size, size


def align_up(offset: int, align: int) -> int:
    if rem := offset % align:
        offset += align - rem
    return offset


def wasm_struct_layout(type_name: str, resolved: ResolvedTypes, _active: Optional[set] = None) -> StructLayout:
    """Compute the C layout of a struct or table on wasm32.

    Members are placed at the smallest offset satisfying their natural
    alignment, the total is rounded up to the largest member alignment and
    an empty struct occupies one pointer. Vector fields contribute a
    pointer followed by a uint32 count, matching the generated C header.

    Raises:
        GeneratorError: the type is missing, not a struct/table, or recursive
    """
    info = resolved.get(type_name)
    if info is None:
        raise GeneratorError("layout", f"FlatBuffer type {type_name} not found")
    if info.kind not in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE):
        raise GeneratorError("layout", f"FlatBuffer type {type_name} is a {info.kind}, not a struct or table")

    active = set(_active or ())
    if type_name in active:
        raise GeneratorError("layout", f"FlatBuffer type {type_name} contains itself by value")
    active.add(type_name)

    fields: list[FieldLayout] = []
    offset = 0
    max_align = 1

    def place(name: str, ftype: str, size: int, align: int, **extra) -> None:
        nonlocal offset, max_align
        max_align = max(max_align, align)
        offset = align_up(offset, align)
        fields.append(FieldLayout(name=name, type=ftype, offset=offset, size=size, align=align, **extra))
        offset += size

    for f in info.fields:
        if (elem := TypeMapper.vector_element(f.type)) is not None:
            elem = TypeMapper.qualify(elem, info.namespace, resolved)
            place(f.name, f.type, POINTER_SIZE, POINTER_SIZE, kind="vector", element=elem)
            place(f"{f.name}_count", 'uint32', 4, 4, kind="count")
            continue

        if f.type == 'string':
            place(f.name, f.type, POINTER_SIZE, POINTER_SIZE, kind="string")
            continue

        if TypeMapper.is_primitive(f.type):
            size, align = wasm_field_size(f.type)
            place(f.name, f.type, size, align)
            continue

        qualified = TypeMapper.qualify(f.type, info.namespace, resolved)
        ref = resolved.get(qualified)
        if ref is not None and ref.kind == TYPE_KIND_ENUM:
            size, align = wasm_field_size(ref.base_type)
            place(f.name, qualified, size, align, kind="enum", element=ref.base_type)
        elif ref is not None and ref.kind in (TYPE_KIND_STRUCT, TYPE_KIND_TABLE):
            nested = wasm_struct_layout(qualified, resolved, active)
            place(f.name, qualified, nested.size, nested.align, kind="struct", nested=nested)
        else:
            place(f.name, f.type, POINTER_SIZE, POINTER_SIZE, kind="pointer")

    size = align_up(offset, max_align)
    if size == 0:
        size = POINTER_SIZE
    return StructLayout(name=type_name, size=size, align=max_align, fields=fields)


def wasm_value_size(t: str, resolved: ResolvedTypes) -> int:
    """Byte size of an out-parameter or sret slot for a return type"""
    if TypeMapper.handle_name(t) is not None:
        return POINTER_SIZE
    if TypeMapper.is_primitive(t):
        return PRIMITIVE_SIZES[t]
    info = resolved.get(t)
    if info is not None and info.kind == TYPE_KIND_ENUM:
        return PRIMITIVE_SIZES.get(info.base_type, 4)
    return wasm_struct_layout(t, resolved).size
