"""Type classification and mapping from API description types to C types"""

import re
from typing import Optional
from .types import Parameter, ResolvedTypes
from . import naming


class TypeMapper:
    """Classifies API description type strings and maps them to C ABI types"""

    KIND_STRING = "string"
    KIND_BUFFER = "buffer"
    KIND_HANDLE = "handle"
    KIND_PRIMITIVE = "primitive"
    KIND_FLATBUFFER = "flatbuffer"
    KIND_UNKNOWN = "unknown"

    BUFFER_PATTERN = re.compile(r'^buffer<(\w+)>$')
    HANDLE_PATTERN = re.compile(r'^handle:([A-Z][a-zA-Z0-9]*)$')
    FLATBUFFER_PATTERN = re.compile(r'^[A-Z][a-zA-Z0-9]*(\.[A-Z][a-zA-Z0-9]*)*$')

    # Primitive C type mappings
    C_TYPES = {
        'int8': 'int8_t',
        'int16': 'int16_t',
        'int32': 'int32_t',
        'int64': 'int64_t',
        'uint8': 'uint8_t',
        'uint16': 'uint16_t',
        'uint32': 'uint32_t',
        'uint64': 'uint64_t',
        'float32': 'float',
        'float64': 'double',
        'bool': 'bool',
    }

    @classmethod
    def is_string(cls, t: str) -> bool:
        return t == 'string'

    @classmethod
    def is_primitive(cls, t: str) -> bool:
        return t in cls.C_TYPES

    @classmethod
    def buffer_element(cls, t: str) -> Optional[str]:
        """Element type of buffer<T>, or None"""
        if m := cls.BUFFER_PATTERN.match(t):
            return m.group(1)
        return None

    @classmethod
    def handle_name(cls, t: str) -> Optional[str]:
        """Handle name of handle:Name, or None"""
        if m := cls.HANDLE_PATTERN.match(t):
            return m.group(1)
        return None

    @classmethod
    def is_flatbuffer(cls, t: str) -> bool:
        if cls.is_string(t) or cls.is_primitive(t):
            return False
        if cls.buffer_element(t) is not None or cls.handle_name(t) is not None:
            return False
        return cls.FLATBUFFER_PATTERN.match(t) is not None

    @classmethod
    def classify(cls, t: str) -> str:
        """Classify a type string; ties resolve in declaration order"""
        if cls.is_string(t):
            return cls.KIND_STRING
        if cls.buffer_element(t) is not None:
            return cls.KIND_BUFFER
        if cls.handle_name(t) is not None:
            return cls.KIND_HANDLE
        if cls.is_primitive(t):
            return cls.KIND_PRIMITIVE
        if cls.is_flatbuffer(t):
            return cls.KIND_FLATBUFFER
        return cls.KIND_UNKNOWN

    @classmethod
    def to_c_primitive(cls, t: str) -> str:
        return cls.C_TYPES.get(t, t)

    @classmethod
    def to_c_return(cls, t: str) -> str:
        """C type for a return value"""
        if handle := cls.handle_name(t):
            return naming.handle_typedef(handle)
        if cls.is_primitive(t):
            return cls.to_c_primitive(t)
        return naming.flatbuffer_c_name(t)

    @classmethod
    def to_c_out_param(cls, t: str) -> str:
        return cls.to_c_return(t) + '*'

    @classmethod
    def param_to_c(cls, param: Parameter) -> list[str]:
        """Convert a parameter to C declarations; buffers expand to pointer + length"""
        t = param.type
        if cls.is_string(t):
            return [f'const char* {param.name}']

        if (elem := cls.buffer_element(t)) is not None:
            c_type = cls.to_c_primitive(elem)
            ptr = f'{c_type}*' if param.transfer == 'ref_mut' else f'const {c_type}*'
            return [f'{ptr} {param.name}', f'uint32_t {param.name}_len']

        if handle := cls.handle_name(t):
            return [f'{naming.handle_typedef(handle)} {param.name}']

        if cls.is_primitive(t):
            return [f'{cls.to_c_primitive(t)} {param.name}']

        c_type = naming.flatbuffer_c_name(t)
        if param.transfer == 'ref_mut':
            return [f'{c_type}* {param.name}']
        if param.transfer == 'ref':
            return [f'const {c_type}* {param.name}']
        return [f'{c_type} {param.name}']

    @classmethod
    def vector_element(cls, fbs_type: str) -> Optional[str]:
        """Element type of an FBS vector field [T], or None"""
        if fbs_type.startswith('[') and fbs_type.endswith(']'):
            return fbs_type[1:-1]
        return None

    @classmethod
    def qualify(cls, fbs_type: str, namespace: str, resolved: ResolvedTypes) -> str:
        """Qualify a type referenced inside an FBS body against its namespace"""
        if namespace and f'{namespace}.{fbs_type}' in resolved:
            return f'{namespace}.{fbs_type}'
        return fbs_type

    @classmethod
    def fbs_to_c(cls, fbs_type: str, namespace: str = "",
                 resolved: Optional[ResolvedTypes] = None) -> str:
        """C type of a scalar, string or named FBS field type"""
        if fbs_type == 'string':
            return 'const char*'
        if cls.is_primitive(fbs_type):
            return cls.to_c_primitive(fbs_type)
        return naming.flatbuffer_c_name(cls.qualify(fbs_type, namespace, resolved or {}))

    @classmethod
    def fbs_field_to_c(cls, name: str, fbs_type: str, namespace: str = "",
                       resolved: Optional[ResolvedTypes] = None) -> list[str]:
        """C member declarations for an FBS field; vectors add a count member"""
        if (elem := cls.vector_element(fbs_type)) is not None:
            elem_c = cls.fbs_to_c(elem, namespace, resolved)
            ptr = f'{elem_c} const*' if elem_c.startswith('const ') else f'const {elem_c}*'
            return [f'{ptr} {name}', f'uint32_t {name}_count']
        return [f'{cls.fbs_to_c(fbs_type, namespace, resolved)} {name}']
