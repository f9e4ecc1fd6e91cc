"""FlatBuffers schema parser - enumerates named types and their structure"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from .errors import FBSParseError
from .types import (
    EnumValue, FieldDef, ResolvedTypes, TypeInfo,
    TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE, TYPE_KIND_UNION,
)

logger = logging.getLogger(__name__)

# FlatBuffers scalar aliases normalized to the API description spelling
FBS_TYPE_ALIASES = {
    'byte': 'int8',
    'ubyte': 'uint8',
    'short': 'int16',
    'ushort': 'uint16',
    'int': 'int32',
    'uint': 'uint32',
    'long': 'int64',
    'ulong': 'uint64',
    'float': 'float32',
    'double': 'float64',
}


def normalize_fbs_type(t: str) -> str:
    if t.startswith('[') and t.endswith(']'):
        return f'[{normalize_fbs_type(t[1:-1])}]'
    return FBS_TYPE_ALIASES.get(t, t)


class FBSParser:
    """Parses the line-oriented FlatBuffers schema subset"""

    NAMESPACE_PATTERN = re.compile(r'^\s*namespace\s+([A-Za-z][A-Za-z0-9_.]*)\s*;')
    ENUM_PATTERN = re.compile(r'^\s*enum\s+([A-Z][a-zA-Z0-9]*)\s*:\s*(\w+)')
    TYPE_PATTERNS = [
        (TYPE_KIND_TABLE, re.compile(r'^\s*table\s+([A-Z][a-zA-Z0-9]*)')),
        (TYPE_KIND_STRUCT, re.compile(r'^\s*struct\s+([A-Z][a-zA-Z0-9]*)')),
        (TYPE_KIND_UNION, re.compile(r'^\s*union\s+([A-Z][a-zA-Z0-9]*)')),
    ]
    ENUM_VALUE_PATTERN = re.compile(r'^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:=\s*(-?\d+))?\s*,?\s*$')
    FIELD_PATTERN = re.compile(r'([a-z_][a-zA-Z0-9_]*)\s*:\s*([^\s;=(]+)[^;]*;')

    def __init__(self, content: str, source: str = "<string>"):
        self.content = content
        self.source = source

    def parse(self) -> ResolvedTypes:
        types: ResolvedTypes = {}
        namespace = ""
        current: Optional[TypeInfo] = None
        depth = 0
        awaiting_body = False
        next_value = 0

        for lineno, raw in enumerate(self.content.splitlines(), start=1):
            line = raw.split('//', 1)[0]
            opens, closes = line.count('{'), line.count('}')

            if m := self.NAMESPACE_PATTERN.match(line):
                namespace = m.group(1)
                continue

            if current is None:
                info = self._match_header(line, namespace)
                if info is None:
                    continue
                if info.name in types:
                    raise FBSParseError(
                        f"{self.source}:{lineno}: duplicate type {info.name} "
                        f"(defined as {types[info.name].kind} and {info.kind})")
                types[info.name] = info
                current, next_value = info, 0
                if not opens:
                    awaiting_body, depth = True, 0
                    continue
                depth = opens - closes
                body = line.split('{', 1)[1].split('}', 1)[0]
                next_value = self._parse_body_line(current, body, next_value)
                if depth <= 0:
                    current = None
                continue

            if awaiting_body:
                if not opens:
                    continue
                awaiting_body = False
                line = line.split('{', 1)[1]

            depth += opens - closes
            next_value = self._parse_body_line(current, line.split('}', 1)[0], next_value)
            if depth <= 0:
                current = None

        logger.debug(f"Parsed {len(types)} types from {self.source}")
        return types

    def _match_header(self, line: str, namespace: str) -> Optional[TypeInfo]:
        if m := self.ENUM_PATTERN.match(line):
            return TypeInfo(name=self._qualify(namespace, m.group(1)), kind=TYPE_KIND_ENUM,
                            base_type=normalize_fbs_type(m.group(2)))
        for kind, pattern in self.TYPE_PATTERNS:
            if m := pattern.match(line):
                return TypeInfo(name=self._qualify(namespace, m.group(1)), kind=kind)
        return None

    def _parse_body_line(self, info: TypeInfo, line: str, next_value: int) -> int:
        """Record enum values or fields from one body line; returns the next enum value"""
        if info.kind == TYPE_KIND_ENUM:
            for item in line.split(','):
                if not item.strip():
                    continue
                if m := self.ENUM_VALUE_PATTERN.match(item):
                    if m.group(2) is not None:
                        next_value = int(m.group(2))
                    info.enum_values.append(EnumValue(name=m.group(1), value=next_value))
                    next_value += 1
        elif info.kind in (TYPE_KIND_TABLE, TYPE_KIND_STRUCT):
            for m in self.FIELD_PATTERN.finditer(line):
                info.fields.append(FieldDef(name=m.group(1), type=normalize_fbs_type(m.group(2))))
        return next_value

    @staticmethod
    def _qualify(namespace: str, name: str) -> str:
        return f"{namespace}.{name}" if namespace else name


def resolve_fbs_path(path: str, search_dirs: list[Union[str, Path]]) -> Path:
    """Return the first existing candidate for a schema path"""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    for directory in search_dirs:
        if not directory:
            continue
        full = Path(directory) / path
        if full.exists():
            return full
    dirs = ", ".join(str(d) for d in search_dirs)
    raise FBSParseError(f"{path} not found in search directories: [{dirs}]")


def parse_fbs_file(path: Union[str, Path]) -> ResolvedTypes:
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FBSParseError(f"reading {path}: {e}") from e
    return FBSParser(content, str(path)).parse()


def parse_fbs_files(search_dirs: list[Union[str, Path]], fbs_paths: list[str]) -> ResolvedTypes:
    """Parse every referenced schema into one ResolvedTypes map.

    Raises:
        FBSParseError: a file is missing or a qualified type is defined twice
    """
    types: ResolvedTypes = {}
    for fbs in fbs_paths:
        full_path = resolve_fbs_path(fbs, search_dirs)
        for name, info in parse_fbs_file(full_path).items():
            if existing := types.get(name):
                raise FBSParseError(
                    f"duplicate type {name} (defined as {existing.kind} and {info.kind})")
            types[name] = info
    return types
