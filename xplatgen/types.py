"""Data types for the API definition IR and resolved FlatBuffers schemas"""

from dataclasses import dataclass, field
from typing import Optional


ALL_TARGETS = ["android", "ios", "web", "windows", "macos", "linux"]
IMPL_LANGS = ["cpp", "rust", "go", "c"]

TYPE_KIND_ENUM = "enum"
TYPE_KIND_STRUCT = "struct"
TYPE_KIND_TABLE = "table"
TYPE_KIND_UNION = "union"


@dataclass
class Parameter:
    """Method parameter"""
    name: str
    type: str
    transfer: str = ""
    description: str = ""


@dataclass
class Returns:
    """Method return value"""
    type: str
    description: str = ""


@dataclass
class Method:
    """Interface method or constructor"""
    name: str
    parameters: list[Parameter] = field(default_factory=list)
    returns: Optional[Returns] = None
    error: str = ""
    description: str = ""

    @property
    def is_fallible(self) -> bool:
        return bool(self.error)

    @property
    def return_type(self) -> str:
        return self.returns.type if self.returns else ""


@dataclass
class Handle:
    """Opaque handle declaration"""
    name: str
    description: str = ""


@dataclass
class Interface:
    """Named group of constructors and methods"""
    name: str
    constructors: list[Method] = field(default_factory=list)
    methods: list[Method] = field(default_factory=list)
    description: str = ""


@dataclass
class APIInfo:
    """API-level metadata"""
    name: str
    version: str
    impl_lang: str
    description: str = ""
    targets: list[str] = field(default_factory=list)


@dataclass
class APIDefinition:
    """Complete loaded API description"""
    api: APIInfo
    flatbuffers: list[str] = field(default_factory=list)
    handles: list[Handle] = field(default_factory=list)
    interfaces: list[Interface] = field(default_factory=list)

    def effective_targets(self) -> list[str]:
        return list(self.api.targets) if self.api.targets else list(ALL_TARGETS)

    def apply_overrides(self, impl_lang: str = "", targets: Optional[list[str]] = None):
        """Apply command-line overrides before validation"""
        if impl_lang:
            self.api.impl_lang = impl_lang
        if targets:
            self.api.targets = list(targets)


@dataclass
class EnumValue:
    """FlatBuffers enum member"""
    name: str
    value: int


@dataclass
class FieldDef:
    """FlatBuffers struct or table field"""
    name: str
    type: str


@dataclass
class TypeInfo:
    """Resolved FlatBuffers type"""
    name: str
    kind: str
    base_type: str = ""
    enum_values: list[EnumValue] = field(default_factory=list)
    fields: list[FieldDef] = field(default_factory=list)

    @property
    def namespace(self) -> str:
        return self.name.rpartition(".")[0]


ResolvedTypes = dict[str, TypeInfo]


@dataclass
class Artifact:
    """Single generated output file"""
    path: str
    content: str
    scaffold: bool = False
    project_file: bool = False
