"""
Cross-platform API Binding Generator Package

Reads a YAML API definition plus FlatBuffers schemas and generates:
  1. A pure C ABI header
  2. Platform bindings: Kotlin/JNI, Swift, JavaScript + WebAssembly
  3. Implementation scaffolding: C++, Rust, Go (cgo and wasip1), C
  4. Platform-service stubs and a Makefile per implementation language
"""

__version__ = "0.1.0"

from .types import APIDefinition, APIInfo, Artifact, Handle, Interface, Method, Parameter, TypeInfo
from .errors import (
    XplatError, DefinitionLoadError, SchemaValidationError, FBSParseError,
    SemanticValidationError, GeneratorError, DuplicateGeneratorError, FlatcError, OutputError,
)
from .loader import load_api_definition, parse_api_definition
from .fbs_parser import FBSParser, parse_fbs_files
from .validator import SemanticValidator, validate
from .common import GenerationContext
from .planner import plan_generators
from .registry import GeneratorRegistry, default_registry, register_all
from .writer import write_artifacts

__all__ = [
    '__version__',
    'APIDefinition', 'APIInfo', 'Artifact', 'Handle', 'Interface', 'Method', 'Parameter', 'TypeInfo',
    'XplatError', 'DefinitionLoadError', 'SchemaValidationError', 'FBSParseError',
    'SemanticValidationError', 'GeneratorError', 'DuplicateGeneratorError', 'FlatcError', 'OutputError',
    'load_api_definition', 'parse_api_definition', 'FBSParser', 'parse_fbs_files',
    'SemanticValidator', 'validate', 'GenerationContext', 'plan_generators',
    'GeneratorRegistry', 'default_registry', 'register_all', 'write_artifacts',
]
