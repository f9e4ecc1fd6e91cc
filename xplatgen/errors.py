"""
Exception hierarchy for xplatgen.

XplatError (base)
├── DefinitionLoadError - API description unreadable or not valid YAML
├── SchemaValidationError - description violates the structural schema
├── FBSParseError - FlatBuffers schema missing or defines a type twice
├── SemanticValidationError - accumulated semantic rule violations
├── GeneratorError - internal emitter failure
├── DuplicateGeneratorError - generator name registered twice
├── FlatcError - flatc could not be run
└── OutputError - generated files could not be written
"""

from dataclasses import dataclass


class XplatError(Exception):
    """Base exception for all xplatgen errors"""
    pass


class DefinitionLoadError(XplatError):
    pass


class SchemaValidationError(XplatError):
    """Structural schema violation, located by a JSON pointer"""

    def __init__(self, path: str, message: str):
        self.path = path or "/"
        self.message = message
        super().__init__(f"schema validation failed at {self.path}: {message}")


class FBSParseError(XplatError):
    pass


@dataclass(frozen=True)
class ValidationIssue:
    """Single semantic violation with its IR path"""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class SemanticValidationError(XplatError):
    """All semantic violations found in one validation pass"""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        lines = [f"  - {issue}" for issue in self.issues]
        super().__init__("validation failed:\n" + "\n".join(lines))


class GeneratorError(XplatError):
    def __init__(self, generator: str, message: str):
        self.generator = generator
        self.message = message
        super().__init__(f"generator {generator}: {message}")


class DuplicateGeneratorError(XplatError):
    pass


class FlatcError(XplatError):
    pass


class OutputError(XplatError):
    pass
