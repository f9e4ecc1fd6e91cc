"""Embedded JSON Schema for API description files"""

import json

_IDENT = "^[a-z][a-z0-9_]*$"
_QUALIFIED = "^[A-Z][a-zA-Z0-9]*(\\.[A-Z][a-zA-Z0-9]*)*$"
_PRIMITIVES = "int8|int16|int32|int64|uint8|uint16|uint32|uint64|float32|float64|bool"
_BUFFER_ELEMENTS = "int8|int16|int32|int64|uint8|uint16|uint32|uint64|float32|float64"
_NAMED = "handle:[A-Z][a-zA-Z0-9]*|[A-Z][a-zA-Z0-9]*(\\.[A-Z][a-zA-Z0-9]*)*"

PARAMETER_TYPE_PATTERN = f"^({_PRIMITIVES}|string|buffer<({_BUFFER_ELEMENTS})>|{_NAMED})$"
RETURN_TYPE_PATTERN = f"^({_PRIMITIVES}|{_NAMED})$"

# "go-like" is accepted as an alias and normalized to "go" by the loader
IMPL_LANG_ALIASES = {"go-like": "go"}

API_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://xplatgen.dev/schemas/api-definition/v1",
    "title": "xplatgen API Definition",
    "description": "Schema for xplatgen API definition YAML files.",
    "type": "object",
    "required": ["api", "flatbuffers", "interfaces"],
    "additionalProperties": False,
    "properties": {
        "api": {"$ref": "#/$defs/api_metadata"},
        "flatbuffers": {
            "type": "array",
            "items": {"type": "string", "pattern": "\\.fbs$"},
            "minItems": 1,
        },
        "handles": {
            "type": "array",
            "items": {"$ref": "#/$defs/handle_definition"},
        },
        "interfaces": {
            "type": "array",
            "items": {"$ref": "#/$defs/interface_definition"},
            "minItems": 1,
        },
    },
    "$defs": {
        "api_metadata": {
            "type": "object",
            "required": ["name", "version", "impl_lang"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "pattern": _IDENT},
                "version": {"type": "string", "pattern": "^\\d+\\.\\d+\\.\\d+$"},
                "description": {"type": "string"},
                "impl_lang": {"type": "string", "enum": ["cpp", "rust", "go", "go-like", "c"]},
                "targets": {
                    "type": "array",
                    "items": {
                        "type": "string",
                        "enum": ["android", "ios", "web", "windows", "macos", "linux"],
                    },
                    "minItems": 1,
                    "uniqueItems": True,
                },
            },
        },
        "handle_definition": {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "pattern": "^[A-Z][a-zA-Z0-9]*$"},
                "description": {"type": "string"},
            },
        },
        "interface_definition": {
            "type": "object",
            "required": ["name"],
            "anyOf": [
                {"required": ["constructors"]},
                {"required": ["methods"]},
            ],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "pattern": _IDENT},
                "description": {"type": "string"},
                "constructors": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/method_definition"},
                },
                "methods": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/method_definition"},
                },
            },
        },
        "method_definition": {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "pattern": _IDENT},
                "description": {"type": "string"},
                "parameters": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/parameter_definition"},
                },
                "returns": {"$ref": "#/$defs/return_definition"},
                "error": {"type": "string", "pattern": _QUALIFIED},
            },
        },
        "parameter_definition": {
            "type": "object",
            "required": ["name", "type"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "pattern": _IDENT},
                "type": {"type": "string", "pattern": PARAMETER_TYPE_PATTERN},
                "transfer": {"type": "string", "enum": ["value", "ref", "ref_mut"]},
                "description": {"type": "string"},
            },
        },
        "return_definition": {
            "type": "object",
            "required": ["type"],
            "additionalProperties": False,
            "properties": {
                "type": {"type": "string", "pattern": RETURN_TYPE_PATTERN},
                "description": {"type": "string"},
            },
        },
    },
}


def schema_json() -> str:
    return json.dumps(API_SCHEMA, indent=2)
