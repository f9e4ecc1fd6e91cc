"""API description loader - reads YAML, validates its shape and builds the IR"""

import logging
from pathlib import Path
from typing import Any, Union

import jsonschema
import yaml

from .errors import DefinitionLoadError, SchemaValidationError
from .schema import API_SCHEMA, IMPL_LANG_ALIASES
from .types import APIDefinition, APIInfo, Handle, Interface, Method, Parameter, Returns

logger = logging.getLogger(__name__)

_validator = jsonschema.Draft202012Validator(API_SCHEMA)


def json_pointer(path) -> str:
    """Render a jsonschema error path as an RFC 6901 pointer"""
    parts = [str(p).replace("~", "~0").replace("/", "~1") for p in path]
    return "/" + "/".join(parts) if parts else "/"


def validate_schema(document: Any):
    """Validate a parsed document against the structural schema.

    Raises:
        SchemaValidationError: with a JSON pointer to the offending node
    """
    error = jsonschema.exceptions.best_match(_validator.iter_errors(document))
    if error is not None:
        raise SchemaValidationError(json_pointer(error.absolute_path), error.message)


def load_api_definition(path: Union[str, Path]) -> APIDefinition:
    """Read, shape-check and materialize an API description file"""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise DefinitionLoadError(f"reading API definition {path}: {e}") from e
    except yaml.YAMLError as e:
        raise DefinitionLoadError(f"parsing API definition {path}: {e}") from e

    logger.debug(f"Loaded {path}, validating against schema")
    return parse_api_definition(document)


def parse_api_definition(document: Any) -> APIDefinition:
    """Shape-check an already parsed document and build the IR"""
    validate_schema(document)

    api = document["api"]
    impl_lang = api["impl_lang"]
    info = APIInfo(
        name=api["name"],
        version=api["version"],
        impl_lang=IMPL_LANG_ALIASES.get(impl_lang, impl_lang),
        description=api.get("description", ""),
        targets=list(api.get("targets", [])),
    )

    return APIDefinition(
        api=info,
        flatbuffers=list(document["flatbuffers"]),
        handles=[Handle(name=h["name"], description=h.get("description", ""))
                 for h in document.get("handles") or []],
        interfaces=[_parse_interface(i) for i in document["interfaces"]],
    )


def _parse_interface(data: dict) -> Interface:
    return Interface(
        name=data["name"],
        description=data.get("description", ""),
        constructors=[_parse_method(m) for m in data.get("constructors") or []],
        methods=[_parse_method(m) for m in data.get("methods") or []],
    )


def _parse_method(data: dict) -> Method:
    returns = None
    if ret := data.get("returns"):
        returns = Returns(type=ret["type"], description=ret.get("description", ""))

    params = [
        Parameter(
            name=p["name"],
            type=p["type"],
            transfer=p.get("transfer", ""),
            description=p.get("description", ""),
        )
        for p in data.get("parameters") or []
    ]

    return Method(
        name=data["name"],
        parameters=params,
        returns=returns,
        error=data.get("error", ""),
        description=data.get("description", ""),
    )
