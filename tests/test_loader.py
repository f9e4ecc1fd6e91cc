"""Tests for loading and shape-checking API definitions"""

import copy

import pytest
import yaml

from xplatgen.errors import DefinitionLoadError, SchemaValidationError
from xplatgen.loader import json_pointer, load_api_definition, parse_api_definition

from conftest import MINIMAL_API


@pytest.fixture
def document():
    return yaml.safe_load(MINIMAL_API)


class TestLoad:

    def test_load_builds_ir(self, minimal_api_path):
        api = load_api_definition(minimal_api_path)

        assert api.api.name == "test_api"
        assert api.api.version == "1.0.0"
        assert api.api.impl_lang == "cpp"
        assert api.flatbuffers == ["schemas/common.fbs"]
        assert [h.name for h in api.handles] == ["Engine"]
        assert api.handles[0].description == "Rendering engine"

        ctor = api.interfaces[0].constructors[0]
        assert ctor.name == "create_engine"
        assert ctor.return_type == "handle:Engine"
        assert ctor.error == "Common.ErrorCode"
        assert ctor.is_fallible

    def test_targets_default_to_all(self, minimal_api_path):
        api = load_api_definition(minimal_api_path)
        assert api.api.targets == []
        assert api.effective_targets() == ["android", "ios", "web", "windows", "macos", "linux"]

    def test_go_like_alias_normalized(self, document):
        document["api"]["impl_lang"] = "go-like"
        assert parse_api_definition(document).api.impl_lang == "go"

    def test_apply_overrides(self, document):
        api = parse_api_definition(document)
        api.apply_overrides(impl_lang="rust", targets=["ios"])
        assert api.api.impl_lang == "rust"
        assert api.effective_targets() == ["ios"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DefinitionLoadError, match="reading API definition"):
            load_api_definition(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("api: [unclosed\n", encoding="utf-8")
        with pytest.raises(DefinitionLoadError, match="parsing API definition"):
            load_api_definition(path)


class TestShapeFailures:

    def test_missing_required_top_level_key(self, document):
        del document["interfaces"]
        with pytest.raises(SchemaValidationError) as exc:
            parse_api_definition(document)
        assert exc.value.path == "/"
        assert "interfaces" in exc.value.message

    def test_bad_impl_lang_reports_pointer(self, document):
        document["api"]["impl_lang"] = "cobol"
        with pytest.raises(SchemaValidationError) as exc:
            parse_api_definition(document)
        assert exc.value.path == "/api/impl_lang"

    def test_bad_parameter_type_reports_pointer(self, document):
        bad = copy.deepcopy(document)
        bad["interfaces"][0]["constructors"][0]["parameters"] = [{"name": "size", "type": "uint128"}]
        with pytest.raises(SchemaValidationError) as exc:
            parse_api_definition(bad)
        assert exc.value.path == "/interfaces/0/constructors/0/parameters/0/type"

    def test_string_return_rejected_by_shape(self, document):
        document["interfaces"][0]["constructors"][0]["returns"]["type"] = "string"
        with pytest.raises(SchemaValidationError) as exc:
            parse_api_definition(document)
        assert exc.value.path == "/interfaces/0/constructors/0/returns/type"

    def test_unknown_property_rejected(self, document):
        document["api"]["license"] = "MIT"
        with pytest.raises(SchemaValidationError) as exc:
            parse_api_definition(document)
        assert exc.value.path == "/api"

    def test_message_names_location(self, document):
        document["api"]["version"] = "1.0"
        with pytest.raises(SchemaValidationError, match="at /api/version"):
            parse_api_definition(document)


class TestJsonPointer:

    def test_root(self):
        assert json_pointer([]) == "/"

    def test_escapes(self):
        assert json_pointer(["a/b", "c~d", 0]) == "/a~1b/c~0d/0"
