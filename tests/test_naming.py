"""Tests for name mangling helpers"""

import pytest

from xplatgen import naming


class TestCaseConversion:

    @pytest.mark.parametrize("name, expected", [
        ("create_engine", "CreateEngine"),
        ("hello_api", "HelloApi"),
        ("lifecycle", "Lifecycle"),
        ("get_2d_point", "Get2dPoint"),
    ])
    def test_to_pascal_case(self, name, expected):
        assert naming.to_pascal_case(name) == expected

    def test_to_camel_case(self):
        assert naming.to_camel_case("create_engine") == "createEngine"
        assert naming.to_camel_case("measure") == "measure"

    def test_pascal_and_camel_differ_only_in_first_letter(self):
        for name in ["a", "create", "create_engine", "set_name_and_value", "x1_y2"]:
            pascal = naming.to_pascal_case(name)
            camel = naming.to_camel_case(name)
            assert camel[:1].upper() + camel[1:] == pascal
            assert pascal[:1].lower() + pascal[1:] == camel

    def test_handle_to_snake(self):
        assert naming.handle_to_snake("Engine") == "engine"
        assert naming.handle_to_snake("TextureAtlas") == "texture_atlas"


class TestSymbolNames:

    def test_c_abi_name(self):
        assert naming.c_abi_name("test_api", "lifecycle", "create_engine") == "test_api_lifecycle_create_engine"

    def test_handle_names(self):
        assert naming.handle_typedef("TextureAtlas") == "texture_atlas_handle"
        assert naming.handle_struct_tag("Engine") == "engine_s"
        assert naming.destructor_name("TextureAtlas") == "destroy_texture_atlas"

    def test_qualified_type_names(self):
        assert naming.flatbuffer_c_name("Common.ErrorCode") == "Common_ErrorCode"
        assert naming.flat_name("Common.ErrorCode") == "CommonErrorCode"
        assert naming.flat_name("Point") == "Point"

    def test_macros(self):
        assert naming.export_macro("test_api") == "TEST_API_EXPORT"
        assert naming.build_macro("test_api") == "TEST_API_BUILD"

    @pytest.mark.parametrize("name, expected", [
        ("create", True),
        ("create_engine", True),
        ("create_", False),
        ("make_engine", False),
        ("created", False),
    ])
    def test_is_constructor_name(self, name, expected):
        assert naming.is_constructor_name(name) is expected
