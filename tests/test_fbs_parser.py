"""Tests for the FlatBuffers schema resolver"""

import pytest

from xplatgen.errors import FBSParseError
from xplatgen.fbs_parser import FBSParser, normalize_fbs_type, parse_fbs_files, resolve_fbs_path
from xplatgen.types import TYPE_KIND_ENUM, TYPE_KIND_STRUCT, TYPE_KIND_TABLE, TYPE_KIND_UNION

from conftest import COMMON_FBS, GEO_FBS


class TestFBSParser:

    def test_enum_values_and_base(self):
        types = FBSParser(COMMON_FBS).parse()
        info = types["Common.ErrorCode"]

        assert info.kind == TYPE_KIND_ENUM
        assert info.base_type == "int32"
        assert [(v.name, v.value) for v in info.enum_values] == [
            ("Ok", 0), ("InvalidArgument", 1), ("OutOfMemory", 2), ("NotFound", 3), ("InternalError", 4),
        ]

    def test_implicit_enum_values_continue_after_explicit(self):
        info = FBSParser(GEO_FBS).parse()["Geo.Color"]
        assert info.base_type == "uint8"
        assert [(v.name, v.value) for v in info.enum_values] == [("Red", 0), ("Green", 3), ("Blue", 4)]

    def test_struct_and_table_fields(self):
        types = FBSParser(GEO_FBS).parse()

        point = types["Geo.Point"]
        assert point.kind == TYPE_KIND_STRUCT
        assert [(f.name, f.type) for f in point.fields] == [("x", "float32"), ("y", "float32")]

        shape = types["Geo.Shape"]
        assert shape.kind == TYPE_KIND_TABLE
        assert [(f.name, f.type) for f in shape.fields] == [
            ("name", "string"), ("color", "Color"), ("points", "[Point]"),
        ]
        assert shape.namespace == "Geo"

    def test_single_line_body(self):
        types = FBSParser("struct Vec2 { x: float; y: double; }\n").parse()
        assert [(f.name, f.type) for f in types["Vec2"].fields] == [("x", "float32"), ("y", "float64")]
        assert types["Vec2"].namespace == ""

    def test_brace_on_next_line_and_attributes(self):
        content = (
            "namespace Game;\n"
            "table Monster\n"
            "{\n"
            "    hp: short = 100;\n"
            "    legacy: int (deprecated);\n"
            "    tags: [string];  // trailing comment\n"
            "}\n"
        )
        info = FBSParser(content).parse()["Game.Monster"]
        assert [(f.name, f.type) for f in info.fields] == [
            ("hp", "int16"), ("legacy", "int32"), ("tags", "[string]"),
        ]

    def test_union_recorded(self):
        types = FBSParser("namespace Game;\nunion Equipment { Weapon, Shield }\n").parse()
        assert types["Game.Equipment"].kind == TYPE_KIND_UNION

    def test_commented_out_type_ignored(self):
        types = FBSParser("// table Hidden { a: int; }\nstruct Shown { a: int; }\n").parse()
        assert list(types) == ["Shown"]

    def test_duplicate_in_one_file(self):
        content = "namespace A;\nstruct Point { x: int; }\ntable Point { y: int; }\n"
        with pytest.raises(FBSParseError, match="duplicate type A.Point"):
            FBSParser(content, "a.fbs").parse()

    def test_normalize_vector_alias(self):
        assert normalize_fbs_type("[ubyte]") == "[uint8]"
        assert normalize_fbs_type("Point") == "Point"


class TestParseFiles:

    def test_merges_files(self, tmp_path):
        (tmp_path / "common.fbs").write_text(COMMON_FBS, encoding="utf-8")
        (tmp_path / "geo.fbs").write_text(GEO_FBS, encoding="utf-8")

        types = parse_fbs_files([tmp_path], ["common.fbs", "geo.fbs"])
        assert {"Common.ErrorCode", "Geo.Point", "Geo.Info", "Geo.Color", "Geo.Shape"} == set(types)

    def test_duplicate_across_files(self, tmp_path):
        (tmp_path / "a.fbs").write_text(COMMON_FBS, encoding="utf-8")
        (tmp_path / "b.fbs").write_text(COMMON_FBS, encoding="utf-8")
        with pytest.raises(FBSParseError, match="duplicate type Common.ErrorCode"):
            parse_fbs_files([tmp_path], ["a.fbs", "b.fbs"])

    def test_search_dirs_in_order(self, tmp_path):
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / "types.fbs").write_text(COMMON_FBS, encoding="utf-8")

        assert resolve_fbs_path("types.fbs", [first, second]) == second / "types.fbs"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FBSParseError, match="missing.fbs not found"):
            parse_fbs_files([tmp_path], ["missing.fbs"])
