"""Every emitter agrees with the C header on the exported symbols and their out-parameters"""

import re

import pytest

from xplatgen.c_header_generator import CHeaderGenerator
from xplatgen.common import all_exported_functions
from xplatgen.cpp_generator import CppGenerator
from xplatgen.errors import GeneratorError
from xplatgen.go_generator import GoGenerator
from xplatgen.go_wasm_generator import GoWasmGenerator
from xplatgen.jswasm_generator import JSWasmGenerator
from xplatgen.kotlin_generator import KotlinGenerator
from xplatgen.rust_generator import RustGenerator
from xplatgen.swift_generator import SwiftGenerator

from conftest import COMMON_FBS, GEO_API, GEO_FBS, load_context, write_project

STATS_INTERFACE = """\
  - name: stats
    methods:
      - name: frame_count
        parameters:
          - name: engine
            type: handle:Engine
        returns:
          type: uint64
        error: Common.ErrorCode
      - name: is_ready
        returns:
          type: bool
        error: Common.ErrorCode
      - name: current_color
        returns:
          type: Geo.Color
        error: Common.ErrorCode
      - name: last_info
        returns:
          type: Geo.Info
        error: Common.ErrorCode
"""

# emitter -> (generator, artifact holding the exported functions)
EMITTERS = {
    "c_header": (CHeaderGenerator, "geo_api.h"),
    "cpp_shim": (CppGenerator, "geo_api_shim.cpp"),
    "rust_ffi": (RustGenerator, "geo_api_ffi.rs"),
    "jni_c": (KotlinGenerator, "geo_api_jni.c"),
    "go_cgo": (GoGenerator, "geo_api_cgo.go"),
    "go_wasm": (GoWasmGenerator, "geo_api_wasm.go"),
    "js": (JSWasmGenerator, "geo_api.js"),
    "swift": (SwiftGenerator, "GeoApi.swift"),
}

# C out-parameter pointee -> how the pointee is spelled by emitters that do not use the C name
RUST_OUT = {
    "engine_handle": "*mut c_void",
    "float": "f32",
    "uint64_t": "u64",
    "bool": "bool",
    "Geo_Color": "GeoColor",
    "Geo_Info": "GeoInfo",
}
SWIFT_OUT = {
    "engine_handle": "OpaquePointer?",
    "float": "Float",
    "uint64_t": "UInt64",
    "bool": "Bool",
    "Geo_Color": "Geo_Color",
    "Geo_Info": "Geo_Info",
}
WASM_OUT_SIZES = {
    "engine_handle": 4,
    "float": 4,
    "uint64_t": 8,
    "bool": 1,
    "Geo_Color": 1,
    "Geo_Info": 8,
}


@pytest.fixture
def stats_ctx(tmp_path):
    api_yaml = GEO_API.format(impl_lang="cpp", targets="android, ios, web, linux") + "\n" + STATS_INTERFACE
    return load_context(write_project(tmp_path, api_yaml, {"common.fbs": COMMON_FBS, "geo.fbs": GEO_FBS}))


def emitted(ctx, emitter: str) -> str:
    cls, path = EMITTERS[emitter]
    return {a.path: a for a in cls(ctx).generate()}[path].content


def call_sites(text: str, symbol: str) -> list[int]:
    return [m.start() for m in re.finditer(rf"\b{re.escape(symbol)}\(", text)]


def signature(text: str, idx: int) -> str:
    """The declaration starting on the line of idx, through its closing parenthesis"""
    start = text.rindex("\n", 0, idx) + 1
    depth = 0
    for i in range(idx, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return text[start:]


def preceding(text: str, idx: int, *markers: str) -> str:
    """Text between the closest preceding marker and idx"""
    start = max(text.rfind(marker, 0, idx) for marker in markers)
    return text[max(start, 0):idx]


def header_pointee(header: str, symbol: str):
    decl = signature(header, call_sites(header, symbol)[0])
    m = re.search(r"(\w+)\* out_result", decl)
    return m.group(1) if m else None


def out_param(emitter: str, text: str, symbol: str):
    """The emitter's spelling of the out_result slot for symbol, or None"""
    idx = call_sites(text, symbol)[0]
    if emitter in ("c_header", "cpp_shim"):
        m = re.search(r"(\w+\*) out_result", signature(text, idx))
    elif emitter == "rust_ffi":
        m = re.search(r"out_result: \*mut ([^)]+)\)", signature(text, idx))
    elif emitter == "go_cgo":
        m = re.search(r"out_result \*(C\.\w+)", signature(text, idx))
    elif emitter == "go_wasm":
        m = re.search(r"out_result (\w+)", signature(text, idx))
    elif emitter == "jni_c":
        m = re.search(r"\n    (\w+) out_result = ", preceding(text, idx, "JNIEXPORT"))
    elif emitter == "js":
        m = re.search(r"_outPtr = _malloc\((\d+)\);", preceding(text, idx, "\n    },\n", "  return {\n"))
        return int(m.group(1)) if m else None
    else:
        m = re.search(r"var result: (.+?) = ", preceding(text, idx, " func ", "deinit {"))
    return m.group(1) if m else None


def expected_out_param(emitter: str, pointee: str):
    return {
        "c_header": f"{pointee}*",
        "cpp_shim": f"{pointee}*",
        "rust_ffi": RUST_OUT[pointee],
        "jni_c": pointee,
        "go_cgo": f"C.{pointee}",
        "go_wasm": "uintptr",
        "js": WASM_OUT_SIZES[pointee],
        "swift": SWIFT_OUT[pointee],
    }[emitter]


@pytest.mark.parametrize("emitter", list(EMITTERS))
class TestExportedSymbols:

    def test_each_symbol_appears_once(self, stats_ctx, emitter):
        text = emitted(stats_ctx, emitter)
        for fn in all_exported_functions(stats_ctx.api):
            assert len(call_sites(text, fn.symbol)) == 1, fn.symbol

    def test_out_param_matches_header(self, stats_ctx, emitter):
        header = emitted(stats_ctx, "c_header")
        text = emitted(stats_ctx, emitter)
        checked = set()
        for fn in all_exported_functions(stats_ctx.api):
            if not (fn.method.is_fallible and fn.method.return_type):
                continue
            pointee = header_pointee(header, fn.symbol)
            assert out_param(emitter, text, fn.symbol) == expected_out_param(emitter, pointee), fn.symbol
            checked.add(pointee)
        assert checked == set(RUST_OUT)


class TestOutParamPresence:

    def test_only_fallible_returns_take_out_result(self, stats_ctx):
        header = emitted(stats_ctx, "c_header")
        for fn in all_exported_functions(stats_ctx.api):
            has_out = header_pointee(header, fn.symbol) is not None
            assert has_out == bool(fn.method.is_fallible and fn.method.return_type), fn.symbol


class TestUnknownTypes:

    def test_record_lookup_names_the_emitter(self, geo_ctx):
        with pytest.raises(GeneratorError) as exc:
            KotlinGenerator(geo_ctx).record_info("Geo.Missing")
        assert exc.value.generator == "kotlin"
        assert "Geo.Missing" in str(exc.value)

    def test_enum_is_not_a_record(self, geo_ctx):
        with pytest.raises(GeneratorError) as exc:
            GoGenerator(geo_ctx).record_info("Geo.Color")
        assert exc.value.generator == "impl_go"

    def test_record_lookup_returns_info(self, geo_ctx):
        assert [f.name for f in GoGenerator(geo_ctx).record_info("Geo.Point").fields] == ["x", "y"]

    @pytest.mark.parametrize("cls", [JSWasmGenerator, GoWasmGenerator])
    def test_layout_failure_names_the_emitter(self, geo_ctx, cls):
        with pytest.raises(GeneratorError) as exc:
            cls(geo_ctx).layout("Geo.Missing")
        assert exc.value.generator == cls.name
        assert exc.value.message == "FlatBuffer type Geo.Missing not found"
