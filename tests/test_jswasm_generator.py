"""Tests for the JavaScript + WebAssembly binding"""

import pytest

from xplatgen.common import all_exported_functions
from xplatgen.jswasm_generator import JSWasmGenerator
from xplatgen.layout import wasm_struct_layout
from xplatgen.naming import to_camel_case


@pytest.fixture
def minimal_js(minimal_ctx):
    artifacts = JSWasmGenerator(minimal_ctx).generate()
    assert [a.path for a in artifacts] == ["test_api.js"]
    return artifacts[0].content


@pytest.fixture
def geo_js(geo_ctx):
    return JSWasmGenerator(geo_ctx).generate()[0].content


def function_body(js: str, name: str) -> list[str]:
    """Lines of one wrapper, from its header to the closing '},'"""
    lines = js.splitlines()
    start = next(i for i, line in enumerate(lines) if line.startswith(f"    {name}("))
    end = next(i for i in range(start, len(lines)) if lines[i] == "    },")
    return lines[start:end + 1]


class TestFallibleConstructor:

    def test_create_engine_wrapper(self, minimal_js):
        body = function_body(minimal_js, "createEngine")

        assert body[1] == "      let _outPtr = 0;"
        assert body[2] == "      try {"
        assert "        _outPtr = _malloc(4);" in body
        assert "        const _rc = _wasm.exports.test_api_lifecycle_create_engine(_outPtr);" in body
        assert "          throw new Error(`createEngine failed with error code ${_rc}`);" in body
        assert "        const _handleVal = _view().getUint32(_outPtr, true);" in body
        assert "        return new Engine(_handleVal);" in body
        finally_at = body.index("      } finally {")
        assert body[finally_at + 1] == "        if (_outPtr) _free(_outPtr);"

    def test_destructor_disposes_handle(self, minimal_js):
        body = function_body(minimal_js, "destroyEngine")
        assert body[1] == "      engine.dispose();"
        assert "      _wasm.exports.test_api_lifecycle_destroy_engine(this.#ptr);" in minimal_js


class TestModule:

    def test_loader_and_exports(self, minimal_js):
        assert "async function loadTestApi(wasmSource, platformServices) {" in minimal_js
        assert "    lifecycle: _lifecycleApi," in minimal_js
        assert "export { loadTestApi };" in minimal_js
        assert "export { Engine };" in minimal_js

    def test_platform_imports(self, minimal_js):
        assert "      test_api_log_sink: (level, tagPtr, msgPtr) => {" in minimal_js
        assert "      test_api_resource_read: (namePtr, bufferPtr, bufferSize) => {" in minimal_js
        assert "    wasi_snapshot_preview1: _buildWasiImports()," in minimal_js

    def test_instance_methods_forward_to_interface(self, geo_js):
        assert "  setName(name) {" in geo_js
        assert "    return _rendererApi.setName(this, name);" in geo_js


class TestRecords:

    def test_reader_offsets_match_layout(self, geo_ctx, geo_js):
        layout = wasm_struct_layout("Geo.Info", geo_ctx.resolved)
        message, api_impl = layout.field("message"), layout.field("apiImpl")
        assert (message.offset, api_impl.offset) == (0, 4)

        assert "function _readGeoInfo(ptr) {" in geo_js
        assert "    message: _decodeString(_view().getUint32(ptr, true))," in geo_js
        assert f"    apiImpl: _decodeString(_view().getUint32(ptr + {api_impl.offset}, true))," in geo_js

    def test_writer_handles_enums_and_vectors(self, geo_ctx, geo_js):
        layout = wasm_struct_layout("Geo.Shape", geo_ctx.resolved)
        color = layout.field("color")
        count = layout.field("points_count")

        assert f"  _view().setUint8(ptr + {color.offset}, obj.color, true);" in geo_js
        assert "  const pointsPtr = _writeVector(obj.points, 8, (p, e) => _writeGeoPoint(p, e, allocs), allocs);" in geo_js
        assert f"  _view().setUint32(ptr + {count.offset}, (obj.points || []).length, true);" in geo_js

    def test_sret_call_for_record_return(self, geo_js):
        body = function_body(geo_js, "getInfo")
        assert "        _outPtr = _malloc(8);" in body
        assert "        _wasm.exports.geo_api_renderer_get_info(_outPtr, engine._ptr);" in body
        assert "        return _readGeoInfo(_outPtr);" in body

    def test_buffer_and_string_marshalling(self, geo_js):
        upload = function_body(geo_js, "upload")
        assert "        [_dataPtr, _dataLen] = _copyBufferToWasm(data);" in upload
        assert "        if (_dataPtr) _free(_dataPtr);" in upload

        set_name = function_body(geo_js, "setName")
        assert "      let _namePtr = 0;" in set_name
        assert "        _namePtr = _encodeString(name);" in set_name

    def test_record_param_allocations_released(self, geo_js):
        body = function_body(geo_js, "addShape")
        assert body[1] == "      const allocs = [];"
        assert "        allocs.forEach(_free);" in body


ALLOCATING_CALLS = ("_malloc(", "_encodeString(", "_copyBufferToWasm(")


class TestCleanupOnFailure:

    @pytest.fixture
    def put_body(self, store_ctx):
        return function_body(JSWasmGenerator(store_ctx).generate()[0].content, "put")

    def test_pointers_declared_before_try(self, put_body):
        try_at = put_body.index("      try {")
        assert put_body[1:try_at] == [
            "      let _keyPtr = 0;",
            "      let _payloadPtr = 0;",
            "      let _payloadLen = 0;",
        ]

    def test_later_marshalling_failure_frees_earlier_allocations(self, put_body):
        try_at = put_body.index("      try {")
        finally_at = put_body.index("      } finally {")
        encode_at = put_body.index("        _keyPtr = _encodeString(key);")
        copy_at = put_body.index("        [_payloadPtr, _payloadLen] = _copyBufferToWasm(payload);")

        assert try_at < encode_at < copy_at < finally_at
        assert put_body[finally_at + 1:finally_at + 3] == [
            "        if (_keyPtr) _free(_keyPtr);",
            "        if (_payloadPtr) _free(_payloadPtr);",
        ]

    def test_every_allocation_inside_try(self, geo_ctx, geo_js):
        for fn in all_exported_functions(geo_ctx.api):
            body = function_body(geo_js, to_camel_case(fn.method.name))
            allocating = [i for i, line in enumerate(body) if any(c in line for c in ALLOCATING_CALLS)]
            if not allocating:
                continue
            try_at = body.index("      try {")
            finally_at = body.index("      } finally {")
            assert all(try_at < i < finally_at for i in allocating), fn.symbol
