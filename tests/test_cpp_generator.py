"""Tests for the C++ implementation layer"""

import pytest

from xplatgen.cpp_generator import CppGenerator


@pytest.fixture
def minimal_files(minimal_ctx):
    return {a.path: a for a in CppGenerator(minimal_ctx).generate()}


@pytest.fixture
def geo_files(geo_ctx):
    return {a.path: a for a in CppGenerator(geo_ctx).generate()}


class TestArtifacts:

    def test_paths_and_scaffold_flags(self, minimal_files):
        flags = {path: (a.scaffold, a.project_file) for path, a in minimal_files.items()}
        assert flags == {
            "test_api_interface.h": (False, False),
            "test_api_shim.cpp": (False, False),
            "test_api_impl.h": (True, True),
            "test_api_impl.cpp": (True, True),
            "CMakeLists.txt": (True, True),
        }


class TestInterface:

    def test_lifecycle_is_shim_only(self, minimal_files):
        interface = minimal_files["test_api_interface.h"].content
        assert "class TestApiInterface {" in interface
        assert "virtual ~TestApiInterface() = default;" in interface
        assert "create_engine" not in interface
        assert "destroy_engine" not in interface
        assert "TestApiInterface* create_test_api_instance();" in interface

    def test_instance_methods_drop_leading_handle(self, geo_files):
        interface = geo_files["geo_api_interface.h"].content
        assert "    virtual void set_name(std::string_view name) = 0;" in interface
        assert "    virtual int32_t upload(std::span<const uint8_t> data) = 0;" in interface
        assert "    virtual Geo_Info get_info() = 0;" in interface
        assert "    virtual int32_t measure(const Geo_Point* point, float* out_result) = 0;" in interface
        assert "    virtual uint32_t library_version() = 0;" in interface


class TestShim:

    def test_constructor_and_destructor(self, minimal_files):
        shim = minimal_files["test_api_shim.cpp"].content
        assert "TEST_API_EXPORT int32_t test_api_lifecycle_create_engine(engine_handle* out_result) {" in shim
        assert "    TestApiInterface* instance = create_test_api_instance();" in shim
        assert "    *out_result = reinterpret_cast<engine_handle>(instance);" in shim
        assert "    return 0;" in shim
        assert "TEST_API_EXPORT void test_api_lifecycle_destroy_engine(engine_handle engine) {" in shim
        assert "    delete reinterpret_cast<TestApiInterface*>(engine);" in shim

    def test_method_delegation(self, geo_files):
        shim = geo_files["geo_api_shim.cpp"].content
        assert "    GeoApiInterface* self = reinterpret_cast<GeoApiInterface*>(engine);" in shim
        assert "    self->set_name(std::string_view(name));" in shim
        assert "    return self->upload(std::span(data, data_len));" in shim
        assert "    return self->measure(point, out_result);" in shim
        assert "    GeoApiInterface* self = shared_instance();" in shim
        assert "    return self->library_version();" in shim

    def test_every_symbol_defined_once(self, geo_ctx, geo_files):
        from xplatgen.c_header_generator import exported_symbols
        shim = geo_files["geo_api_shim.cpp"].content
        for symbol in exported_symbols(geo_ctx.api):
            assert shim.count(f" {symbol}(") == 1


class TestScaffolds:

    def test_impl_overrides_every_virtual(self, geo_files):
        header = geo_files["geo_api_impl.h"].content
        source = geo_files["geo_api_impl.cpp"].content
        assert header.startswith("// Generated once by xplatgen from api.yaml as a starting point.")
        assert "class GeoApiImpl : public GeoApiInterface {" in header
        assert "    int32_t measure(const Geo_Point* point, float* out_result) override;" in header
        assert "int32_t GeoApiImpl::measure(const Geo_Point* point, float* out_result) {" in source
        assert "    return new GeoApiImpl();" in source

    def test_cmake_lists(self, minimal_files):
        cmake = minimal_files["CMakeLists.txt"].content
        assert "project(test-api VERSION 1.0.0 LANGUAGES C CXX)" in cmake
        assert "    ${GENERATED_DIR}/test_api_shim.cpp" in cmake
        assert "target_compile_definitions(test-api PRIVATE TEST_API_BUILD)" in cmake
