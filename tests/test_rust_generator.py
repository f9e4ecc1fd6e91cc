"""Tests for the Rust implementation layer"""

import pytest

from xplatgen.rust_generator import RustGenerator

from conftest import STORE_API, load_context, write_project


@pytest.fixture
def minimal_files(minimal_ctx):
    return {a.path: a for a in RustGenerator(minimal_ctx).generate()}


@pytest.fixture
def geo_files(make_geo_ctx):
    return {a.path: a for a in RustGenerator(make_geo_ctx(impl_lang="rust")).generate()}


class TestArtifacts:

    def test_paths(self, minimal_files):
        assert list(minimal_files) == [
            "test_api_trait.rs", "test_api_ffi.rs", "test_api_types.rs",
            "src/test_api_impl.rs", "Cargo.toml", "src/lib.rs",
        ]
        assert all(a.scaffold and a.project_file for p, a in minimal_files.items()
                   if p in ("src/test_api_impl.rs", "Cargo.toml", "src/lib.rs"))
        assert not minimal_files["test_api_ffi.rs"].scaffold


class TestTrait:

    def test_lifecycle_trait(self, minimal_files):
        trait = minimal_files["test_api_trait.rs"].content
        assert "pub trait Lifecycle {" in trait
        assert "    fn create_engine(&self) -> Result<*mut c_void, CommonErrorCode>;" in trait
        assert "    fn destroy_engine(&self, engine: *mut c_void);" in trait

    def test_parameter_types(self, geo_files):
        trait = geo_files["geo_api_trait.rs"].content
        assert "    fn set_name(&self, engine: *mut c_void, name: &str);" in trait
        assert "    fn upload(&self, engine: *mut c_void, data: &[u8]) -> Result<(), CommonErrorCode>;" in trait
        assert "    fn get_info(&self, engine: *mut c_void) -> GeoInfo;" in trait
        assert "    fn measure(&self, engine: *mut c_void, point: &GeoPoint) -> Result<f32, CommonErrorCode>;" in trait


class TestFfi:

    def test_constructor_writes_out_result(self, minimal_files):
        ffi = minimal_files["test_api_ffi.rs"].content
        assert ('pub unsafe extern "C" fn test_api_lifecycle_create_engine('
                'out_result: *mut *mut c_void) -> i32 {') in ffi
        assert "    match Lifecycle::create_engine(&Impl) {" in ffi
        assert "            *out_result = val;" in ffi
        assert "        Err(e) => e as i32," in ffi

    def test_parameter_conversion(self, geo_files):
        ffi = geo_files["geo_api_ffi.rs"].content
        assert ('pub unsafe extern "C" fn geo_api_renderer_upload('
                'engine: *mut c_void, data: *const u8, data_len: u32) -> i32 {') in ffi
        assert ("    let data: &[u8] = if data.is_null() {\n"
                "        &[]\n"
                "    } else {\n"
                "        std::slice::from_raw_parts(data, data_len as usize)\n"
                "    };") in ffi
        assert "    let name = CStr::from_ptr(name).to_string_lossy();" in ffi
        assert "    let name: &str = &name;" in ffi
        assert "    let point = &*point;" in ffi
        assert "        Ok(()) => 0," in ffi

    def test_nothing_panics_across_the_boundary(self, store_ctx):
        ffi = {a.path: a for a in RustGenerator(store_ctx).generate()}["test_api_ffi.rs"].content
        assert "expect(" not in ffi
        assert "unwrap(" not in ffi

        assert "    let key = match CStr::from_ptr(key).to_str() {" in ffi
        assert "        Err(_) => return 1," in ffi
        assert "    let payload: &mut [u8] = if payload.is_null() {\n        &mut []\n" in ffi
        assert "        std::slice::from_raw_parts_mut(payload, payload_len as usize)" in ffi
        assert "    let label = CStr::from_ptr(label).to_string_lossy();" in ffi

    def test_invalid_utf8_code_without_invalid_argument(self, tmp_path):
        fbs = "namespace Common;\nenum ErrorCode : int32 { Ok = 0, Busy = 7 }\n"
        ctx = load_context(write_project(tmp_path, STORE_API, {"common.fbs": fbs}))
        ffi = {a.path: a for a in RustGenerator(ctx).generate()}["test_api_ffi.rs"].content
        assert "        Err(_) => return -1," in ffi


class TestTypes:

    def test_enums_and_records(self, geo_files):
        types = geo_files["geo_api_types.rs"].content
        assert "#[repr(i32)]" in types
        assert "pub enum CommonErrorCode {" in types
        assert "    InternalError = 4," in types
        assert "#[repr(u8)]" in types
        assert "pub struct GeoPoint {" in types
        assert "    pub x: f32," in types
        assert "    pub message: *const c_char," in types
        assert "    pub points: *const GeoPoint," in types
        assert "    pub points_count: u32," in types
        assert "    pub color: GeoColor," in types


class TestScaffolds:

    def test_lib_rs_points_at_generated_dir(self, minimal_files):
        lib = minimal_files["src/lib.rs"].content
        assert '#[path = "../generated/test_api_types.rs"]' in lib
        assert "pub mod test_api_ffi;" in lib
        assert "pub mod test_api_impl;" in lib

    def test_cargo_and_impl(self, minimal_files):
        cargo = minimal_files["Cargo.toml"].content
        assert 'name = "test_api"' in cargo
        assert 'crate-type = ["cdylib", "staticlib", "rlib"]' in cargo
        impl = minimal_files["src/test_api_impl.rs"].content
        assert "impl Lifecycle for Impl {" in impl
        assert '        todo!("create_engine")' in impl
