"""Tests for the Kotlin binding and its JNI bridge"""

import pytest

from xplatgen.kotlin_generator import KotlinGenerator, exception_name, native_method_name


@pytest.fixture
def minimal_files(minimal_ctx):
    return {a.path: a.content for a in KotlinGenerator(minimal_ctx).generate()}


@pytest.fixture
def geo_files(geo_ctx):
    return {a.path: a.content for a in KotlinGenerator(geo_ctx).generate()}


class TestNames:

    def test_exception_name(self):
        assert exception_name("Common.ErrorCode") == "CommonErrorCodeException"

    def test_native_method_name(self):
        assert native_method_name("lifecycle", "create_engine") == "nativeLifecycleCreateEngine"

    def test_artifact_paths(self, minimal_files):
        assert list(minimal_files) == ["TestApi.kt", "test_api_jni.c"]


class TestKotlinFile:

    def test_exception_class(self, minimal_files):
        kotlin = minimal_files["TestApi.kt"]
        assert "package test.api" in kotlin
        assert ('class CommonErrorCodeException(val errorCode: Int) : '
                'Exception("Common.ErrorCode error code: $errorCode")') in kotlin

    def test_factory_throws_on_first_long(self, minimal_files):
        kotlin = minimal_files["TestApi.kt"]
        assert "    fun createEngine(): Engine {" in kotlin
        assert "        val result = nativeLifecycleCreateEngine()" in kotlin
        assert "        if (result[0] != 0L) throw CommonErrorCodeException(result[0].toInt())" in kotlin
        assert "        return Engine(result[1])" in kotlin

    def test_handle_class_closes_through_destructor(self, minimal_files):
        kotlin = minimal_files["TestApi.kt"]
        assert "class Engine internal constructor(internal val handle: Long) : AutoCloseable {" in kotlin
        assert "        TestApi.nativeLifecycleDestroyEngine(handle)" in kotlin

    def test_native_declarations(self, minimal_files):
        kotlin = minimal_files["TestApi.kt"]
        assert '        System.loadLibrary("test_api")' in kotlin
        assert "    external fun nativeLifecycleCreateEngine(): LongArray" in kotlin
        assert "    external fun nativeLifecycleDestroyEngine(engine: Long)" in kotlin

    def test_records_and_instance_methods(self, geo_files):
        kotlin = geo_files["GeoApi.kt"]
        assert "data class GeoPoint(val x: Float, val y: Float)" in kotlin
        assert "data class GeoShape(val name: String, val color: Byte, val points: Array<GeoPoint>)" in kotlin
        assert "data class GeoInfo(val message: String, val apiImpl: String)" in kotlin
        assert "    fun measure(point: GeoPoint): Float {" in kotlin
        assert "        return Float.fromBits(result[1].toInt())" in kotlin
        assert "    fun upload(data: ByteArray) {" in kotlin
        assert "        if (rc != 0) throw CommonErrorCodeException(rc)" in kotlin
        assert "    fun libraryVersion(): Int {" in kotlin


class TestJni:

    def test_constructor_returns_long_pair(self, minimal_files):
        jni = minimal_files["test_api_jni.c"]
        assert '#include "test_api.h"' in jni
        assert "JNIEXPORT jlongArray JNICALL" in jni
        assert "Java_test_api_TestApi_nativeLifecycleCreateEngine(JNIEnv *env, jobject thiz) {" in jni
        assert "    engine_handle out_result = NULL;" in jni
        assert "    int32_t rc = test_api_lifecycle_create_engine(&out_result);" in jni
        assert "    values[1] = (jlong)(intptr_t)out_result;" in jni

    def test_destructor(self, minimal_files):
        jni = minimal_files["test_api_jni.c"]
        assert "Java_test_api_TestApi_nativeLifecycleDestroyEngine(JNIEnv *env, jobject thiz, jlong engine) {" in jni
        assert "    test_api_lifecycle_destroy_engine((engine_handle)(intptr_t)engine);" in jni

    def test_float_result_copied_bitwise(self, geo_files):
        jni = geo_files["geo_api_jni.c"]
        assert "    float out_result = 0;" in jni
        assert "    memcpy(&values[1], &out_result, sizeof(out_result));" in jni

    def test_record_helpers(self, geo_files):
        jni = geo_files["geo_api_jni.c"]
        assert "jni_pins pins = { NULL, 0 };" in jni
        assert "jni_pins_release(env, &pins);" in jni
        assert "    return jni_new_Geo_Info(env, &result);" in jni
