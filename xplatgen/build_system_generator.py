"""Build System Generator - generates the per-implementation-language Makefile scaffold"""

import os
from pathlib import Path

from . import naming
from .common import BaseGenerator, all_exported_functions
from .types import APIDefinition, Artifact

ANDROID_ABIS = [
    # (ABI, NDK clang prefix, Rust target, GOARCH, extra env)
    ("arm64-v8a", "aarch64-linux-android", "aarch64-linux-android", "arm64", ""),
    ("armeabi-v7a", "armv7a-linux-androideabi", "armv7-linux-androideabi", "arm", "GOARM=7"),
    ("x86_64", "x86_64-linux-android", "x86_64-linux-android", "amd64", ""),
    ("x86", "i686-linux-android", "i686-linux-android", "386", ""),
]


def wasm_exports(api: APIDefinition) -> str:
    """Emscripten EXPORTED_FUNCTIONS list: _malloc, _free and every C ABI symbol"""
    names = ["_malloc", "_free"] + [f"_{fn.symbol}" for fn in all_exported_functions(api)]
    return "[" + ",".join(f'"{name}"' for name in names) + "]"


class MakefileGenerator(BaseGenerator):
    """Common Makefile skeleton; subclasses fill in the language-specific rules"""

    impl_lang = ""

    def generate(self) -> list[Artifact]:
        return [Artifact(path="Makefile", content=self.generate_makefile(),
                         scaffold=True, project_file=True)]

    @property
    def generated_dir(self) -> str:
        return Path(self.ctx.output_dir).name or "generated"

    def api_def_rel_path(self) -> str:
        """API definition path relative to the project root (the output dir's parent)"""
        if not self.ctx.api_def_path:
            return self.ctx.source_name
        base = os.path.dirname(os.path.abspath(self.ctx.output_dir))
        try:
            return os.path.relpath(os.path.abspath(self.ctx.api_def_path), base)
        except ValueError:
            # different drives on Windows
            return self.ctx.api_def_path

    def generate_makefile(self) -> str:
        lines = self.scaffold_banner("#")
        lines.append("")
        lines.extend(self.variables())
        lines.extend(self.host_config())
        lines.extend(self.binding_variables())
        lines.extend(self.section("WASM exports"))
        lines.extend([f"WASM_EXPORTS := {wasm_exports(self.api)}", ""])
        lines.extend(self.build_config())
        lines.extend(self.codegen_stamp())
        lines.extend(self.local_rules())
        lines.extend(self.clean_rule())
        lines.extend(self.android_rules())
        lines.extend(self.web_rules())
        lines.extend(self.desktop_rules())
        lines.extend(self.aggregate_rules())
        return "\n".join(lines)

    @staticmethod
    def section(title: str) -> list[str]:
        return [f"# --- {title} " + "-" * max(3, 72 - len(title)), ""]

    def variables(self) -> list[str]:
        return [
            "SHELL := /bin/bash",
            "XPLATGEN ?= xplatgen",
            f"API_DEF   := {self.api_def_rel_path()}",
            f"IMPL_LANG := {self.impl_lang}",
            "",
            f"API_NAME    := {self.api_name}",
            f"LIB_NAME    := lib{self.api_name}",
            f"PASCAL_NAME := {naming.to_pascal_case(self.api_name)}",
            f"BUILD_MACRO := {naming.build_macro(self.api_name)}",
            "BUILD_DIR   := build",
            "DIST_DIR    := dist",
            "STAMP       := $(BUILD_DIR)/.generated",
            "",
            "TARGETS ?= android web desktop",
            "target_enabled = $(filter $(1),$(TARGETS))",
            "",
        ]

    def host_config(self) -> list[str]:
        lines = self.section("Host platform")
        lines.extend([
            "HOST_OS   := $(shell uname -s)",
            "HOST_ARCH := $(shell uname -m)",
            "ifeq ($(HOST_OS),Darwin)",
            "  DYLIB_EXT   := dylib",
            "  NDK_HOST_OS := darwin",
            "else ifneq (,$(findstring MINGW,$(HOST_OS))$(findstring MSYS,$(HOST_OS)))",
            "  DYLIB_EXT   := dll",
            "  NDK_HOST_OS := windows",
            "else",
            "  DYLIB_EXT   := so",
            "  NDK_HOST_OS := linux",
            "endif",
            "SHARED_LIB := $(BUILD_DIR)/$(LIB_NAME).$(DYLIB_EXT)",
            "",
            "NDK_VERSION ?= 29.0.14206865",
            "ifdef ANDROID_NDK",
            "  NDK ?= $(ANDROID_NDK)",
            "else ifeq ($(HOST_OS),Darwin)",
            "  NDK ?= $(HOME)/Library/Android/sdk/ndk/$(NDK_VERSION)",
            "else",
            "  NDK ?= $(HOME)/Android/Sdk/ndk/$(NDK_VERSION)",
            "endif",
            "NDK_BIN         := $(NDK)/toolchains/llvm/prebuilt/$(NDK_HOST_OS)-x86_64/bin",
            "ANDROID_MIN_API := 21",
            "",
            "EMCC ?= emcc",
            "",
        ])
        return lines

    def binding_variables(self) -> list[str]:
        lines = self.section("Generated bindings")
        lines.extend([
            f"GEN_DIR            := {self.generated_dir}/",
            "GEN_HEADER         := $(GEN_DIR)$(API_NAME).h",
            "GEN_SWIFT_BINDING  := $(GEN_DIR)$(PASCAL_NAME).swift",
            "GEN_KOTLIN_BINDING := $(GEN_DIR)$(PASCAL_NAME).kt",
            "GEN_JS_BINDING     := $(GEN_DIR)$(API_NAME).js",
            "GEN_JNI_SOURCE     := $(GEN_DIR)$(API_NAME)_jni.c",
            "PLATFORM_SERVICES  := platform_services",
            "",
        ])
        return lines

    def build_config(self) -> list[str]:
        return []

    def codegen_stamp(self) -> list[str]:
        lines = self.section("Codegen")
        lines.extend([
            "$(STAMP): $(API_DEF)",
            "\t@mkdir -p $(BUILD_DIR)",
            f"\t$(XPLATGEN) generate --impl-lang {self.impl_lang} -o {self.generated_dir} $(API_DEF)",
        ])
        lines.extend(self.post_codegen())
        lines.extend([
            "\t@touch $@",
            "",
            "$(GEN_HEADER) $(GEN_KOTLIN_BINDING) $(GEN_JS_BINDING) $(GEN_JNI_SOURCE): $(STAMP)",
            "",
        ])
        return lines

    def post_codegen(self) -> list[str]:
        return []

    def local_rules(self) -> list[str]:
        raise NotImplementedError

    def clean_rule(self) -> list[str]:
        lines = [".PHONY: clean", "clean:"]
        lines.extend(self.clean_commands())
        lines.extend([f"\trm -rf {self.generated_dir} $(BUILD_DIR) $(DIST_DIR)", ""])
        return lines

    def clean_commands(self) -> list[str]:
        return []

    def android_library_rule(self, abi: str, clang: str, rust_target: str, goarch: str, env: str) -> list[str]:
        raise NotImplementedError

    def android_rules(self) -> list[str]:
        lines = self.section("Android: native libraries per ABI plus the Kotlin binding")
        lines.extend(["ifneq ($(call target_enabled,android),)", ""])
        libs = []
        for abi in ANDROID_ABIS:
            lines.extend(self.android_library_rule(*abi))
            libs.append(f"$(DIST_DIR)/android/jniLibs/{abi[0]}/$(LIB_NAME).so")
        lines.extend([
            "ANDROID_KOTLIN_PKG := $(subst _,/,$(API_NAME))",
            "ANDROID_KOTLIN_SRC := $(DIST_DIR)/android/kotlin/$(ANDROID_KOTLIN_PKG)/$(PASCAL_NAME).kt",
            "",
            "$(ANDROID_KOTLIN_SRC): $(GEN_KOTLIN_BINDING)",
            "\t@mkdir -p $(dir $@)",
            "\tcp $< $@",
            "",
            ".PHONY: package-android",
            f"package-android: {' '.join(libs)} $(ANDROID_KOTLIN_SRC)",
            '\t@echo "Packaged Android: $(DIST_DIR)/android/"',
            "",
            "endif",
            "",
        ])
        return lines

    def wasm_rule(self) -> list[str]:
        raise NotImplementedError

    def web_rules(self) -> list[str]:
        lines = self.section("Web: WASM module plus the JS loader")
        lines.extend(["ifneq ($(call target_enabled,web),)", ""])
        lines.extend(self.wasm_rule())
        lines.extend([
            "$(DIST_DIR)/web/$(API_NAME).js: $(GEN_JS_BINDING)",
            "\t@mkdir -p $(dir $@)",
            "\tcp $< $@",
            "",
            ".PHONY: package-web",
            "package-web: $(DIST_DIR)/web/$(API_NAME).wasm $(DIST_DIR)/web/$(API_NAME).js",
            '\t@echo "Packaged Web: $(DIST_DIR)/web/"',
            "",
            "endif",
            "",
        ])
        return lines

    def desktop_rules(self) -> list[str]:
        lines = self.section("Desktop: C header, Swift binding and shared library")
        lines.extend([
            "ifneq ($(call target_enabled,desktop),)",
            "",
            "$(DIST_DIR)/desktop/include/$(API_NAME).h: $(GEN_HEADER)",
            "\t@mkdir -p $(dir $@)",
            "\tcp $< $@",
            "",
            "$(DIST_DIR)/desktop/lib/$(LIB_NAME).$(DYLIB_EXT): $(SHARED_LIB)",
            "\t@mkdir -p $(dir $@)",
            "\tcp $< $@",
            "",
            ".PHONY: package-desktop",
            "package-desktop: $(DIST_DIR)/desktop/include/$(API_NAME).h $(DIST_DIR)/desktop/lib/$(LIB_NAME).$(DYLIB_EXT)",
            '\tif [ -f $(GEN_SWIFT_BINDING) ]; then cp $(GEN_SWIFT_BINDING) $(DIST_DIR)/desktop/include/; fi',
            '\t@echo "Packaged Desktop: $(DIST_DIR)/desktop/"',
            "",
            "endif",
            "",
        ])
        return lines

    def aggregate_rules(self) -> list[str]:
        lines = self.section("Aggregate targets")
        lines.append("PACKAGE_TARGETS :=")
        for target in ("android", "web", "desktop"):
            lines.extend([
                f"ifneq ($(call target_enabled,{target}),)",
                f"PACKAGE_TARGETS += package-{target}",
                "endif",
            ])
        lines.extend([
            "",
            ".PHONY: packages build",
            "packages: $(PACKAGE_TARGETS)",
            "build: packages",
            "",
        ])
        return lines


class NativeMakefileGenerator(MakefileGenerator):
    """C and C++ implementations: compiled directly with the host, NDK and Emscripten compilers"""

    impl_sources = ""
    shim_source = ""

    def build_config(self) -> list[str]:
        lines = self.section("Compiler configuration")
        lines.extend([
            "CC  ?= cc",
            "CXX ?= c++",
            "CFLAGS   := -Wall -Wextra -std=c17 -I. -I$(GEN_DIR)",
            "CXXFLAGS := -Wall -Wextra -std=c++20 -I. -I$(GEN_DIR)",
            "LIB_VISIBILITY_FLAGS := -fvisibility=hidden -D$(BUILD_MACRO)",
            "",
            f"IMPL_SOURCES := {self.impl_sources}",
            f"SHIM_SOURCE  := {self.shim_source}",
            "",
        ])
        return lines

    @property
    def compiler(self) -> str:
        return "$(CXX) $(CXXFLAGS)" if self.shim_source else "$(CC) $(CFLAGS)"

    def local_rules(self) -> list[str]:
        sources = "$(IMPL_SOURCES) $(SHIM_SOURCE)" if self.shim_source else "$(IMPL_SOURCES)"
        return [
            ".PHONY: shared-lib",
            "shared-lib: $(SHARED_LIB)",
            "",
            "$(SHARED_LIB): $(STAMP) $(IMPL_SOURCES)",
            "\t@mkdir -p $(BUILD_DIR)",
            "ifeq ($(HOST_OS),Darwin)",
            f"\t{self.compiler} $(LIB_VISIBILITY_FLAGS) -shared -fPIC \\",
            "\t\t-Wl,-install_name,@rpath/$(LIB_NAME).$(DYLIB_EXT) \\",
            f"\t\t-o $@ {sources} $(PLATFORM_SERVICES)/desktop.c",
            "else",
            f"\t{self.compiler} $(LIB_VISIBILITY_FLAGS) -shared -fPIC \\",
            f"\t\t-o $@ {sources} $(PLATFORM_SERVICES)/desktop.c",
            "endif",
            "",
        ]

    def android_library_rule(self, abi, clang, rust_target, goarch, env) -> list[str]:
        sources = "$(IMPL_SOURCES) $(SHIM_SOURCE)" if self.shim_source else "$(IMPL_SOURCES)"
        driver = "clang++" if self.shim_source else "clang"
        flags = "$(CXXFLAGS)" if self.shim_source else "$(CFLAGS)"
        return [
            f"$(DIST_DIR)/android/jniLibs/{abi}/$(LIB_NAME).so: $(STAMP) $(IMPL_SOURCES)",
            "\t@mkdir -p $(dir $@)",
            f"\t$(NDK_BIN)/{clang}$(ANDROID_MIN_API)-{driver} {flags} $(LIB_VISIBILITY_FLAGS) -shared -fPIC \\",
            f"\t\t-o $@ {sources} $(GEN_JNI_SOURCE) $(PLATFORM_SERVICES)/android.c -llog",
            "",
        ]

    def wasm_rule(self) -> list[str]:
        sources = "$(IMPL_SOURCES) $(SHIM_SOURCE)" if self.shim_source else "$(IMPL_SOURCES)"
        flags = "$(CXXFLAGS)" if self.shim_source else "$(CFLAGS)"
        return [
            "$(DIST_DIR)/web/$(API_NAME).wasm: $(STAMP) $(IMPL_SOURCES)",
            "\t@mkdir -p $(dir $@)",
            f"\t$(EMCC) {flags} $(LIB_VISIBILITY_FLAGS) -O2 -o $@ {sources} \\",
            "\t\t--no-entry \\",
            "\t\t-s 'EXPORTED_FUNCTIONS=$(WASM_EXPORTS)' \\",
            "\t\t-s ERROR_ON_UNDEFINED_SYMBOLS=0 \\",
            "\t\t-s STANDALONE_WASM",
            "",
        ]


class CppBuildSystemGenerator(NativeMakefileGenerator):
    name = "impl_cpp_build_system"
    impl_lang = "cpp"

    @property
    def impl_sources(self) -> str:
        return f"{self.api_name}_impl.cpp"

    @property
    def shim_source(self) -> str:
        return f"$(GEN_DIR){self.api_name}_shim.cpp"


class CBuildSystemGenerator(NativeMakefileGenerator):
    """The C implementation is hand-written against the header; no shim is generated"""

    name = "impl_c_build_system"
    impl_lang = "c"

    @property
    def impl_sources(self) -> str:
        return f"{self.api_name}_impl.c"


class RustBuildSystemGenerator(MakefileGenerator):
    name = "impl_rust_build_system"
    impl_lang = "rust"

    def local_rules(self) -> list[str]:
        return [
            ".PHONY: test shared-lib",
            "test: $(STAMP)",
            "\tcargo test",
            "",
            "shared-lib: $(SHARED_LIB)",
            "",
            "$(SHARED_LIB): $(STAMP)",
            "\tcargo build --release",
            "\t@mkdir -p $(BUILD_DIR)",
            "\tcp target/release/$(LIB_NAME).$(DYLIB_EXT) $@",
            "ifeq ($(HOST_OS),Darwin)",
            "\tinstall_name_tool -id @rpath/$(LIB_NAME).$(DYLIB_EXT) $@",
            "endif",
            "",
        ]

    def clean_commands(self) -> list[str]:
        return ["\tcargo clean"]

    def android_library_rule(self, abi, clang, rust_target, goarch, env) -> list[str]:
        linker_var = "CARGO_TARGET_" + rust_target.upper().replace("-", "_") + "_LINKER"
        return [
            f"$(DIST_DIR)/android/jniLibs/{abi}/$(LIB_NAME).so: $(STAMP)",
            "\t@mkdir -p $(dir $@)",
            f"\t{linker_var}=$(NDK_BIN)/{clang}$(ANDROID_MIN_API)-clang \\",
            f"\t\tcargo build --release --target {rust_target}",
            f"\t$(NDK_BIN)/{clang}$(ANDROID_MIN_API)-clang -shared -fPIC -I$(GEN_DIR) -o $@ \\",
            "\t\t$(GEN_JNI_SOURCE) $(PLATFORM_SERVICES)/android.c \\",
            f"\t\t-Wl,--whole-archive target/{rust_target}/release/$(LIB_NAME).a -Wl,--no-whole-archive -llog",
            "",
        ]

    def wasm_rule(self) -> list[str]:
        return [
            "$(DIST_DIR)/web/$(API_NAME).wasm: $(STAMP)",
            "\t@mkdir -p $(dir $@)",
            "\tcargo build --release --target wasm32-unknown-unknown",
            "\tcp target/wasm32-unknown-unknown/release/$(API_NAME).wasm $@",
            "",
        ]


class GoBuildSystemGenerator(MakefileGenerator):
    """Go sources are generated into the output dir and copied next to go.mod by the codegen rule"""

    name = "impl_go_build_system"
    impl_lang = "go"

    def build_config(self) -> list[str]:
        return [
            "GEN_GO_COPIES := $(notdir $(wildcard $(GEN_DIR)$(API_NAME)_*.go))",
            f"GEN_JNI_LOCAL := {self.api_name}_jni.c",
            "",
        ]

    def post_codegen(self) -> list[str]:
        return ["\tcp $(GEN_DIR)$(API_NAME)_*.go ."]

    def local_rules(self) -> list[str]:
        return [
            ".PHONY: shared-lib",
            "shared-lib: $(SHARED_LIB)",
            "",
            "$(SHARED_LIB): $(STAMP)",
            "\t@mkdir -p $(BUILD_DIR)",
            '\tCGO_CFLAGS="-I$(GEN_DIR)" go build -buildmode=c-shared -o $@ .',
            "",
        ]

    def clean_commands(self) -> list[str]:
        return ["\trm -f $(GEN_GO_COPIES)"]

    def android_library_rule(self, abi, clang, rust_target, goarch, env) -> list[str]:
        env_prefix = f"{env} " if env else ""
        # cgo compiles every .c file in the package dir, so the JNI bridge is copied in for the build
        return [
            f"$(DIST_DIR)/android/jniLibs/{abi}/$(LIB_NAME).so: $(STAMP)",
            "\t@mkdir -p $(dir $@)",
            "\tcp $(GEN_JNI_SOURCE) $(GEN_JNI_LOCAL)",
            f"\tCGO_ENABLED=1 GOOS=android GOARCH={goarch} {env_prefix}\\",
            f"\t\tCC=$(NDK_BIN)/{clang}$(ANDROID_MIN_API)-clang \\",
            '\t\tCGO_CFLAGS="-I$(GEN_DIR)" \\',
            "\t\tgo build -buildmode=c-shared -o $@ . || (rm -f $(GEN_JNI_LOCAL); exit 1)",
            "\trm -f $(GEN_JNI_LOCAL)",
            "",
        ]

    def wasm_rule(self) -> list[str]:
        return [
            "$(DIST_DIR)/web/$(API_NAME).wasm: $(STAMP)",
            "\t@mkdir -p $(dir $@)",
            "\tGOOS=wasip1 GOARCH=wasm go build -buildmode=c-shared -o $@ .",
            "",
        ]


BUILD_SYSTEM_GENERATORS = [
    CppBuildSystemGenerator,
    RustBuildSystemGenerator,
    GoBuildSystemGenerator,
    CBuildSystemGenerator,
]
