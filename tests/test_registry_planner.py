"""Tests for the generator registry and the generation planner"""

import pytest

from xplatgen.c_header_generator import CHeaderGenerator
from xplatgen.errors import DuplicateGeneratorError
from xplatgen.planner import plan_generators
from xplatgen.registry import GeneratorRegistry, default_registry, register_all
from xplatgen.types import ALL_TARGETS, IMPL_LANGS

BUILT_IN = [
    "cheader", "impl_c_build_system", "impl_cpp", "impl_cpp_build_system", "impl_go",
    "impl_go_build_system", "impl_go_wasm", "impl_platform_services", "impl_rust",
    "impl_rust_build_system", "jswasm", "kotlin", "swift",
]


class TestRegistry:

    def test_register_twice_fails(self):
        registry = GeneratorRegistry()
        registry.register("cheader", CHeaderGenerator)
        with pytest.raises(DuplicateGeneratorError, match='"cheader" already registered'):
            registry.register("cheader", CHeaderGenerator)

    def test_register_all_twice_fails(self):
        registry = GeneratorRegistry()
        register_all(registry)
        with pytest.raises(DuplicateGeneratorError):
            register_all(registry)

    def test_unknown_name(self, minimal_ctx):
        assert GeneratorRegistry().get("nope", minimal_ctx) is None

    def test_same_name_yields_equivalent_instances(self, minimal_ctx):
        registry = default_registry()
        first = registry.get("cheader", minimal_ctx)
        second = registry.get("cheader", minimal_ctx)

        assert first is not second
        assert type(first) is type(second)
        assert first.generate() == second.generate()

    def test_default_registry_contents(self):
        assert default_registry().names() == BUILT_IN
        assert default_registry() is default_registry()
        assert "swift" in default_registry()


class TestPlanner:

    def test_apple_targets_with_rust(self):
        assert plan_generators(["ios", "macos"], "rust") == [
            "cheader", "swift", "impl_rust", "impl_rust_build_system", "impl_platform_services",
        ]

    def test_go_with_web_adds_wasm_shim(self):
        assert plan_generators(["android", "web"], "go") == [
            "cheader", "kotlin", "jswasm", "impl_go", "impl_go_build_system",
            "impl_platform_services", "impl_go_wasm",
        ]

    def test_go_without_web(self):
        assert "impl_go_wasm" not in plan_generators(["linux"], "go")

    def test_c_has_no_impl_generator(self):
        assert plan_generators(["windows", "linux"], "c") == [
            "cheader", "impl_c_build_system", "impl_platform_services",
        ]

    @pytest.mark.parametrize("impl_lang", IMPL_LANGS)
    def test_every_plan_is_registered_and_unique(self, impl_lang):
        plan = plan_generators(ALL_TARGETS, impl_lang)
        assert plan[0] == "cheader"
        assert len(plan) == len(set(plan))
        assert all(name in default_registry() for name in plan)
