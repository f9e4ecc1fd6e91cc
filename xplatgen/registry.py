"""Generator registry - maps emitter names to factories"""

import threading
from typing import Callable, Optional

from .common import BaseGenerator, GenerationContext
from .errors import DuplicateGeneratorError

GeneratorFactory = Callable[[GenerationContext], BaseGenerator]


class GeneratorRegistry:
    """Name -> factory table, written once at startup and read concurrently afterwards"""

    def __init__(self):
        self._lock = threading.RLock()
        self._factories: dict[str, GeneratorFactory] = {}

    def register(self, name: str, factory: GeneratorFactory):
        with self._lock:
            if name in self._factories:
                raise DuplicateGeneratorError(f'generator "{name}" already registered')
            self._factories[name] = factory

    def get(self, name: str, ctx: GenerationContext) -> Optional[BaseGenerator]:
        """Return a fresh generator instance, or None for an unknown name"""
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            return None
        return factory(ctx)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._factories


def register_all(registry: GeneratorRegistry):
    """Register every built-in generator"""
    from .build_system_generator import BUILD_SYSTEM_GENERATORS
    from .c_header_generator import CHeaderGenerator
    from .cpp_generator import CppGenerator
    from .go_generator import GoGenerator
    from .go_wasm_generator import GoWasmGenerator
    from .jswasm_generator import JSWasmGenerator
    from .kotlin_generator import KotlinGenerator
    from .platform_services_generator import PlatformServicesGenerator
    from .rust_generator import RustGenerator
    from .swift_generator import SwiftGenerator

    for cls in (CHeaderGenerator, KotlinGenerator, SwiftGenerator, JSWasmGenerator,
                CppGenerator, RustGenerator, GoGenerator, GoWasmGenerator,
                PlatformServicesGenerator, *BUILD_SYSTEM_GENERATORS):
        registry.register(cls.name, cls)


_default_registry: Optional[GeneratorRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> GeneratorRegistry:
    """Process-wide registry, populated on first use"""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            registry = GeneratorRegistry()
            register_all(registry)
            _default_registry = registry
        return _default_registry
