"""Generation planner - decides which generators run for a target set and impl language"""

import logging

logger = logging.getLogger(__name__)

TARGET_GENERATORS = {
    "android": ["kotlin"],
    "ios": ["swift"],
    "macos": ["swift"],
    "web": ["jswasm"],
    "windows": [],
    "linux": [],
}

IMPL_LANG_GENERATORS = {
    "cpp": ["impl_cpp", "impl_cpp_build_system", "impl_platform_services"],
    "rust": ["impl_rust", "impl_rust_build_system", "impl_platform_services"],
    "go": ["impl_go", "impl_go_build_system", "impl_platform_services"],
    "c": ["impl_c_build_system", "impl_platform_services"],
}


def plan_generators(targets: list[str], impl_lang: str) -> list[str]:
    """Ordered, de-duplicated generator names for a run"""
    names = ["cheader"]
    for target in targets:
        names.extend(TARGET_GENERATORS.get(target, []))
    names.extend(IMPL_LANG_GENERATORS.get(impl_lang, []))
    if impl_lang == "go" and "web" in targets:
        names.append("impl_go_wasm")

    plan = list(dict.fromkeys(names))
    logger.debug(f"Planned generators: {', '.join(plan)}")
    return plan
