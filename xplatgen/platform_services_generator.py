"""Platform Services Generator - generates per-platform stubs for the six platform-service symbols"""

from .common import BaseGenerator
from .types import Artifact

DESKTOP_TARGETS = ("windows", "macos", "linux")


class PlatformServicesGenerator(BaseGenerator):
    """Emits platform_services/<platform>.c scaffolds for the effective targets.

    Desktop logs to stderr, iOS uses os_log and Android __android_log_print.
    Resource access is stubbed everywhere. On the web the JS loader supplies
    the symbols as WebAssembly imports, so web.c only documents that.
    """

    name = "impl_platform_services"

    def generate(self) -> list[Artifact]:
        targets = self.api.effective_targets()
        artifacts = []
        if any(t in targets for t in DESKTOP_TARGETS):
            artifacts.append(self._artifact("desktop", self.generate_desktop()))
        if "ios" in targets:
            artifacts.append(self._artifact("ios", self.generate_ios()))
        if "android" in targets:
            artifacts.append(self._artifact("android", self.generate_android()))
        if "web" in targets:
            artifacts.append(self._artifact("web", self.generate_web()))
        return artifacts

    @staticmethod
    def _artifact(platform: str, content: str) -> Artifact:
        return Artifact(path=f"platform_services/{platform}.c", content=content,
                        scaffold=True, project_file=True)

    def _preamble(self, summary: str, includes: list[str]) -> list[str]:
        lines = self.scaffold_banner()
        lines.extend([
            "",
            "/*",
            f" * {summary}",
            " */",
            "",
        ])
        lines.extend(f"#include {inc}" for inc in includes)
        lines.extend(["", f'#include "{self.api_name}.h"', ""])
        return lines

    def generate_desktop(self) -> str:
        lines = self._preamble(f"Desktop platform services for {self.api_name}. Logs go to stderr.",
                               ["<stdint.h>", "<stdio.h>"])
        lines.extend([
            f"void {self.api_name}_log_sink(int32_t level, const char* tag, const char* message) {{",
            '    static const char* const names[] = { "TRACE", "DEBUG", "INFO", "WARN", "ERROR" };',
            '    const char* name = (level >= 0 && level < 5) ? names[level] : "LOG";',
            '    fprintf(stderr, "[%s] %s: %s\\n", name, tag ? tag : "", message ? message : "");',
            "}",
            "",
        ])
        lines.extend(self._resource_stubs())
        return "\n".join(lines)

    def generate_ios(self) -> str:
        lines = self._preamble(f"iOS platform services for {self.api_name}. Logging uses os_log.",
                               ["<stdint.h>", "<os/log.h>"])
        lines.extend([
            f"void {self.api_name}_log_sink(int32_t level, const char* tag, const char* message) {{",
            "    os_log_type_t type = (level <= 1) ? OS_LOG_TYPE_DEBUG : OS_LOG_TYPE_DEFAULT;",
            '    os_log_with_type(OS_LOG_DEFAULT, type, "[%{public}s] %{public}s", tag, message);',
            "}",
            "",
        ])
        lines.extend(self._resource_stubs())
        return "\n".join(lines)

    def generate_android(self) -> str:
        lines = self._preamble(f"Android platform services for {self.api_name}. Logging uses __android_log_print.",
                               ["<stdint.h>", "<android/log.h>"])
        lines.extend([
            f"void {self.api_name}_log_sink(int32_t level, const char* tag, const char* message) {{",
            "    int prio = (level <= 1) ? ANDROID_LOG_DEBUG : ANDROID_LOG_INFO;",
            '    __android_log_print(prio, tag, "%s", message);',
            "}",
            "",
        ])
        lines.extend(self._resource_stubs())
        return "\n".join(lines)

    def generate_web(self) -> str:
        lines = self.scaffold_banner()
        lines.extend([
            "",
            "/*",
            f" * Web platform services for {self.api_name}.",
            " *",
            f" * The {self.api_name}_log_sink and {self.api_name}_resource_* functions are",
            ' * WebAssembly imports from the "env" module, supplied by the JS loader in',
            f" * {self.api_name}.js. Pass a services object to the loader to override them.",
            " */",
            "",
        ])
        return "\n".join(lines)

    def _resource_stubs(self) -> list[str]:
        api = self.api_name
        return [
            f"uint32_t {api}_resource_count(void) {{",
            "    return 0;",
            "}",
            "",
            f"int32_t {api}_resource_name(uint32_t index, char* buffer, uint32_t buffer_size) {{",
            "    (void)index;",
            "    (void)buffer;",
            "    (void)buffer_size;",
            "    return -1;",
            "}",
            "",
            f"int32_t {api}_resource_exists(const char* name) {{",
            "    (void)name;",
            "    return 0;",
            "}",
            "",
            f"uint32_t {api}_resource_size(const char* name) {{",
            "    (void)name;",
            "    return 0;",
            "}",
            "",
            f"int32_t {api}_resource_read(const char* name, uint8_t* buffer, uint32_t buffer_size) {{",
            "    (void)name;",
            "    (void)buffer;",
            "    (void)buffer_size;",
            "    return -1;",
            "}",
            "",
        ]
