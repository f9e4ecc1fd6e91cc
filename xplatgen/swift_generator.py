"""Swift Generator - generates the Swift wrapper over the C ABI header"""

from typing import Optional

from . import naming
from .common import (
    BaseGenerator, ExportedFunction, all_exported_functions, collect_error_types,
    destructor_owners, instance_handle, is_record,
)
from .type_mapper import TypeMapper
from .types import Artifact, Parameter

SWIFT_TYPES = {
    'int8': 'Int8',
    'int16': 'Int16',
    'int32': 'Int32',
    'int64': 'Int64',
    'uint8': 'UInt8',
    'uint16': 'UInt16',
    'uint32': 'UInt32',
    'uint64': 'UInt64',
    'float32': 'Float',
    'float64': 'Double',
    'bool': 'Bool',
}

SWIFT_KEYWORDS = {
    'associatedtype', 'break', 'case', 'catch', 'class', 'continue', 'default', 'defer',
    'deinit', 'do', 'else', 'enum', 'extension', 'fallthrough', 'false', 'fileprivate',
    'for', 'func', 'guard', 'if', 'import', 'in', 'init', 'inout', 'internal', 'is', 'let',
    'nil', 'operator', 'private', 'protocol', 'public', 'repeat', 'rethrows', 'return',
    'self', 'static', 'struct', 'subscript', 'super', 'switch', 'throw', 'throws', 'true',
    'try', 'typealias', 'var', 'where', 'while',
}

# Used when the error enum's values are not known from the schema
DEFAULT_ERROR_CASES = [
    ("ok", 0),
    ("invalidArgument", 1),
    ("outOfMemory", 2),
    ("notFound", 3),
    ("internalError", 4),
]

FALLBACK_ERROR_CASE = "internalError"


def swift_ident(name: str) -> str:
    return f"`{name}`" if name in SWIFT_KEYWORDS else name


def error_enum_name(error_type: str) -> str:
    """Common.ErrorCode -> CommonErrorCode"""
    return naming.flat_name(error_type)


def error_case_name(value_name: str) -> str:
    """InvalidArgument -> invalidArgument, NOT_FOUND -> notFound"""
    if value_name.isupper():
        value_name = value_name.lower()
    return swift_ident(naming.to_camel_case(value_name))


class SwiftGenerator(BaseGenerator):
    """Generates <Pascal>.swift.

    Handle classes own an OpaquePointer and release it in deinit. String and
    buffer arguments are bridged through nested scoped accessors with the
    ``return``/``try`` keywords on the outermost call only.
    """

    name = "swift"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.fallbacks: dict[str, str] = {}

    def generate(self) -> list[Artifact]:
        pascal = naming.to_pascal_case(self.api_name)
        return [Artifact(path=f"{pascal}.swift", content=self.generate_swift())]

    def generate_swift(self) -> str:
        lines = self.banner()
        lines.extend(["", "import Foundation", ""])

        for error in collect_error_types(self.api):
            lines.extend(self._error_enum(error))

        owners = destructor_owners(self.api)
        fns = all_exported_functions(self.api)
        for handle in self.api.handles:
            if handle.description:
                lines.append(f"/// {handle.description}")
            lines.extend([
                f"public final class {handle.name} {{",
                "    let handle: OpaquePointer",
                "",
                "    init(handle: OpaquePointer) {",
                "        self.handle = handle",
                "    }",
                "",
            ])
            if dtor := owners.get(handle.name):
                lines.extend([
                    "    deinit {",
                    f"        {dtor.symbol}(handle)",
                    "    }",
                    "",
                ])
            for fn in fns:
                if fn.is_constructor and TypeMapper.handle_name(fn.method.return_type) == handle.name:
                    lines.extend(self._function(fn, static=True))
            for fn in fns:
                if fn.role == "method" and instance_handle(fn.method) == handle.name:
                    lines.extend(self._function(fn, static=False))
            lines.extend(["}", ""])

        free = [fn for fn in fns if fn.role == "method" and instance_handle(fn.method) is None]
        if free:
            lines.append(f"public enum {naming.to_pascal_case(self.api_name)} {{")
            for fn in free:
                lines.extend(self._function(fn, static=True))
            lines.extend(["}", ""])
        return "\n".join(lines)

    def _error_enum(self, error: str) -> list[str]:
        info = self.resolved.get(error)
        if info is not None and info.enum_values:
            cases = [(error_case_name(v.name), v.value) for v in info.enum_values]
        else:
            cases = list(DEFAULT_ERROR_CASES)
        names = [name for name, _ in cases]
        if FALLBACK_ERROR_CASE in names:
            self.fallbacks[error] = FALLBACK_ERROR_CASE
        else:
            # unmapped codes still need a case to throw
            cases.append(("unknown", max(value for _, value in cases) + 1))
            self.fallbacks[error] = "unknown"

        lines = [f"public enum {error_enum_name(error)}: Int32, Error {{"]
        for name, value in cases:
            lines.append(f"    case {name} = {value}")
        lines.extend(["}", ""])
        return lines

    # --- types ---

    def _c_name(self, t: str) -> str:
        return naming.flatbuffer_c_name(t)

    def _swift_type(self, t: str) -> str:
        if handle := TypeMapper.handle_name(t):
            return handle
        if TypeMapper.is_primitive(t):
            return SWIFT_TYPES[t]
        return self._c_name(t)

    def _default_value(self, t: str) -> str:
        if t == 'bool':
            return "false"
        if t in ('float32', 'float64'):
            return "0.0"
        if is_record(t, self.resolved):
            return f"{self._c_name(t)}()"
        return "0"

    def _param(self, p: Parameter) -> tuple[str, Optional[str], list[str]]:
        """Swift declaration, optional scoped accessor opener and C call arguments"""
        name = swift_ident(naming.to_camel_case(p.name))
        ptr = f"{naming.to_camel_case(p.name)}Ptr"
        kind = TypeMapper.classify(p.type)
        if kind == TypeMapper.KIND_STRING:
            return f"{name}: String", f"{name}.withCString {{ {ptr} in", [ptr]
        if kind == TypeMapper.KIND_BUFFER:
            elem = TypeMapper.buffer_element(p.type)
            count = f"UInt32({ptr}.count)"
            if p.transfer == "ref_mut":
                return (f"{name}: inout [{SWIFT_TYPES[elem]}]",
                        f"{name}.withUnsafeMutableBufferPointer {{ {ptr} in",
                        [f"{ptr}.baseAddress", count])
            if elem == "uint8":
                return (f"{name}: Data", f"{name}.withUnsafeBytes {{ {ptr} in",
                        [f"{ptr}.bindMemory(to: UInt8.self).baseAddress", count])
            return (f"{name}: [{SWIFT_TYPES[elem]}]", f"{name}.withUnsafeBufferPointer {{ {ptr} in",
                    [f"{ptr}.baseAddress", count])
        if handle := TypeMapper.handle_name(p.type):
            return f"{name}: {handle}", None, [f"{name}.handle"]
        if kind == TypeMapper.KIND_PRIMITIVE:
            return f"{name}: {SWIFT_TYPES[p.type]}", None, [name]

        c_name = self._c_name(p.type)
        if p.transfer == "ref_mut":
            return f"{name}: inout {c_name}", None, [f"&{name}"]
        if p.transfer == "ref":
            return f"{name}: {c_name}", f"withUnsafePointer(to: {name}) {{ {ptr} in", [ptr]
        return f"{name}: {c_name}", None, [name]

    # --- functions ---

    def _function(self, fn: ExportedFunction, static: bool) -> list[str]:
        method = fn.method
        params = method.parameters if static else method.parameters[1:]
        decls, openers = [], []
        args = [] if static else ["handle"]
        for p in params:
            decl, opener, call_args = self._param(p)
            decls.append(decl)
            if opener:
                openers.append(opener)
            args.extend(call_args)

        ret = method.return_type
        fallible = method.is_fallible
        handle_ret = TypeMapper.handle_name(ret) if ret else None

        signature = f"    public {'static ' if static else ''}func {swift_ident(naming.to_camel_case(method.name))}"
        signature += f"({', '.join(decls)})"
        if fallible:
            signature += " throws"
        if ret:
            signature += f" -> {self._swift_type(ret)}"

        lines = []
        if method.description:
            lines.append(f"    /// {method.description}")
        lines.append(signature + " {")

        if fallible and ret:
            if handle_ret:
                lines.append("        var result: OpaquePointer? = nil")
            else:
                lines.append(f"        var result: {self._swift_type(ret)} = {self._default_value(ret)}")
            args.append("&result")
        call = f"{fn.symbol}({', '.join(args)})"

        if fallible:
            throw = f"throw {error_enum_name(method.error)}(rawValue: code) ?? .{self.fallbacks[method.error]}"
            guard = "guard code == 0, let ptr = result else {" if handle_ret else "guard code == 0 else {"
            body = [f"let code = {call}", guard, f"    {throw}", "}"]
            if handle_ret:
                body.append(f"return {handle_ret}(handle: ptr)")
            elif ret:
                body.append("return result")
            prefix = "return try " if ret else "try "
        elif handle_ret:
            body = [f"return {handle_ret}(handle: {call})"]
            prefix = "return "
        elif ret:
            body = [f"return {call}"]
            prefix = "return "
        else:
            body = [call]
            prefix = ""

        indent = "        "
        for i, opener in enumerate(openers):
            lines.append(f"{indent}{prefix if i == 0 else ''}{opener}")
            indent += "    "
        lines.extend(f"{indent}{line}" for line in body)
        for _ in openers:
            indent = indent[:-4]
            lines.append(f"{indent}}}")
        lines.extend(["    }", ""])
        return lines
