"""Semantic validator - checks the IR against rules the structural schema cannot express"""

from typing import Optional

from .errors import SemanticValidationError, ValidationIssue
from .naming import destructor_name, is_constructor_name
from .type_mapper import TypeMapper
from .types import APIDefinition, Interface, Method, Parameter, ResolvedTypes, TYPE_KIND_ENUM, TYPE_KIND_UNION


class SemanticValidator:
    """Accumulates every violation in one pass over the API description.

    ``resolved`` may be None when the FlatBuffers schemas were not parsed;
    FlatBuffer type lookups are then skipped.
    """

    def __init__(self, api: APIDefinition, resolved: Optional[ResolvedTypes] = None):
        self.api = api
        self.resolved = resolved
        self.issues: list[ValidationIssue] = []
        self.handle_names = {h.name for h in api.handles}

    def validate(self) -> list[ValidationIssue]:
        self.issues = []
        self._check_handles()

        iface_seen = set()
        owners: dict[str, str] = {}
        for i, iface in enumerate(self.api.interfaces):
            path = f"interfaces[{i}]"
            if iface.name in iface_seen:
                self._add(f"{path}.name", f'duplicate interface name "{iface.name}"')
            iface_seen.add(iface.name)

            if not iface.constructors and not iface.methods:
                self._add(path, f'interface "{iface.name}" must declare at least one constructor or method')

            handle = self._check_constructors(path, iface)
            if handle:
                if handle in owners:
                    self._add(f"{path}.constructors",
                              f'handle "{handle}" is already constructed by interface "{owners[handle]}"')
                else:
                    owners[handle] = iface.name
            self._check_methods(path, iface, handle)

        return self.issues

    def _add(self, path: str, message: str):
        self.issues.append(ValidationIssue(path, message))

    def _check_handles(self):
        seen = set()
        for i, handle in enumerate(self.api.handles):
            if handle.name in seen:
                self._add(f"handles[{i}].name", f'duplicate handle name "{handle.name}"')
            seen.add(handle.name)

    def _check_constructors(self, path: str, iface: Interface) -> Optional[str]:
        """Validate constructor discipline; returns the constructed handle name"""
        seen = set()
        constructed = None
        for j, ctor in enumerate(iface.constructors):
            ctor_path = f"{path}.constructors[{j}]"
            if ctor.name in seen:
                self._add(f"{ctor_path}.name",
                          f'duplicate constructor name "{ctor.name}" in interface "{iface.name}"')
            seen.add(ctor.name)

            if not is_constructor_name(ctor.name):
                self._add(f"{ctor_path}.name",
                          f'constructor name "{ctor.name}" must be "create" or start with "create_"')
            if not ctor.error:
                self._add(f"{ctor_path}.error", f'constructor "{ctor.name}" must declare an error type')

            handle = TypeMapper.handle_name(ctor.return_type)
            if handle is None:
                self._add(f"{ctor_path}.returns", f'constructor "{ctor.name}" must return a handle')
            elif constructed is None:
                constructed = handle
            elif handle != constructed:
                self._add(f"{ctor_path}.returns.type",
                          f'constructor "{ctor.name}" returns handle "{handle}" but interface '
                          f'"{iface.name}" constructs "{constructed}"')

            for k, param in enumerate(ctor.parameters):
                if TypeMapper.handle_name(param.type) is not None:
                    self._add(f"{ctor_path}.parameters[{k}].type",
                              f'constructor "{ctor.name}" must not take handle parameters')

            self._check_method(ctor_path, ctor)
        return constructed

    def _check_methods(self, path: str, iface: Interface, handle: Optional[str]):
        ctor_names = {c.name for c in iface.constructors}
        destructor = destructor_name(handle) if handle else None
        seen = set()
        for j, method in enumerate(iface.methods):
            method_path = f"{path}.methods[{j}]"
            if method.name in seen:
                self._add(f"{method_path}.name",
                          f'duplicate method name "{method.name}" in interface "{iface.name}"')
            elif method.name in ctor_names:
                self._add(f"{method_path}.name",
                          f'method name "{method.name}" collides with a constructor in interface "{iface.name}"')
            elif method.name == destructor:
                self._add(f"{method_path}.name",
                          f'method name "{method.name}" collides with the generated destructor '
                          f'in interface "{iface.name}"')
            seen.add(method.name)
            self._check_method(method_path, method)

    def _check_method(self, path: str, method: Method):
        for k, param in enumerate(method.parameters):
            self._check_param(f"{path}.parameters[{k}]", param)

        if method.returns is not None:
            self._check_return(f"{path}.returns.type", method.returns.type)

        if method.error and self.resolved is not None:
            info = self.resolved.get(method.error)
            if info is None:
                self._add(f"{path}.error", f'error type "{method.error}" not found in FlatBuffers schemas')
            elif info.kind != TYPE_KIND_ENUM:
                self._add(f"{path}.error", f'error type "{method.error}" must be an enum, got {info.kind}')

    def _check_param(self, path: str, param: Parameter):
        t = param.type
        kind = TypeMapper.classify(t)

        if kind == TypeMapper.KIND_PRIMITIVE:
            return

        if kind == TypeMapper.KIND_STRING:
            if param.transfer and param.transfer != "ref":
                self._add(f"{path}.transfer", "string parameters always use ref transfer semantics")
            return

        if kind == TypeMapper.KIND_BUFFER:
            elem = TypeMapper.buffer_element(t)
            if not TypeMapper.is_primitive(elem):
                self._add(f"{path}.type", f'buffer element type "{elem}" must be a primitive type')
            if param.transfer in ("", "value"):
                self._add(f"{path}.transfer", "buffer<T> parameters must specify ref or ref_mut transfer")
            return

        if kind == TypeMapper.KIND_HANDLE:
            handle = TypeMapper.handle_name(t)
            if handle not in self.handle_names:
                self._add(f"{path}.type", f'handle "{handle}" not defined in handles section')
            if param.transfer and param.transfer != "value":
                self._add(f"{path}.transfer", "handle parameters always use value transfer (pointer copy)")
            return

        if kind == TypeMapper.KIND_FLATBUFFER:
            self._check_flatbuffer(f"{path}.type", t, "parameter")
            return

        self._add(f"{path}.type", f'unknown type "{t}"')

    def _check_return(self, path: str, t: str):
        kind = TypeMapper.classify(t)
        if kind == TypeMapper.KIND_STRING:
            self._add(path, "string cannot be used as a return type; use a FlatBuffer result type")
        elif kind == TypeMapper.KIND_BUFFER:
            self._add(path, "buffer<T> cannot be used as a return type; use a FlatBuffer result type")
        elif kind == TypeMapper.KIND_HANDLE:
            handle = TypeMapper.handle_name(t)
            if handle not in self.handle_names:
                self._add(path, f'handle "{handle}" not defined in handles section')
        elif kind == TypeMapper.KIND_FLATBUFFER:
            self._check_flatbuffer(path, t, "return")
        elif kind != TypeMapper.KIND_PRIMITIVE:
            self._add(path, f'unknown return type "{t}"')

    def _check_flatbuffer(self, path: str, t: str, role: str):
        if self.resolved is None:
            return
        info = self.resolved.get(t)
        if info is None:
            self._add(path, f'FlatBuffer type "{t}" not found in schemas')
        elif info.kind == TYPE_KIND_UNION:
            self._add(path, f'union type "{t}" cannot be used as a {role} type')


def validate(api: APIDefinition, resolved: Optional[ResolvedTypes] = None):
    """Run semantic validation, raising SemanticValidationError on any violation"""
    issues = SemanticValidator(api, resolved).validate()
    if issues:
        raise SemanticValidationError(issues)
