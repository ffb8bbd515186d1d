"""
Resource nodes and typed argument structs.

Every resource kind is described by a ``ResourceArgs`` dataclass: the class
is the kind tag, its fields are the typed properties, and ``validate()`` is
run by the graph builder before anything is provisioned.
"""

from __future__ import annotations

import dataclasses
import ipaddress
import re
from collections.abc import Iterable, Mapping
from typing import Any, ClassVar, TypeVar

from stackweave.core.cells import Deferred, Ref, ValueCell, iter_references, resolve_value
from stackweave.exceptions import ConfigurationError, ProvisioningError

T = TypeVar("T")

#: A property value: a literal of type T or a value produced by another resource
Input = T | Deferred

_NAME_RE = re.compile(r"^[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")


def is_literal(value: Any) -> bool:
    """True when ``value`` is known at declaration time."""
    return not isinstance(value, Deferred)


class ArgsStruct:
    """
    Base for argument dataclasses.

    Subclasses override ``check()`` for their own rules; ``validate()`` adds
    the problems of nested structs, prefixed with the field path.
    """

    def check(self) -> list[str]:
        return []

    def validate(self, prefix: str = "") -> list[str]:
        problems = [f"{prefix}{p}" for p in self.check()]
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, ArgsStruct):
                problems.extend(value.validate(f"{prefix}{f.name}."))
            elif isinstance(value, (list, tuple)):
                for i, item in enumerate(value):
                    if isinstance(item, ArgsStruct):
                        problems.extend(item.validate(f"{prefix}{f.name}[{i}]."))
        return problems


class ResourceArgs(ArgsStruct):
    """Typed arguments of one resource kind."""

    KIND: ClassVar[str] = ""
    OUTPUTS: ClassVar[tuple[str, ...]] = ("id",)

    @property
    def kind(self) -> str:
        return self.KIND

    @property
    def output_names(self) -> tuple[str, ...]:
        return self.OUTPUTS

    def properties(self) -> dict[str, Any]:
        """Declared (unresolved) properties, omitting fields left as None."""
        return {
            f.name: getattr(self, f.name) for f in dataclasses.fields(self) if getattr(self, f.name) is not None
        }


class GenericArgs(ResourceArgs):
    """Untyped arguments for kinds without a dedicated struct."""

    def __init__(
        self,
        kind: str,
        properties: Mapping[str, Any] | None = None,
        outputs: Iterable[str] = ("id",),
    ) -> None:
        self._kind = kind
        self._properties = dict(properties or {})
        self._outputs = tuple(outputs)

    def __repr__(self) -> str:
        return f"GenericArgs({self._kind!r}, {self._properties!r})"

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def output_names(self) -> tuple[str, ...]:
        return self._outputs

    def properties(self) -> dict[str, Any]:
        return dict(self._properties)

    def check(self) -> list[str]:
        problems = []
        if not self._kind:
            problems.append("kind must not be empty")
        if not self._outputs:
            problems.append("at least one output must be declared")
        return problems

    def validate(self, prefix: str = "") -> list[str]:
        return [f"{prefix}{p}" for p in self.check()]


class ResourceNode:
    """
    One declared resource: name, typed args and ordering constraints.

    Output cells are created here, one per output name of the kind, and are
    written by the executor once the resource has been provisioned.
    """

    def __init__(
        self,
        name: str,
        args: ResourceArgs,
        *,
        depends_on: Iterable[ResourceNode | str] | None = None,
        provider: ResourceNode | None = None,
    ) -> None:
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise ConfigurationError(f"Invalid resource name: {name!r}")
        if not isinstance(args, ResourceArgs):
            raise ConfigurationError(
                f"Resource '{name}' args must be a ResourceArgs instance, got {type(args).__name__}",
                nodes=[name],
            )
        self.name = name
        self.args = args
        self.depends_on = list(depends_on or [])
        self.provider = provider
        self.outputs: dict[str, ValueCell] = {key: ValueCell(name, key) for key in args.output_names}

    def __repr__(self) -> str:
        return f"ResourceNode({self.name!r}, {self.kind!r})"

    @property
    def kind(self) -> str:
        return self.args.kind

    def output(self, key: str) -> Ref:
        """Reference to one of this resource's outputs."""
        if key not in self.outputs:
            raise ConfigurationError(
                f"{self.kind} '{self.name}' has no output '{key}' (available: {', '.join(self.outputs)})",
                nodes=[self.name],
            )
        return Ref(self.name, key, (), self.outputs[key])

    def explicit_dependencies(self) -> list[str]:
        """Names this node must follow for reasons not expressed by references."""
        names = []
        for dep in self.depends_on:
            dep_name = dep.name if isinstance(dep, ResourceNode) else dep
            if dep_name not in names:
                names.append(dep_name)
        if self.provider is not None and self.provider.name not in names:
            names.append(self.provider.name)
        return names

    def references(self) -> list[Ref]:
        return list(iter_references(self.args.properties()))

    def validate(self) -> list[str]:
        return self.args.validate()

    def resolve_properties(self) -> dict[str, Any]:
        """Concrete property values; every referenced output must be resolved."""
        return resolve_value(self.args.properties())

    def settle_outputs(self, outputs: Mapping[str, Any]) -> None:
        """
        Populate output cells from a provisioning result.

        Raises:
            ProvisioningError: If the result lacks a declared output
        """
        if not isinstance(outputs, Mapping):
            raise ProvisioningError(self.name, f"provisioner returned {type(outputs).__name__}, expected a mapping")
        missing = [key for key in self.outputs if key not in outputs]
        if missing:
            raise ProvisioningError(self.name, f"provisioner did not return outputs: {', '.join(missing)}")
        for key, cell in self.outputs.items():
            cell.resolve(outputs[key])

    def fail_outputs(self, error: BaseException) -> None:
        """Fail every output cell that has not settled yet."""
        for cell in self.outputs.values():
            if not cell.is_settled:
                cell.fail(error)


# --- Shared validation helpers -------------------------------------------------


def check_choice(problems: list[str], field_name: str, value: Any, choices: Iterable[str]) -> None:
    choices = tuple(choices)
    if value is not None and is_literal(value) and value not in choices:
        problems.append(f"{field_name} must be one of {', '.join(choices)}, got {value!r}")


def check_type(problems: list[str], field_name: str, value: Any, expected: type | tuple[type, ...]) -> None:
    if value is None or not is_literal(value):
        return
    # bool is an int subclass; an int field must not accept True/False
    if isinstance(value, bool) and bool not in (expected if isinstance(expected, tuple) else (expected,)):
        problems.append(f"{field_name} must be {_type_names(expected)}, got bool")
    elif not isinstance(value, expected):
        problems.append(f"{field_name} must be {_type_names(expected)}, got {type(value).__name__}")


def check_required(problems: list[str], field_name: str, value: Any) -> None:
    if value is None or (is_literal(value) and value == ""):
        problems.append(f"{field_name} is required")


def check_cidr(problems: list[str], field_name: str, value: Any, *, prefix_only: bool = False) -> None:
    """Validate an IPv4 CIDR range; ``prefix_only`` also accepts a bare ``/N`` size."""
    if value is None or not is_literal(value):
        return
    if not isinstance(value, str):
        problems.append(f"{field_name} must be a CIDR string, got {type(value).__name__}")
        return
    if prefix_only and value.startswith("/"):
        size = value[1:]
        if not size.isdigit() or not 0 <= int(size) <= 32:
            problems.append(f"{field_name} has an invalid prefix length: {value!r}")
        return
    try:
        ipaddress.IPv4Network(value)
    except ValueError as e:
        problems.append(f"{field_name} is not a valid CIDR range: {e}")


def _type_names(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__
