"""
Value cells and output references.

A ValueCell is a single-assignment slot for a resource output that only
exists once the owning resource has been provisioned. A Ref points at one
cell (optionally drilled into a nested path) and is what resource arguments
carry instead of a literal when they consume another resource's output.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from stackweave.exceptions import CellStateError, InterpolationError

T = TypeVar("T")

_UNSET = object()


class CellState(StrEnum):
    """Value cell lifecycle state."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class ValueCell(Generic[T]):
    """
    Single-assignment deferred output slot.

    Written exactly once, either with ``resolve(value)`` or ``fail(error)``;
    any further write raises CellStateError. Readers can block on ``wait()``
    or register a callback with ``on_settle()`` that fires once the cell
    leaves PENDING.
    """

    def __init__(self, owner: str, key: str) -> None:
        self.owner = owner
        self.key = key
        self._state = CellState.PENDING
        self._value: Any = _UNSET
        self._error: BaseException | None = None
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._callbacks: list[Callable[[ValueCell], None]] = []

    def __repr__(self) -> str:
        return f"ValueCell({self.owner}.{self.key}, {self._state.value})"

    @property
    def state(self) -> CellState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def is_settled(self) -> bool:
        return self._state is not CellState.PENDING

    def resolve(self, value: T) -> None:
        """Set the cell value. Raises CellStateError if already settled."""
        self._settle(CellState.RESOLVED, value=value)

    def fail(self, error: BaseException) -> None:
        """Mark the cell as failed. Raises CellStateError if already settled."""
        self._settle(CellState.FAILED, error=error)

    def _settle(self, state: CellState, *, value: Any = _UNSET, error: BaseException | None = None) -> None:
        with self._lock:
            if self._state is not CellState.PENDING:
                raise CellStateError(
                    f"Output '{self.owner}.{self.key}' is already {self._state.value}",
                    details={"owner": self.owner, "key": self.key},
                )
            self._state = state
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
            self._settled.set()

        # Outside the lock so callbacks may read this cell
        for callback in callbacks:
            callback(self)

    def on_settle(self, callback: Callable[[ValueCell], None]) -> None:
        """Run ``callback(cell)`` once the cell settles (immediately if it already has)."""
        with self._lock:
            if self._state is CellState.PENDING:
                self._callbacks.append(callback)
                return
        callback(self)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the cell settles. Returns False on timeout."""
        return self._settled.wait(timeout)

    def get(self) -> T:
        """
        Return the resolved value.

        Raises:
            InterpolationError: If the cell is still pending or has failed
        """
        if self._state is CellState.RESOLVED:
            return self._value
        if self._state is CellState.FAILED:
            raise InterpolationError(
                f"Output '{self.owner}.{self.key}' is unavailable: {self._error}",
                details={"owner": self.owner, "key": self.key},
            ) from self._error
        raise InterpolationError(
            f"Output '{self.owner}.{self.key}' has not been resolved yet",
            details={"owner": self.owner, "key": self.key},
        )


class Deferred:
    """Base for argument values that are only known after other resources exist."""

    def references(self) -> list[Ref]:
        raise NotImplementedError

    def resolve(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Ref(Deferred):
    """
    Reference to one output of a declared resource.

    Indexing a Ref drills into structured outputs without resolving anything:
    ``service.output("status")["load_balancer"]["ingress"][0]["ip"]``.
    """

    node: str
    key: str
    path: tuple[str | int, ...] = ()
    cell: ValueCell = field(default=None, compare=False, repr=False, hash=False)

    def __getitem__(self, item: str | int) -> Ref:
        return Ref(self.node, self.key, self.path + (item,), self.cell)

    def __str__(self) -> str:
        return self.describe()

    def describe(self) -> str:
        suffix = "".join(f"[{step!r}]" for step in self.path)
        return f"{self.node}.{self.key}{suffix}"

    def references(self) -> list[Ref]:
        return [self]

    def resolve(self) -> Any:
        """Resolve the referenced output and follow the path into it."""
        if self.cell is None:
            raise InterpolationError(f"Reference '{self.describe()}' is not bound to an output")
        value = self.cell.get()
        for step in self.path:
            try:
                value = value[step]
            except (KeyError, IndexError, TypeError) as e:
                raise InterpolationError(
                    f"Output '{self.describe()}' has no element {step!r}",
                    details={"owner": self.node, "key": self.key},
                ) from e
        return value


def iter_references(value: Any) -> Iterator[Ref]:
    """Yield every Ref reachable from an argument value, in declaration order."""
    if isinstance(value, Deferred):
        yield from value.references()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            yield from iter_references(getattr(value, f.name))
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from iter_references(item)


def resolve_value(value: Any) -> Any:
    """
    Replace every Deferred inside ``value`` with its resolved value.

    Dataclass argument structs become plain dicts (fields left as None are
    dropped), tuples become lists and frozensets become sets, so the result
    only holds literal, serializable data.
    """
    if isinstance(value, Deferred):
        return value.resolve()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        resolved = {}
        for f in dataclasses.fields(value):
            item = getattr(value, f.name)
            if item is not None:
                resolved[f.name] = resolve_value(item)
        return resolved
    if isinstance(value, Mapping):
        return {k: resolve_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        try:
            return {resolve_value(item) for item in value}
        except TypeError as e:
            raise InterpolationError(f"Set members must resolve to hashable values: {e}") from e
    return value
