"""
String interpolation over resource outputs.

``interpolate("https://{endpoint}", endpoint=cluster.output("endpoint"))``
builds a derived value that is rendered only once every referenced output is
available. Its ``cell`` settles on its own when the last source settles, so
nothing has to block on it while the graph is being walked.
"""

from __future__ import annotations

import string
import threading
from typing import Any

from stackweave.core.cells import Deferred, Ref, ValueCell, iter_references, resolve_value
from stackweave.exceptions import ConfigurationError, InterpolationError


class DerivedCell(ValueCell[str]):
    """Value cell fed by an Interpolation instead of a provisioning call."""

    def __init__(self, interpolation: Interpolation) -> None:
        super().__init__(owner="<interpolation>", key=interpolation.template[:40])
        self.interpolation = interpolation
        self._sources = _unique_cells(interpolation.references())
        self._remaining = len(self._sources)
        self._count_lock = threading.Lock()

        if not self._sources:
            self._render()
            return
        for source in self._sources:
            source.on_settle(self._source_settled)

    def _source_settled(self, _source: ValueCell) -> None:
        with self._count_lock:
            self._remaining -= 1
            done = self._remaining == 0
        if done:
            self._render()

    def _render(self) -> None:
        try:
            value = self.interpolation.render()
        except InterpolationError as e:
            self.fail(e)
        else:
            self.resolve(value)


class Interpolation(Deferred):
    """
    A template whose ``{placeholders}`` are filled from resource outputs.

    Placeholders use ``str.format`` syntax, so literal braces are written as
    ``{{`` and ``}}``. Values may be Refs, other Interpolations or literals.
    """

    def __init__(self, template: str, **values: Any) -> None:
        self.template = template
        self.values = values
        self._cell: DerivedCell | None = None
        self._cell_lock = threading.Lock()

        used = {name for _, name, _, _ in string.Formatter().parse(template) if name is not None}
        missing = sorted(used - set(values))
        if missing:
            raise ConfigurationError(f"Interpolation placeholders without values: {', '.join(missing)}")
        unused = sorted(set(values) - used)
        if unused:
            raise ConfigurationError(f"Interpolation values not used by the template: {', '.join(unused)}")

    def __repr__(self) -> str:
        return f"Interpolation({self.template!r})"

    def references(self) -> list[Ref]:
        return list(iter_references(self.values))

    @property
    def cell(self) -> DerivedCell:
        """Derived cell for this template, created on first access."""
        with self._cell_lock:
            if self._cell is None:
                self._cell = DerivedCell(self)
            return self._cell

    def render(self) -> str:
        """
        Format the template with the current source values.

        Raises:
            InterpolationError: If any source is pending or failed, or the
                resolved values do not fit the template's format specs
        """
        try:
            resolved = {name: resolve_value(value) for name, value in self.values.items()}
        except InterpolationError as e:
            raise InterpolationError(f"Cannot render interpolation: {e.message}", details=e.details) from e
        try:
            return self.template.format(**resolved)
        except (KeyError, IndexError, AttributeError, TypeError, ValueError) as e:
            raise InterpolationError(
                f"Cannot render interpolation {self.template!r}: {e}",
                details={"template": self.template},
            ) from e

    def resolve(self) -> str:
        return self.render()


def interpolate(template: str, **values: Any) -> Interpolation:
    """Build an Interpolation from a ``str.format`` template and its values."""
    return Interpolation(template, **values)


def _unique_cells(refs: list[Ref]) -> list[ValueCell]:
    seen: set[int] = set()
    cells = []
    for ref in refs:
        if ref.cell is not None and id(ref.cell) not in seen:
            seen.add(id(ref.cell))
            cells.append(ref.cell)
    return cells
