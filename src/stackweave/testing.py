"""
Testing utilities for Stackweave stacks.

Provides an in-memory provisioner with scripted failures and a call log, so
graphs can be executed in unit tests without any state file or cloud access.

Usage:
    from stackweave.testing import FakeProvisioner, make_node

    a = make_node("a")
    b = make_node("b", source=a.output("out"))

    provisioner = FakeProvisioner(fail={"a": "quota exceeded"})
    report = await Executor(provisioner).execute([a, b])
    assert report["b"].status == NodeStatus.SKIPPED
    assert provisioner.call_names == ["a"]
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from stackweave.core.node import GenericArgs, ResourceNode
from stackweave.exceptions import ProvisioningError, TransientProvisioningError
from stackweave.provisioners.synthetic import KNOWN_KINDS, synthesize_outputs

TEST_KIND = "test:index:Resource"
TEST_OUTPUTS = ("id", "out")


def make_node(
    name: str,
    *,
    depends_on: list[ResourceNode | str] | None = None,
    outputs: tuple[str, ...] = TEST_OUTPUTS,
    **properties: Any,
) -> ResourceNode:
    """Untyped test resource whose properties may hold Refs or Interpolations."""
    return ResourceNode(name, GenericArgs(TEST_KIND, properties, outputs=outputs), depends_on=depends_on)


@dataclass
class ProvisionCall:
    """One provisioning attempt seen by FakeProvisioner."""

    kind: str
    name: str
    properties: dict[str, Any]
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None


class FakeProvisioner:
    """
    Deterministic async provisioner for tests.

    Args:
        outputs: Per-resource outputs merged over the generated ones
        fail: Resources that always fail, mapped to a message or exception
        transient_failures: Resources that fail transiently for their first N attempts
        delay: Seconds every call sleeps before answering
        delays: Per-resource override of ``delay``
        gates: Per-resource events a call waits for before answering
    """

    def __init__(
        self,
        outputs: dict[str, dict[str, Any]] | None = None,
        *,
        fail: dict[str, str | Exception] | None = None,
        transient_failures: dict[str, int] | None = None,
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
        gates: dict[str, asyncio.Event] | None = None,
    ):
        self.outputs = outputs or {}
        self.fail = fail or {}
        self.transient_failures = dict(transient_failures or {})
        self.delay = delay
        self.delays = delays or {}
        self.gates = gates or {}

        self.calls: list[ProvisionCall] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def call_names(self) -> list[str]:
        """Resource names in the order their attempts started (retries repeat)."""
        return [call.name for call in self.calls]

    def attempts(self, name: str) -> int:
        return sum(1 for call in self.calls if call.name == name)

    def default_outputs(self, kind: str, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        if kind in KNOWN_KINDS:
            return synthesize_outputs(kind, name, properties, project="test-project", region="us-central1")
        return {"id": f"{name}-id", "out": f"{name}-out", **properties}

    async def provision(self, kind: str, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        call = ProvisionCall(kind=kind, name=name, properties=properties)
        self.calls.append(call)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            delay = self.delays.get(name, self.delay)
            if delay:
                await asyncio.sleep(delay)

            if name in self.fail:
                error = self.fail[name]
                if isinstance(error, Exception):
                    raise error
                raise ProvisioningError(name, error)

            remaining = self.transient_failures.get(name, 0)
            if remaining > 0:
                self.transient_failures[name] = remaining - 1
                raise TransientProvisioningError(name, "temporarily unavailable")

            return {**self.default_outputs(kind, name, properties), **self.outputs.get(name, {})}
        finally:
            self.in_flight -= 1
            call.finished_at = time.monotonic()
