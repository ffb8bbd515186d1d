"""
Run and NodeTask tracking for Stackweave execution.

A Run represents one evaluation of a stack.
A NodeTask represents the provisioning of a single resource within that run.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RunStatus(StrEnum):
    """Run execution status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NodeStatus(StrEnum):
    """Node execution status."""

    PENDING = "pending"
    WAITING = "waiting"  # Waiting for dependencies
    READY = "ready"  # Dependencies satisfied, ready to provision
    RUNNING = "running"  # Provisioning call in flight
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({NodeStatus.SUCCESS, NodeStatus.FAILED, NodeStatus.SKIPPED})


@dataclass
class NodeTask:
    """Tracks a single resource within a run."""

    node_name: str
    kind: str
    run_id: str = ""
    dependencies: list[str] = field(default_factory=list)

    status: NodeStatus = NodeStatus.PENDING
    attempts: int = 0

    # Timing
    enqueued_at: float | None = None
    started_at: float | None = None
    completed_at: float | None = None

    # Results
    outputs: dict[str, Any] | None = None

    # Errors
    error: BaseException | None = None
    error_type: str | None = None
    error_message: str | None = None

    # Skip tracking, e.g. "dependency 'gke-cluster' failed", "cancelled"
    skipped_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def enqueue(self) -> None:
        self.status = NodeStatus.PENDING
        self.enqueued_at = time.time()

    def mark_waiting(self) -> None:
        self.status = NodeStatus.WAITING

    def mark_ready(self) -> None:
        self.status = NodeStatus.READY

    def start(self) -> None:
        self.status = NodeStatus.RUNNING
        self.started_at = time.time()

    def succeed(self, outputs: dict[str, Any]) -> None:
        self.status = NodeStatus.SUCCESS
        self.outputs = dict(outputs)
        self.completed_at = time.time()

    def fail(self, error: BaseException) -> None:
        self.status = NodeStatus.FAILED
        self.error = error
        self.error_type = type(error).__name__
        self.error_message = getattr(error, "message", None) or str(error)
        self.completed_at = time.time()

    def skip(self, reason: str) -> None:
        self.status = NodeStatus.SKIPPED
        self.skipped_reason = reason
        self.completed_at = time.time()

    def get_duration(self) -> float | None:
        """Provisioning duration in seconds (None if never started)."""
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        elif self.started_at:
            return time.time() - self.started_at
        return None

    def get_wait_time(self) -> float | None:
        """Time spent waiting (enqueued to started)."""
        if self.enqueued_at and self.started_at:
            return self.started_at - self.enqueued_at
        return None


@dataclass(frozen=True)
class NodeOutcome:
    """Final, immutable result of one node in a run report."""

    name: str
    kind: str
    status: NodeStatus
    outputs: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    skipped_reason: str | None = None
    attempts: int = 0
    duration: float | None = None

    def record(self) -> tuple[str, str, Any]:
        """Timing-free (name, status, outputs|error|reason) triple."""
        if self.status == NodeStatus.SUCCESS:
            detail: Any = self.outputs
        elif self.status == NodeStatus.FAILED:
            detail = self.error
        else:
            detail = self.skipped_reason
        return (self.name, self.status.value, detail)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "kind": self.kind, "status": self.status.value}
        if self.outputs is not None:
            result["outputs"] = self.outputs
        if self.error is not None:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.skipped_reason is not None:
            result["skipped_reason"] = self.skipped_reason
        result["attempts"] = self.attempts
        if self.duration is not None:
            result["duration"] = round(self.duration, 3)
        return result


@dataclass
class RunReport:
    """
    Per-run report: one outcome per node in topological order.

    ``records()`` is the comparable view: it leaves out ids and timings, so two
    runs of the same stack against a deterministic provisioner compare equal.
    """

    run_id: str
    stack: str
    status: RunStatus
    outcomes: list[NodeOutcome]
    dispatch_order: list[str] = field(default_factory=list)
    exports: dict[str, Any] = field(default_factory=dict)
    export_errors: dict[str, str] = field(default_factory=dict)
    duration: float | None = None

    def __getitem__(self, name: str) -> NodeOutcome:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        raise KeyError(name)

    @property
    def succeeded(self) -> bool:
        return all(o.status == NodeStatus.SUCCESS for o in self.outcomes)

    def names_with_status(self, status: NodeStatus) -> list[str]:
        return [o.name for o in self.outcomes if o.status == status]

    def records(self) -> list[tuple[str, str, Any]]:
        return [o.record() for o in self.outcomes]

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stack": self.stack,
            "status": self.status.value,
            "total": len(self.outcomes),
            "succeeded": len(self.names_with_status(NodeStatus.SUCCESS)),
            "failed": len(self.names_with_status(NodeStatus.FAILED)),
            "skipped": len(self.names_with_status(NodeStatus.SKIPPED)),
            "duration": self.duration,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stack": self.stack,
            "status": self.status.value,
            "resources": [o.to_dict() for o in self.outcomes],
            "dispatch_order": list(self.dispatch_order),
            "exports": dict(self.exports),
            "export_errors": dict(self.export_errors),
            "duration": self.duration,
        }


@dataclass
class Run:
    """One evaluation of a stack; groups the node tasks."""

    stack_name: str = ""
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: RunStatus = RunStatus.PENDING
    started_at: float | None = None
    completed_at: float | None = None

    tasks: dict[str, NodeTask] = field(default_factory=dict)  # node name -> NodeTask
    dispatch_order: list[str] = field(default_factory=list)

    def start(self) -> None:
        self.status = RunStatus.RUNNING
        self.started_at = time.time()

    def complete(self, success: bool = True) -> None:
        self.status = RunStatus.COMPLETED if success else RunStatus.FAILED
        self.completed_at = time.time()

    def cancel(self) -> None:
        self.status = RunStatus.CANCELLED
        self.completed_at = time.time()

    def get_duration(self) -> float | None:
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        elif self.started_at:
            return time.time() - self.started_at
        return None

    def get_summary(self) -> dict[str, Any]:
        """Counts per status, for the end-of-run log line."""
        statuses = [t.status for t in self.tasks.values()]
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "total": len(statuses),
            "succeeded": statuses.count(NodeStatus.SUCCESS),
            "failed": statuses.count(NodeStatus.FAILED),
            "skipped": statuses.count(NodeStatus.SKIPPED),
            "duration": self.get_duration(),
        }

    def to_report(
        self,
        order: list[str],
        exports: dict[str, Any] | None = None,
        export_errors: dict[str, str] | None = None,
    ) -> RunReport:
        outcomes = []
        for name in order:
            task = self.tasks[name]
            outcomes.append(
                NodeOutcome(
                    name=name,
                    kind=task.kind,
                    status=task.status,
                    outputs=task.outputs,
                    error=task.error_message,
                    error_type=task.error_type,
                    skipped_reason=task.skipped_reason,
                    attempts=task.attempts,
                    duration=task.get_duration(),
                )
            )
        return RunReport(
            run_id=self.run_id,
            stack=self.stack_name,
            status=self.status,
            outcomes=outcomes,
            dispatch_order=list(self.dispatch_order),
            exports=dict(exports or {}),
            export_errors=dict(export_errors or {}),
            duration=self.get_duration(),
        )
