"""
Stackweave exception hierarchy.

All domain-specific exceptions inherit from StackweaveError, making it easy
to catch any framework error with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    StackweaveError
    ├── ConfigurationError            - config loading, graph validation, cycles
    ├── ExecutionError                - run-time failures
    │   └── ProvisioningError         - the provisioning collaborator failed
    │       └── TransientProvisioningError - retryable collaborator failure
    ├── InterpolationError            - derived value or output path cannot resolve
    ├── CellStateError                - second write to a settled value cell
    ├── RetryError                    - retry exhaustion
    └── InitializationError           - startup orchestration failures
"""

from __future__ import annotations


class StackweaveError(Exception):
    """Base exception for all Stackweave errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(StackweaveError):
    """Raised when configuration or the declared resource graph is invalid.

    Always raised before any provisioning call is made.
    """

    def __init__(self, message: str, *, nodes: list[str] | None = None, details: dict | None = None) -> None:
        merged = dict(details or {})
        if nodes:
            merged["nodes"] = list(nodes)
        super().__init__(message, details=merged)
        self.nodes = list(nodes or [])


# --- Execution ---------------------------------------------------------------


class ExecutionError(StackweaveError):
    """Raised when a run fails after provisioning has started."""


class ProvisioningError(ExecutionError):
    """Raised when the provisioning collaborator fails for a node."""

    def __init__(
        self,
        node_name: str,
        message: str,
        *,
        transient: bool = False,
        cause: Exception | None = None,
    ) -> None:
        full = f"Resource '{node_name}' failed: {message}"
        super().__init__(full, details={"node": node_name, "transient": transient})
        self.node_name = node_name
        self.reason = message
        self.transient = transient
        if cause is not None:
            self.__cause__ = cause


class TransientProvisioningError(ProvisioningError):
    """Provisioning failure the collaborator considers safe to retry."""

    def __init__(self, node_name: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(node_name, message, transient=True, cause=cause)


# --- Values ------------------------------------------------------------------


class InterpolationError(StackweaveError):
    """Raised when a derived value or an output path cannot be resolved."""


class CellStateError(StackweaveError):
    """Raised when a value cell is written after it has already settled."""


# --- Retry -------------------------------------------------------------------


class RetryError(StackweaveError):
    """Raised when all retry attempts are exhausted."""


# --- Initialization ----------------------------------------------------------


class InitializationError(StackweaveError):
    """Raised during startup when config loading or stack declaration fails.

    Error messages should be informative and actionable. Exception chaining
    is intentionally suppressed (``from None``) to keep CLI output clean.
    """
