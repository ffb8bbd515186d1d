"""
Provisioning collaborator contract.

The executor only needs ``provision(kind, name, properties) -> outputs``.
Implementations may be plain functions or coroutines; failures are raised
as ProvisioningError (TransientProvisioningError when a retry is safe).
"""

from collections.abc import Awaitable, Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Provisioner(Protocol):
    """Creates or updates the real resource described by a node."""

    def provision(
        self, kind: str, name: str, properties: dict[str, Any]
    ) -> Mapping[str, Any] | Awaitable[Mapping[str, Any]]:
        """
        Make the resource ``name`` of ``kind`` match ``properties``.

        Must be safe to call again with the same arguments after a transient
        failure. Returns the resource outputs keyed by output name.
        """
        ...
