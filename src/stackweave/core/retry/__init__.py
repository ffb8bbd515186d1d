"""
Retry framework for transient provisioning failures.
"""

from stackweave.core.retry.manager import RetryManager
from stackweave.core.retry.policy import (
    DEFAULT_RETRY_POLICY,
    FAST_RETRY_POLICY,
    NO_RETRY_POLICY,
    RetryPolicy,
    RetryState,
    is_transient,
)

__all__ = [
    "RetryPolicy",
    "RetryState",
    "is_transient",
    "DEFAULT_RETRY_POLICY",
    "FAST_RETRY_POLICY",
    "NO_RETRY_POLICY",
    "RetryManager",
]
