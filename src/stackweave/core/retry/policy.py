"""
Retry policy configuration for provisioning calls.

Only failures the provisioning collaborator marks as transient are retried
by default; everything else fails the node on the first attempt.
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional


def is_transient(exception: Exception, attempt: int) -> bool:
    """Default retry condition: the error carries ``transient=True``."""
    return bool(getattr(exception, "transient", False))


@dataclass
class RetryPolicy:
    """
    Configuration for retry behavior when provisioning fails.

    Implements exponential backoff with jitter for transient failures.

    Examples:
        >>> # Basic retry with defaults (transient errors only)
        >>> policy = RetryPolicy(max_attempts=3)

        >>> # Retry specific errors only
        >>> policy = RetryPolicy(
        ...     max_attempts=5,
        ...     initial_delay=2.0,
        ...     retryable_exceptions=(ConnectionError, TimeoutError),
        ...     retry_condition=None,
        ... )
    """

    # Maximum number of retry attempts (total executions = max_attempts + 1)
    max_attempts: int = 3

    # Initial delay before first retry (seconds)
    initial_delay: float = 1.0

    # Maximum delay between retries (seconds)
    max_delay: float = 30.0

    # Exponential backoff base (delay = initial_delay * base^attempt)
    exponential_base: float = 2.0

    # Add random jitter to prevent thundering herd (±25% of delay)
    jitter: bool = True

    # Only retry these exception types (None = any type passing retry_condition)
    retryable_exceptions: Optional[tuple[type[Exception], ...]] = None

    # Signature: (exception, attempt) -> bool; takes precedence over retryable_exceptions
    retry_condition: Optional[Callable[[Exception, int], bool]] = is_transient

    def __post_init__(self):
        """Validate configuration."""
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.exponential_base < 1.0:
            raise ValueError("exponential_base must be >= 1.0")

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> "RetryPolicy":
        """Build a policy from the ``retry`` config section."""
        config = config or {}
        return cls(
            max_attempts=int(config.get("max_attempts", cls.max_attempts)),
            initial_delay=float(config.get("initial_delay", cls.initial_delay)),
            max_delay=float(config.get("max_delay", cls.max_delay)),
            exponential_base=float(config.get("exponential_base", cls.exponential_base)),
            jitter=bool(config.get("jitter", cls.jitter)),
        )

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """
        Determine if we should retry after this exception.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-indexed)

        Returns:
            True if we should retry, False otherwise
        """
        if attempt >= self.max_attempts:
            return False

        if self.retry_condition is not None:
            return self.retry_condition(exception, attempt)

        if self.retryable_exceptions is not None:
            return isinstance(exception, self.retryable_exceptions)

        return True

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay before next retry using exponential backoff.

        Implements: delay = min(initial_delay * base^attempt, max_delay)
        With optional jitter: delay * random(0.75, 1.25)

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds before next retry
        """
        delay = self.initial_delay * (self.exponential_base**attempt)

        if self.jitter:
            delay *= random.uniform(0.75, 1.25)

        # Cap after jitter so max_delay is a hard upper bound
        return min(delay, self.max_delay)


@dataclass
class RetryState:
    """
    State tracking for retry execution.

    Stores retry history for logging and the run report.
    """

    # Resource name being retried
    node_name: str

    # Current attempt number (0-indexed)
    attempt: int = 0

    # Total attempts so far
    total_attempts: int = 0

    # Exceptions encountered (for debugging)
    exceptions: list = field(default_factory=list)

    # Delays between attempts
    delays: list = field(default_factory=list)

    # Final result (if succeeded)
    result: Any = None

    # Final exception (if all retries failed)
    final_exception: Optional[Exception] = None

    # Whether execution succeeded
    succeeded: bool = False

    def record_attempt(self, exception: Optional[Exception] = None):
        """Record an attempt and its result."""
        self.total_attempts += 1

        if exception is not None:
            self.exceptions.append(
                {
                    "attempt": self.attempt,
                    "exception_type": type(exception).__name__,
                    "exception_message": str(exception),
                    "timestamp": time.time(),
                }
            )

    def record_delay(self, delay: float):
        """Record the delay before next retry."""
        self.delays.append(delay)

    def mark_success(self, result: Any):
        """Mark execution as successful."""
        self.succeeded = True
        self.result = result

    def mark_failure(self, exception: Exception):
        """Mark execution as failed after all retries."""
        self.succeeded = False
        self.final_exception = exception


# Pre-configured policies for common scenarios

DEFAULT_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    initial_delay=1.0,
    max_delay=30.0,
    exponential_base=2.0,
    jitter=True,
)

FAST_RETRY_POLICY = RetryPolicy(
    max_attempts=2,
    initial_delay=0.01,
    max_delay=0.1,
    exponential_base=2.0,
    jitter=False,
)

NO_RETRY_POLICY = RetryPolicy(max_attempts=0)
