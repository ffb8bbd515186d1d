"""
Retry manager for executing provisioning calls with exponential backoff.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from stackweave.core.retry.policy import DEFAULT_RETRY_POLICY, RetryPolicy, RetryState
from stackweave.exceptions import RetryError
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.retry.manager")

T = TypeVar("T")


class RetryManager:
    """
    Wraps an async callable with retry logic based on a RetryPolicy.

    Examples:
        >>> manager = RetryManager()
        >>> async def create():
        ...     return await client.create_network(...)
        >>> result = await manager.execute(create, policy=DEFAULT_RETRY_POLICY, node_name="gke-network")
    """

    def __init__(self, default_policy: RetryPolicy | None = None):
        self.default_policy = default_policy or DEFAULT_RETRY_POLICY

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        policy: RetryPolicy | None = None,
        node_name: str | None = None,
        state: RetryState | None = None,
        **kwargs: Any,
    ) -> T:
        """
        Execute async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments to pass to func
            policy: Retry policy (defaults to the manager's default policy)
            node_name: Resource name for logging
            state: Optional RetryState to record attempts into
            **kwargs: Keyword arguments to pass to func

        Returns:
            Result of successful execution

        Raises:
            Exception: Final exception after all retries exhausted
        """
        policy = policy or self.default_policy
        state = state or RetryState(node_name=node_name or getattr(func, "__name__", "call"))

        for attempt in range(policy.max_attempts + 1):
            state.attempt = attempt

            try:
                logger.debug(f"Provisioning {state.node_name} (attempt {attempt + 1}/{policy.max_attempts + 1})")

                result = await func(*args, **kwargs)

                state.record_attempt()
                state.mark_success(result)

                if attempt > 0:
                    logger.info(f"{state.node_name} succeeded after {attempt + 1} attempts")

                return result

            except Exception as e:
                state.record_attempt(exception=e)

                if not policy.should_retry(e, attempt):
                    state.mark_failure(e)
                    if attempt > 0:
                        logger.error(f"{state.node_name} failed after {attempt + 1} attempts: {e}")
                    raise

                delay = policy.get_delay(attempt)
                state.record_delay(delay)

                logger.warning(f"{state.node_name} attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s...")

                await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or re-raises
        raise RetryError(f"Retry logic error for {state.node_name}")
