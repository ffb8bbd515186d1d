"""
Tests for the retry framework: retry policy, retry state and retry manager.
"""

import pytest

from stackweave.core.retry import (
    DEFAULT_RETRY_POLICY,
    FAST_RETRY_POLICY,
    NO_RETRY_POLICY,
    RetryManager,
    RetryPolicy,
    RetryState,
    is_transient,
)
from stackweave.exceptions import ProvisioningError, TransientProvisioningError


class TestRetryPolicy:
    """Tests for RetryPolicy configuration."""

    def test_default_values(self):
        """Test default policy values."""
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.initial_delay == 1.0
        assert policy.max_delay == 30.0
        assert policy.exponential_base == 2.0
        assert policy.jitter is True
        assert policy.retry_condition is is_transient

    def test_validation_max_attempts(self):
        """Test validation rejects negative max_attempts."""
        with pytest.raises(ValueError, match="max_attempts must be >= 0"):
            RetryPolicy(max_attempts=-1)

    def test_validation_initial_delay(self):
        """Test validation rejects non-positive initial_delay."""
        with pytest.raises(ValueError, match="initial_delay must be > 0"):
            RetryPolicy(initial_delay=0)

    def test_validation_max_delay(self):
        """Test validation rejects max_delay < initial_delay."""
        with pytest.raises(ValueError, match="max_delay must be >= initial_delay"):
            RetryPolicy(initial_delay=10.0, max_delay=5.0)

    def test_only_transient_errors_retried(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(TransientProvisioningError("net", "503"), attempt=0) is True
        assert policy.should_retry(ProvisioningError("net", "quota exceeded"), attempt=0) is False
        assert policy.should_retry(ConnectionError("reset"), attempt=0) is False

    def test_should_retry_stops_at_max_attempts(self):
        policy = RetryPolicy(max_attempts=2)
        error = TransientProvisioningError("net", "503")
        assert policy.should_retry(error, attempt=1) is True
        assert policy.should_retry(error, attempt=2) is False

    def test_should_retry_exception_filter(self):
        """Test should_retry with exception type filter."""
        policy = RetryPolicy(
            max_attempts=3,
            retryable_exceptions=(ConnectionError, TimeoutError),
            retry_condition=None,
        )
        assert policy.should_retry(ConnectionError("test"), attempt=0) is True
        assert policy.should_retry(TimeoutError("test"), attempt=0) is True
        assert policy.should_retry(ValueError("test"), attempt=0) is False

    def test_get_delay_exponential(self):
        """Test exponential backoff delay calculation."""
        policy = RetryPolicy(initial_delay=1.0, exponential_base=2.0, max_delay=30.0, jitter=False)
        assert [policy.get_delay(attempt=i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_get_delay_max_cap(self):
        """Test delay is capped at max_delay."""
        policy = RetryPolicy(initial_delay=1.0, exponential_base=2.0, max_delay=5.0, jitter=False)
        assert policy.get_delay(attempt=10) == 5.0

    def test_get_delay_jitter(self):
        """Test jitter keeps the delay within 25% of the base."""
        policy = RetryPolicy(initial_delay=10.0, jitter=True)
        delays = [policy.get_delay(attempt=0) for _ in range(100)]
        assert min(delays) >= 7.5
        assert max(delays) <= 12.5
        assert len(set(delays)) > 1

    def test_from_config(self):
        policy = RetryPolicy.from_config({"max_attempts": 5, "initial_delay": 0.5, "jitter": False})
        assert policy.max_attempts == 5
        assert policy.initial_delay == 0.5
        assert policy.max_delay == 30.0
        assert policy.jitter is False

    def test_from_empty_config(self):
        assert RetryPolicy.from_config(None).max_attempts == 3


class TestRetryState:
    """Tests for RetryState tracking."""

    def test_record_attempt_with_exception(self):
        state = RetryState(node_name="gke-network")
        state.record_attempt(exception=ValueError("test error"))
        state.record_attempt()
        assert state.total_attempts == 2
        assert len(state.exceptions) == 1
        assert state.exceptions[0]["exception_type"] == "ValueError"
        assert state.exceptions[0]["exception_message"] == "test error"

    def test_mark_success_and_failure(self):
        state = RetryState(node_name="gke-network")
        state.mark_success(result={"id": "net-1"})
        assert state.succeeded is True
        assert state.result == {"id": "net-1"}

        exc = ValueError("final error")
        state.mark_failure(exc)
        assert state.succeeded is False
        assert state.final_exception is exc


class TestRetryManager:
    """Tests for RetryManager execution."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        manager = RetryManager()
        call_count = 0

        async def provision():
            nonlocal call_count
            call_count += 1
            return {"id": "net-1"}

        assert await manager.execute(provision, policy=DEFAULT_RETRY_POLICY) == {"id": "net-1"}
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_success_after_transient_failures(self):
        manager = RetryManager()
        state = RetryState(node_name="gke-network")
        call_count = 0

        async def provision(name):
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransientProvisioningError(name, "backend unavailable")
            return {"id": f"{name}-1"}

        result = await manager.execute(provision, "gke-network", policy=FAST_RETRY_POLICY, state=state)
        assert result == {"id": "gke-network-1"}
        assert state.total_attempts == 3
        assert state.delays == [0.01, 0.02]

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self):
        manager = RetryManager()
        call_count = 0

        async def provision():
            nonlocal call_count
            call_count += 1
            raise ProvisioningError("gke-network", "quota exceeded")

        with pytest.raises(ProvisioningError, match="quota exceeded"):
            await manager.execute(provision, policy=FAST_RETRY_POLICY)
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        manager = RetryManager()
        state = RetryState(node_name="gke-network")

        async def provision():
            raise TransientProvisioningError("gke-network", "backend unavailable")

        with pytest.raises(TransientProvisioningError):
            await manager.execute(provision, policy=FAST_RETRY_POLICY, state=state)
        assert state.total_attempts == FAST_RETRY_POLICY.max_attempts + 1
        assert isinstance(state.final_exception, TransientProvisioningError)

    @pytest.mark.asyncio
    async def test_no_retry_policy(self):
        manager = RetryManager()
        call_count = 0

        async def provision():
            nonlocal call_count
            call_count += 1
            raise TransientProvisioningError("gke-network", "backend unavailable")

        with pytest.raises(TransientProvisioningError):
            await manager.execute(provision, policy=NO_RETRY_POLICY)
        assert call_count == 1
