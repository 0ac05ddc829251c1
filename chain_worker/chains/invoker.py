"""Retrying, instrumented execution of remote RPC operations"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from chain_worker.chains.provider import ProviderState
from chain_worker.chains.retry import RetryClass, classify_failure, failure_code
from chain_worker.config.models import RetryPolicy
from chain_worker.monitoring.metrics import DurationMetric, HistogramDurationMetric

logger = structlog.get_logger()

T = TypeVar("T")


class RpcCallInvoker:
    """
    Executes remote operations until they succeed.

    Each failed attempt is logged, classified by failure code and followed by
    a sleep of the quick or default retry timeout before the next attempt.
    There is no attempt limit. The duration of the whole call, retries
    included, is observed once when it finally succeeds.

    Callers that need bounded latency pass ``deadline`` or cancel the task;
    cancellation is never swallowed.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy,
        duration_metric: Optional[DurationMetric] = None,
        log: Any = None,
        connection_state: Optional[Callable[[], ProviderState]] = None,
    ):
        """
        Initialize invoker.

        Args:
            retry_policy: Retry timeouts and quick-retry error codes
            duration_metric: Timer sink, defaults to the RPC duration histogram
            log: Structured logger, defaults to the module logger
            connection_state: Optional reader of the provider connection state,
                included in failure logs
        """
        self.retry_policy = retry_policy
        self.duration_metric = duration_metric or HistogramDurationMetric()
        self.connection_state = connection_state
        self._logger = (log or logger).bind(component="rpc_call_invoker")

    def get_retry_timeout(self, retry_class: RetryClass) -> float:
        """Sleep duration in seconds before retrying a failure of this class"""
        if retry_class == RetryClass.QUICK:
            return self.retry_policy.quick_retry_timeout
        return self.retry_policy.default_retry_timeout

    async def call(
        self,
        action: Callable[[], Awaitable[T]],
        function_name: str,
        deadline: Optional[float] = None,
    ) -> T:
        """
        Run ``action`` until it returns.

        Args:
            action: Parameterless coroutine function performing the remote call
            function_name: Operation name used as the metric label
            deadline: Optional overall limit in seconds; asyncio.TimeoutError
                is raised when it expires

        Returns:
            Result of the first successful attempt
        """
        if deadline is None:
            return await self._call_until_success(action, function_name)
        return await asyncio.wait_for(self._call_until_success(action, function_name), deadline)

    async def _call_until_success(self, action: Callable[[], Awaitable[T]], function_name: str) -> T:
        stop_duration_measuring = self.duration_metric.start_timer()
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await action()
            except Exception as e:
                code = failure_code(e)
                retry_class = classify_failure(code, self.retry_policy.quick_retry_error_codes)
                retry_timeout = self.get_retry_timeout(retry_class)

                self._logger.error(
                    "rpc_call_failed",
                    message=str(e),
                    code=code,
                    function=function_name,
                    attempt=attempt,
                    retry_class=retry_class.value,
                    retry_in=retry_timeout,
                    provider_state=self._provider_state(),
                    exc_info=e,
                )
                await asyncio.sleep(retry_timeout)
                continue

            stop_duration_measuring({"function": function_name})
            return result

    def _provider_state(self) -> Optional[str]:
        """Read the provider state for logging; an unreadable state logs as None"""
        if self.connection_state is None:
            return None
        try:
            return self.connection_state().value
        except Exception:
            return None
