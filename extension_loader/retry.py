"""
Retry orchestration with exponential backoff and a bounded failure log.
"""
import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from .metrics import RETRIES_TOTAL
from .policy import RetryPolicy
from .results import ExecutionResult

logger = logging.getLogger(__name__)

# Failures whose message contains one of these are policy violations;
# retrying cannot change the outcome. Matching is plain substring on the
# lower-cased message, so rewording a stage error changes its retryability.
NON_RETRYABLE_ERRORS = (
    "security violation",
    "validation failed",
    "path traversal",
    "unauthorized access",
)

FAILURE_HISTORY_SIZE = 10


@dataclass(frozen=True)
class FailureRecord:
    operation_id: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "timestamp": self.timestamp,
            "error": self.error_message,
        }


def is_retryable(error: BaseException) -> bool:
    message = str(error).lower()
    return not any(pattern in message for pattern in NON_RETRYABLE_ERRORS)


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 10.0) -> float:
    """Delay before the retry following the given zero-based attempt"""
    return min(base_delay * (2 ** attempt), max_delay)


class RetryOrchestrator:
    """Runs an async operation up to max_retries + 1 times.

    Every failed attempt is appended to a per-operation history capped at
    FAILURE_HISTORY_SIZE entries. Histories are never removed, so the number
    of keys grows with the number of distinct operation ids seen.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy
        self._sleep = sleep
        self._retry_counters: Dict[str, int] = {}
        self._failure_log: Dict[str, Deque[FailureRecord]] = {}

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_id: str,
    ) -> ExecutionResult:
        max_retries = self.policy.max_retries
        last_error: Optional[BaseException] = None
        attempts = 0

        for attempt in range(max_retries + 1):
            attempts += 1
            try:
                result = await operation()
                self._retry_counters.pop(operation_id, None)
                return ExecutionResult(success=True, result=result, attempts=attempts)

            except Exception as e:
                last_error = e
                self._log_failure(operation_id, str(e))

                if attempt < max_retries and is_retryable(e):
                    self._retry_counters[operation_id] = self._retry_counters.get(operation_id, 0) + 1
                    RETRIES_TOTAL.inc()
                    delay = backoff_delay(attempt, self.policy.base_delay, self.policy.max_delay)
                    logger.warning(
                        "Retrying operation %s, attempt %d/%d in %.2fs",
                        operation_id,
                        attempt + 2,
                        max_retries + 1,
                        delay,
                        extra={"operation_id": operation_id, "error": str(e), "delay": delay},
                    )
                    await self._sleep(delay)
                    continue

                break

        logger.error(
            "Operation %s failed after %d attempt(s): %s", operation_id, attempts, last_error,
            extra={"operation_id": operation_id, "attempts": attempts},
        )
        return ExecutionResult(
            success=False,
            error=str(last_error) if last_error is not None else "Unknown error",
            exception=last_error,
            attempts=attempts,
        )

    def _log_failure(self, operation_id: str, message: str) -> None:
        history = self._failure_log.get(operation_id)
        if history is None:
            history = self._failure_log[operation_id] = deque(maxlen=FAILURE_HISTORY_SIZE)
        history.append(FailureRecord(operation_id=operation_id, error_message=message))

    def failures(self, operation_id: str) -> list:
        return list(self._failure_log.get(operation_id, ()))

    def retry_count(self, operation_id: str) -> int:
        return self._retry_counters.get(operation_id, 0)

    def get_failure_stats(self) -> Dict[str, Dict[str, Any]]:
        stats = {}
        for operation_id, history in self._failure_log.items():
            stats[operation_id] = {
                "total_failures": len(history),
                "last_failure": history[-1].to_dict() if history else None,
                "retry_count": self._retry_counters.get(operation_id, 0),
            }
        return stats
