"""
Instance validation and the bounded-time safety probe.

The probe runs the extension's extract() once in this process. Each call gets
its own daemon thread so a blocking synchronous call can be bounded by the
timeout. A call that never returns is not stopped; its thread keeps running
and its result is discarded, without holding up later probes. The probe
catches gross misbehaviour; it does not isolate the host from a hostile
extension.
"""
import asyncio
import inspect
import logging
import threading
import time
from collections.abc import Sequence
from typing import Any, Callable, Optional

import psutil

from .errors import SafetyViolation
from .metrics import SAFETY_PROBE_DURATION
from .policy import ValidationPolicy
from .results import SafetyResult, ValidationResult

logger = logging.getLogger(__name__)

# Error messages from the trial call that indicate the extension went for
# process or system level access rather than just rejecting the null input.
FORBIDDEN_ACCESS_MARKERS = ("process", "system")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _call_in_thread(func: Callable[..., Any], *args: Any) -> "asyncio.Future[Any]":
    """Run `func` on a fresh daemon thread; the returned future carries its outcome"""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def resolve(outcome: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(outcome)

    def run() -> None:
        try:
            outcome, error = func(*args), None
        except Exception as e:
            outcome, error = None, e
        try:
            loop.call_soon_threadsafe(resolve, outcome, error)
        except RuntimeError:
            # the loop closed while the call was running; nobody is waiting
            logger.debug("Trial extract finished after its event loop closed")

    threading.Thread(target=run, name="extension-probe", daemon=True).start()
    return future


class InstanceValidator:
    """Checks an instantiated extension against the capability contract"""

    def __init__(self, policy: ValidationPolicy):
        self.policy = policy

    def validate_extension_instance(self, instance: Any, ext_type: str) -> ValidationResult:
        """Static capability check; does not call anything on the instance"""
        try:
            for capability in self.policy.required_capabilities:
                if not hasattr(instance, capability):
                    return ValidationResult.fail(f"Missing required method: {capability}")
                value = getattr(instance, capability)
                # supported_types is a sequence by contract, so sequences pass too
                if not (callable(value) or isinstance(value, str) or _is_sequence(value)):
                    return ValidationResult.fail(
                        f"Invalid type for {capability}: expected callable or string"
                    )

            if self.policy.strict_type_checking:
                name = getattr(instance, "name", None)
                if not name or not isinstance(name, str):
                    return ValidationResult.fail("Extension must have a valid name property")

                version = getattr(instance, "version", None)
                if not version or not isinstance(version, str):
                    return ValidationResult.fail("Extension must have a valid version property")

                if not isinstance(getattr(instance, "supported_types", None), (list, tuple)):
                    return ValidationResult.fail("Extension must have a supported_types sequence")

                if not callable(getattr(instance, "extract", None)):
                    return ValidationResult.fail("Extension must have an extract method")

            if self.policy.require_exact_interface:
                for capability in self.policy.optional_capabilities:
                    if hasattr(instance, capability) and not callable(getattr(instance, capability)):
                        return ValidationResult.fail(f"Optional capability {capability} must be callable")

            return ValidationResult.ok()

        except Exception as e:
            logger.warning("Instance validation of %s extension raised: %s", ext_type, e)
            return ValidationResult.fail(f"Instance validation error: {e}")

    async def test_extension_safety(self, instance: Any) -> SafetyResult:
        """Trial-call the extension under the configured time bound"""
        start = time.monotonic()
        rss_before = self._rss()
        try:
            await asyncio.wait_for(self._run_basic_tests(instance), timeout=self.policy.max_execution_time)
            return SafetyResult(safe=True)
        except asyncio.TimeoutError:
            logger.warning("Safety probe timed out after %ss", self.policy.max_execution_time)
            return SafetyResult(safe=False, reason="Test timeout")
        except Exception as e:
            logger.warning("Safety probe failed: %s", e)
            return SafetyResult(safe=False, reason=str(e))
        finally:
            SAFETY_PROBE_DURATION.observe(time.monotonic() - start)
            self._check_memory(rss_before)

    async def _run_basic_tests(self, instance: Any) -> None:
        # property reads alone must not raise
        getattr(instance, "name")
        getattr(instance, "version")
        getattr(instance, "supported_types")

        extract = getattr(instance, "extract", None)
        if not callable(extract):
            return

        try:
            outcome = await _call_in_thread(extract, None, {})
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            message = str(e).lower()
            if any(marker in message for marker in FORBIDDEN_ACCESS_MARKERS):
                raise SafetyViolation("Extension attempted system access during test") from e
            # rejecting a null source is expected behaviour
            logger.debug("Trial extract raised (tolerated): %s", e)

    @staticmethod
    def _rss() -> Optional[int]:
        try:
            return psutil.Process().memory_info().rss
        except psutil.Error:
            return None

    def _check_memory(self, rss_before: Optional[int]) -> None:
        rss_after = self._rss()
        if rss_before is None or rss_after is None:
            return
        growth = rss_after - rss_before
        if growth > self.policy.memory_limit:
            # advisory only
            logger.warning(
                "Safety probe grew process memory by %d bytes (limit %d)", growth, self.policy.memory_limit
            )
