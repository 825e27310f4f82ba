"""
SecurityManager: the admission pipeline for dynamically loaded extensions.

Stages, in order, inside one retried operation:

    path -> limits (+ slot reservation) -> content -> load -> instantiate
         -> capability check -> safety probe

The manager never inserts an instance into the registry. A successful result
carries a pending Reservation; the caller commits it (making the extension
visible) or releases it.

Everything here runs inside the host process. The content scan and the trial
call are heuristics that catch careless or obviously hostile extensions; they
are not a sandbox, and `SecurityPolicy.sandbox_execution` /
`SecurityPolicy.require_signature` are not enforced.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .errors import (
    ContentPolicyViolation,
    InterfaceViolation,
    LimitExceeded,
    LoadFailure,
    PathPolicyViolation,
    SafetyViolation,
    error_kind,
)
from .limits import LimitEnforcer
from .loader import ModuleCache, resolve_extension_class
from .metrics import ADMISSION_DURATION, ADMISSIONS_TOTAL
from .paths import PathValidator
from .policy import PolicyBundle, RetryPolicy, SecurityPolicy, ValidationPolicy
from .registry import ExtensionRegistry, Reservation
from .retry import RetryOrchestrator
from .scanner import ContentScanner
from .validator import InstanceValidator

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of secure_load_extension"""
    success: bool
    operation_id: str
    instance: Any = None
    reservation: Optional[Reservation] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "operation_id": self.operation_id,
            "attempts": self.attempts,
        }
        if self.success:
            data["extension"] = {
                "name": getattr(self.instance, "name", None),
                "version": getattr(self.instance, "version", None),
                "supported_types": list(getattr(self.instance, "supported_types", ()) or ()),
            }
        else:
            data["error"] = self.error
            data["error_kind"] = self.error_kind
        return data


def make_operation_id(ext_type: str) -> str:
    return f"load-{ext_type}-{int(time.time() * 1000)}"


class SecurityManager:
    """Sequences the admission stages for one extension file"""

    def __init__(
        self,
        security_policy: Optional[SecurityPolicy] = None,
        validation_policy: Optional[ValidationPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        module_cache: Optional[ModuleCache] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.security_policy = security_policy or SecurityPolicy()
        self.validation_policy = validation_policy or ValidationPolicy()
        self.retry_policy = retry_policy or RetryPolicy()

        self.paths = PathValidator(self.security_policy)
        self.scanner = ContentScanner(self.security_policy)
        self.limits = LimitEnforcer(self.security_policy)
        self.validator = InstanceValidator(self.validation_policy)
        self.retry = RetryOrchestrator(self.retry_policy, sleep=sleep)
        self.module_cache = module_cache or ModuleCache(retain=self.retry_policy.cache_extensions)

        if self.security_policy.require_signature:
            logger.warning("require_signature is set but extension signatures are not verified")
        if self.security_policy.sandbox_execution:
            logger.warning("sandbox_execution is set but extensions run in-process without a sandbox")

    @classmethod
    def from_policies(cls, bundle: PolicyBundle, **kwargs) -> "SecurityManager":
        return cls(bundle.security, bundle.validation, bundle.retry, **kwargs)

    async def secure_load_extension(
        self,
        file_path: str | Path,
        ext_type: str,
        registry: ExtensionRegistry,
        dependencies: Optional[Dict[str, Any]] = None,
    ) -> LoadResult:
        """Run the full admission pipeline; never raises for stage failures"""
        operation_id = make_operation_id(ext_type)
        start = time.monotonic()

        async def attempt() -> Tuple[Any, Reservation]:
            return await self._attempt(file_path, ext_type, registry, dependencies)

        outcome = await self.retry.execute_with_retry(attempt, operation_id)
        ADMISSION_DURATION.labels(type=ext_type).observe(time.monotonic() - start)

        if not outcome.success:
            ADMISSIONS_TOTAL.labels(type=ext_type, result="rejected").inc()
            logger.warning("Extension %s rejected (%s): %s", file_path, operation_id, outcome.error)
            return LoadResult(
                success=False,
                operation_id=operation_id,
                error=outcome.error,
                error_kind=error_kind(outcome.exception) if outcome.exception else None,
                attempts=outcome.attempts,
            )

        instance, reservation = outcome.result
        ADMISSIONS_TOTAL.labels(type=ext_type, result="admitted").inc()
        logger.info(
            "Extension %s loaded successfully with full security validation",
            ext_type,
            extra={"file_path": str(file_path), "operation_id": operation_id},
        )
        return LoadResult(
            success=True,
            operation_id=operation_id,
            instance=instance,
            reservation=reservation,
            attempts=outcome.attempts,
        )

    async def _attempt(
        self,
        file_path: str | Path,
        ext_type: str,
        registry: ExtensionRegistry,
        dependencies: Optional[Dict[str, Any]],
    ) -> Tuple[Any, Reservation]:
        path_check = self.paths.validate_file_path(file_path)
        if not path_check.valid:
            raise PathPolicyViolation(f"Path validation failed: {path_check.reason}")

        # check and claim under one lock so concurrent admissions see the slot
        with registry.lock:
            limit_check = self.limits.validate_extension_limits(ext_type, registry)
            if not limit_check.valid:
                raise LimitExceeded(f"Limit validation failed: {limit_check.reason}")
            reservation = registry.reserve(ext_type)

        try:
            instance = await self._admit(Path(file_path), ext_type, dependencies)
        except BaseException:
            reservation.release()
            raise
        return instance, reservation

    async def _admit(self, path: Path, ext_type: str, dependencies: Optional[Dict[str, Any]]) -> Any:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise LoadFailure(f"Cannot read extension source: {e}") from e

        content_check = self.scanner.validate_extension_content(content)
        if not content_check.valid:
            raise ContentPolicyViolation(f"Content validation failed: {content_check.reason}")

        self.module_cache.evict(path)
        module = self.module_cache.load(path, source=content)
        extension_class = resolve_extension_class(module)

        try:
            instance = extension_class(dependencies) if dependencies is not None else extension_class()
        except Exception as e:
            raise LoadFailure(f"Extension construction failed: {type(e).__name__}: {e}") from e

        instance_check = self.validator.validate_extension_instance(instance, ext_type)
        if not instance_check.valid:
            raise InterfaceViolation(f"Instance validation failed: {instance_check.reason}")

        safety = await self.validator.test_extension_safety(instance)
        if not safety.safe:
            raise SafetyViolation(f"Safety test failed: {safety.reason}")

        return instance

    def get_security_stats(self) -> Dict[str, Any]:
        return {
            "failures": self.retry.get_failure_stats(),
            "security": {
                "allowed_types": sorted(self.security_policy.allowed_extension_types),
                "max_extensions": self.security_policy.max_total_extensions,
            },
            "validation": {
                "strict_mode": self.validation_policy.strict_type_checking,
                "max_execution_time": self.validation_policy.max_execution_time,
            },
        }

    def close(self) -> None:
        self.module_cache.clear()
