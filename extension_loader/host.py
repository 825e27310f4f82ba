"""
ExtensionHost: the registry-owning side of extension admission.

Owns an ExtensionRegistry and a SecurityManager, commits admitted
extensions, and handles their lifecycle hooks (initialize / dispose).
"""
import inspect
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .manager import LoadResult, SecurityManager
from .registry import ExtensionRegistry, LoadedExtension

logger = logging.getLogger(__name__)


async def _call_hook(instance: Any, hook: str) -> None:
    method = getattr(instance, hook, None)
    if not callable(method):
        return
    outcome = method()
    if inspect.isawaitable(outcome):
        await outcome


class ExtensionHost:
    """Loads, tracks and unloads extensions for a host process"""

    def __init__(
        self,
        manager: Optional[SecurityManager] = None,
        registry: Optional[ExtensionRegistry] = None,
        dependencies: Optional[Dict[str, Any]] = None,
    ):
        self.manager = manager or SecurityManager()
        self.registry = registry or ExtensionRegistry()
        self.dependencies = dependencies

    @property
    def retry_policy(self):
        return self.manager.retry_policy

    async def load(
        self,
        file_path: str | Path,
        ext_type: str,
        dependencies: Optional[Dict[str, Any]] = None,
    ) -> LoadResult:
        """Admit an extension and register it once initialize() succeeds"""
        deps = dependencies if dependencies is not None else self.dependencies
        result = await self.manager.secure_load_extension(file_path, ext_type, self.registry, deps)
        if not result.success:
            return result

        try:
            await _call_hook(result.instance, "initialize")
        except Exception as e:
            logger.error("Extension %s failed to initialize: %s", file_path, e)
            result.reservation.release()
            return LoadResult(
                success=False,
                operation_id=result.operation_id,
                error=f"Extension initialization failed: {e}",
                error_kind="load-failure",
                attempts=result.attempts,
            )
        except BaseException:
            result.reservation.release()
            raise

        result.reservation.commit(result.instance, str(file_path), result.operation_id)
        return result

    async def load_all(self, entries: Iterable[Tuple[str | Path, str]]) -> List[LoadResult]:
        """Load (path, type) pairs in order.

        With isolate_failures a failed extension does not stop the rest;
        otherwise loading stops at the first failure.
        """
        results = []
        for file_path, ext_type in entries:
            result = await self.load(file_path, ext_type)
            results.append(result)
            if not result.success and not self.retry_policy.isolate_failures:
                logger.error("Stopping batch load after failure of %s", file_path)
                break
        return results

    def _find(self, ext_type: str, name: Optional[str] = None) -> Optional[LoadedExtension]:
        for entry in self.registry.entries(ext_type):
            if name is None or entry.name == name:
                return entry
        return None

    async def unload(self, ext_type: str, name: Optional[str] = None) -> bool:
        """Remove an extension (the oldest of its type unless named) and dispose it"""
        entry = self._find(ext_type, name)
        if entry is None or not self.registry.remove(entry):
            return False
        try:
            await _call_hook(entry.instance, "dispose")
        except Exception:
            logger.exception("Extension %s raised during dispose", entry.name)
        return True

    async def reload(self, file_path: str | Path, ext_type: str, name: Optional[str] = None) -> LoadResult:
        """Replace a loaded extension with a fresh admission of `file_path`.

        The old instance is taken out of the registry first so it does not
        count against the limits. If the new admission fails and graceful
        degradation is on, the old instance is put back as long as its type
        still has room under the limits; otherwise it is disposed.
        """
        if not self.retry_policy.enable_hot_reload:
            raise RuntimeError("Hot reload is disabled by the retry policy")

        previous = self._find(ext_type, name)
        if previous is not None:
            self.registry.remove(previous)

        result = await self.load(file_path, ext_type)
        if result.success:
            if previous is not None:
                try:
                    await _call_hook(previous.instance, "dispose")
                except Exception:
                    logger.exception("Previous %s extension raised during dispose", ext_type)
            return result

        if previous is not None:
            if self.retry_policy.graceful_degradation and self._restore(previous):
                logger.warning("Reload of %s failed, keeping previous extension", ext_type)
            else:
                try:
                    await _call_hook(previous.instance, "dispose")
                except Exception:
                    logger.exception("Previous %s extension raised during dispose", ext_type)
        return result

    def _restore(self, previous: LoadedExtension) -> bool:
        """Put a removed extension back if its type still has room"""
        # another admission may have taken the freed slot during the reload
        with self.registry.lock:
            room = self.manager.limits.validate_extension_limits(previous.ext_type, self.registry)
            if not room.valid:
                logger.warning("Cannot restore previous %s extension: %s", previous.ext_type, room.reason)
                return False
            self.registry.reserve(previous.ext_type).commit(
                previous.instance, previous.file_path, previous.operation_id
            )
        return True

    async def test(self, ext_type: str) -> Dict[str, Any]:
        """Re-run the safety probe for every loaded extension of a type"""
        report = {}
        for entry in self.registry.entries(ext_type):
            outcome = await self.manager.validator.test_extension_safety(entry.instance)
            report[entry.name or entry.operation_id] = outcome.to_dict()
        return report

    def get(self, ext_type: str) -> Optional[Any]:
        entry = self._find(ext_type)
        return entry.instance if entry else None

    def list_extensions(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.registry.entries()]

    def stats(self) -> Dict[str, Any]:
        stats = self.manager.get_security_stats()
        stats["registry"] = self.registry.snapshot()
        return stats

    async def close(self) -> None:
        for ext_type in self.registry.types():
            while await self.unload(ext_type):
                pass
        self.manager.close()
