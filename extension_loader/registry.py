"""
Extension registry with two-phase slot reservation.

The registry maps an extension-type tag to the extensions currently loaded
for it. Admission claims a slot with `reserve()` while validating, and the
caller either commits the instance into that slot or releases it. Pending
reservations count against limits, so two concurrent admissions of the same
type cannot both slip under the per-type cap.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class LoadedExtension:
    """A committed registry entry"""
    ext_type: str
    instance: Any
    file_path: Optional[str] = None
    operation_id: Optional[str] = None
    loaded_at: float = field(default_factory=time.time)

    @property
    def name(self) -> Optional[str]:
        return getattr(self.instance, "name", None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.ext_type,
            "name": self.name,
            "version": getattr(self.instance, "version", None),
            "file_path": self.file_path,
            "operation_id": self.operation_id,
            "loaded_at": self.loaded_at,
        }


class Reservation:
    """A claimed but not yet filled registry slot"""

    def __init__(self, registry: "ExtensionRegistry", ext_type: str):
        self.registry = registry
        self.ext_type = ext_type
        self._state = "pending"

    @property
    def pending(self) -> bool:
        return self._state == "pending"

    def commit(self, instance: Any, file_path: Optional[str] = None,
               operation_id: Optional[str] = None) -> LoadedExtension:
        """Fill the slot, making the instance visible"""
        if not self.pending:
            raise RuntimeError(f"Reservation for {self.ext_type} is already {self._state}")
        entry = LoadedExtension(self.ext_type, instance, file_path, operation_id)
        self.registry._fill(self, entry)
        self._state = "committed"
        return entry

    def release(self) -> None:
        """Give the slot back; no-op once committed or released"""
        if not self.pending:
            return
        self.registry._drop(self)
        self._state = "released"

    def __repr__(self) -> str:
        return f"Reservation({self.ext_type!r}, {self._state})"


class ExtensionRegistry:
    """Type-tag keyed registry of loaded extensions"""

    def __init__(self):
        self.lock = threading.RLock()
        self._loaded: Dict[str, List[LoadedExtension]] = {}
        self._pending: Dict[str, int] = {}

    def reserve(self, ext_type: str) -> Reservation:
        with self.lock:
            self._pending[ext_type] = self._pending.get(ext_type, 0) + 1
            logger.debug("Reserved slot for %s (%d pending)", ext_type, self._pending[ext_type])
            return Reservation(self, ext_type)

    def _fill(self, reservation: Reservation, entry: LoadedExtension) -> None:
        with self.lock:
            self._decrement_pending(reservation.ext_type)
            self._loaded.setdefault(entry.ext_type, []).append(entry)
        logger.info("Registered extension %s (%s)", entry.name, entry.ext_type)

    def _drop(self, reservation: Reservation) -> None:
        with self.lock:
            self._decrement_pending(reservation.ext_type)

    def _decrement_pending(self, ext_type: str) -> None:
        remaining = self._pending.get(ext_type, 0) - 1
        if remaining > 0:
            self._pending[ext_type] = remaining
        else:
            self._pending.pop(ext_type, None)

    def count(self, ext_type: str) -> int:
        """Loaded plus reserved slots for one type"""
        with self.lock:
            return len(self._loaded.get(ext_type, [])) + self._pending.get(ext_type, 0)

    def total(self) -> int:
        """Loaded plus reserved slots across all types"""
        with self.lock:
            return sum(len(v) for v in self._loaded.values()) + sum(self._pending.values())

    def pending(self, ext_type: Optional[str] = None) -> int:
        with self.lock:
            if ext_type is None:
                return sum(self._pending.values())
            return self._pending.get(ext_type, 0)

    def entries(self, ext_type: Optional[str] = None) -> List[LoadedExtension]:
        with self.lock:
            if ext_type is not None:
                return list(self._loaded.get(ext_type, []))
            return [e for entries in self._loaded.values() for e in entries]

    def get(self, ext_type: str) -> List[Any]:
        """Instances loaded for a type, oldest first"""
        return [e.instance for e in self.entries(ext_type)]

    def remove(self, entry: LoadedExtension) -> bool:
        with self.lock:
            entries = self._loaded.get(entry.ext_type, [])
            if entry not in entries:
                return False
            entries.remove(entry)
            if not entries:
                del self._loaded[entry.ext_type]
        logger.info("Removed extension %s (%s)", entry.name, entry.ext_type)
        return True

    def types(self) -> List[str]:
        with self.lock:
            return sorted(self._loaded)

    def __len__(self) -> int:
        with self.lock:
            return sum(len(v) for v in self._loaded.values())

    def __contains__(self, ext_type: str) -> bool:
        with self.lock:
            return ext_type in self._loaded

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "loaded": {t: [e.to_dict() for e in entries] for t, entries in self._loaded.items()},
                "pending": dict(self._pending),
            }
