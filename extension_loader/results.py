"""
Result objects returned by the admission stages.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single validation stage"""
    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"valid": self.valid}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class SafetyResult:
    """Outcome of the bounded-time safety probe"""
    safe: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"safe": self.safe}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class ExecutionResult:
    """Outcome of a retried operation"""
    success: bool
    result: Any = None
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False)
    attempts: int = 0
