"""
Static content scanning of extension source text.

This is a textual heuristic, not a parser: it rejects some harmless sources
(a docstring that mentions eval( is refused) and misses obfuscated ones
(getattr tricks, string concatenation). It is a first filter in front of the
load step, not a security boundary.
"""
import logging
import re
from typing import List

from .policy import SecurityPolicy
from .results import ValidationResult

logger = logging.getLogger(__name__)

_RISKY_MODULES = (
    "os", "sys", "subprocess", "shutil", "socket", "ctypes", "multiprocessing",
    "pathlib", "importlib", "builtins", "threading", "signal", "sched",
)

DANGEROUS_PATTERNS = (
    # process, filesystem and child-process capabilities
    r"^\s*import\s+(?:[\w.]+\s*,\s*)*(?:%s)\b" % "|".join(_RISKY_MODULES),
    r"^\s*from\s+(?:%s)\b[\w.]*\s+import\b" % "|".join(_RISKY_MODULES),
    # dynamic code evaluation
    r"\beval\s*\(",
    r"\bexec\s*\(",
    r"\bcompile\s*\(",
    r"__import__\s*\(",
    # timers
    r"\bTimer\s*\(",
    r"\bcall_later\s*\(",
    r"\bcall_at\s*\(",
    # process-global and module-location state
    r"\bglobals\s*\(",
    r"__builtins__",
    r"\bsys\.modules\b",
    r"\bos\.environ\b",
    r"__file__",
    r"__spec__",
    r"__loader__",
)

EXPORT_PATTERN = re.compile(r"^__extension__\s*=\s*([A-Za-z_]\w*)\s*(?:#.*)?$", re.MULTILINE)


class ContentScanner:
    """Rejects extension sources that reference dangerous capabilities"""

    def __init__(self, policy: SecurityPolicy):
        self.policy = policy
        patterns = list(DANGEROUS_PATTERNS) + list(policy.blocked_content_patterns)
        self._patterns: List[re.Pattern] = [re.compile(p, re.MULTILINE) for p in patterns]

    def validate_extension_content(self, content: str) -> ValidationResult:
        for pattern in self._patterns:
            if pattern.search(content):
                logger.debug("Content matched dangerous pattern %s", pattern.pattern)
                return ValidationResult.fail(f"Content contains dangerous pattern: {pattern.pattern}")

        exports = EXPORT_PATTERN.findall(content)
        if len(exports) != 1:
            return ValidationResult.fail("Extension must export default class")

        class_decl = re.compile(r"^class\s+%s\b" % re.escape(exports[0]), re.MULTILINE)
        if not class_decl.search(content):
            return ValidationResult.fail("Extension must export default class")

        return ValidationResult.ok()
