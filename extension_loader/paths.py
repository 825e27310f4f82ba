"""
Path validation for candidate extension files.
"""
import logging
import re
from pathlib import Path
from typing import List

from .policy import SecurityPolicy
from .results import ValidationResult

logger = logging.getLogger(__name__)


class PathValidator:
    """Confirms a file lives under an allowed directory and is not blocked.

    Checks run in order and the first failure wins:
    1. the canonical path lies inside a canonical allowed directory
    2. the path *as given* matches none of the blocked patterns
    3. the canonical path exists and is a regular file
    """

    def __init__(self, policy: SecurityPolicy):
        self.policy = policy
        self._blocked: List[re.Pattern] = [re.compile(p) for p in policy.blocked_patterns]

    def _allowed_roots(self) -> List[Path]:
        return [Path(d).resolve() for d in self.policy.allowed_directories]

    @staticmethod
    def _is_within(path: Path, root: Path) -> bool:
        return path == root or root in path.parents

    def validate_file_path(self, file_path: str | Path) -> ValidationResult:
        raw = str(file_path)
        try:
            resolved = Path(raw).resolve()

            if not any(self._is_within(resolved, root) for root in self._allowed_roots()):
                return ValidationResult.fail(f"Path not in allowed directories: {raw}")

            for pattern in self._blocked:
                if pattern.search(raw):
                    return ValidationResult.fail(f"Path matches blocked pattern: {pattern.pattern}")

            if not resolved.exists():
                return ValidationResult.fail(f"File does not exist: {raw}")

            if not resolved.is_file():
                return ValidationResult.fail(f"Path is not a file: {raw}")

            return ValidationResult.ok()

        except (OSError, RuntimeError, ValueError) as e:
            logger.warning("Path validation error for %s: %s", raw, e)
            return ValidationResult.fail(f"Path validation error: {e}")
