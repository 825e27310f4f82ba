"""
Admission policies.

Three immutable configuration objects, created once at startup and passed by
reference to the pipeline components:

- SecurityPolicy: which extension types may load, how many, from where, and
  which path/content patterns are refused.
- ValidationPolicy: the capability surface an instance must expose and the
  bounds of the trial call.
- RetryPolicy: retry ceiling and backoff plus host-level robustness flags.

None of these read the environment; see `extension_loader.config` for the
host-side settings layer.
"""
import re
from pathlib import Path
from typing import FrozenSet, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .interface import OPTIONAL_CAPABILITIES, REQUIRED_CAPABILITIES

BUNDLED_EXTENSIONS_DIR = Path(__file__).parent / "extensions"

DEFAULT_EXTENSION_TYPES = frozenset({
    "chart", "table", "video", "audio", "image", "smartart",
    "text", "shape", "connector", "group", "oleobject",
})

DEFAULT_BLOCKED_PATTERNS = (
    r"\.\.[\\/]",                             # path traversal
    r"\.dist-info|\.egg-info|__pycache__",    # package metadata and bytecode caches
    r"(?i)system|exec|spawn",                 # process keywords
    r"(?i)eval|lambda",                       # dynamic evaluation
    r"__import__|importlib",                  # nested dynamic imports
)


def _check_patterns(patterns: Tuple[str, ...]) -> Tuple[str, ...]:
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"invalid regular expression {pattern!r}: {e}") from e
    return patterns


class SecurityPolicy(BaseModel):
    """Where extensions may come from and how many may be admitted.

    `require_signature` and `sandbox_execution` are declared for configuration
    compatibility only. This engine verifies no signatures and runs extensions
    in-process; setting either flag only produces a warning at startup.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    allowed_extension_types: FrozenSet[str] = DEFAULT_EXTENSION_TYPES
    max_extensions_per_type: int = Field(3, ge=0)
    max_total_extensions: int = Field(20, ge=0)
    allowed_directories: Tuple[str, ...] = (str(BUNDLED_EXTENSIONS_DIR),)
    blocked_patterns: Tuple[str, ...] = DEFAULT_BLOCKED_PATTERNS
    blocked_content_patterns: Tuple[str, ...] = ()
    require_signature: bool = False
    sandbox_execution: bool = False

    @field_validator("blocked_patterns", "blocked_content_patterns")
    @classmethod
    def _patterns_compile(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return _check_patterns(v)


class ValidationPolicy(BaseModel):
    """Capability surface and trial-call bounds for instantiated extensions.

    Fields:
    - strict_type_checking: also require non-empty name/version strings, a
      supported_types sequence and a callable extract
    - require_exact_interface: optional capabilities, when present, must be callable
    - required_capabilities / optional_capabilities: attribute names
    - max_execution_time: seconds allowed for the safety trial call
    - memory_limit: bytes; advisory, only logged when exceeded
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    strict_type_checking: bool = True
    require_exact_interface: bool = True
    required_capabilities: Tuple[str, ...] = REQUIRED_CAPABILITIES
    optional_capabilities: Tuple[str, ...] = OPTIONAL_CAPABILITIES
    max_execution_time: float = Field(30.0, gt=0)
    memory_limit: int = Field(100 * 1024 * 1024, ge=0)


class RetryPolicy(BaseModel):
    """Retry ceiling, backoff, and host robustness switches"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    max_retries: int = Field(3, ge=0)
    base_delay: float = Field(1.0, ge=0)
    max_delay: float = Field(10.0, ge=0)
    graceful_degradation: bool = True
    isolate_failures: bool = True
    enable_hot_reload: bool = False
    cache_extensions: bool = True


class PolicyBundle(BaseModel):
    """The three policies together, as read from a policy file"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    security: SecurityPolicy = Field(default_factory=SecurityPolicy)
    validation: ValidationPolicy = Field(default_factory=ValidationPolicy)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
