"""
Global and per-type extension caps.
"""
from .policy import SecurityPolicy
from .registry import ExtensionRegistry
from .results import ValidationResult


class LimitEnforcer:
    """Checks a requested type against the registry's current occupancy.

    Counts include pending reservations. The three checks run in a fixed
    order (global cap, allowed type, per-type cap) and the first failure wins.
    """

    def __init__(self, policy: SecurityPolicy):
        self.policy = policy

    def validate_extension_limits(self, ext_type: str, registry: ExtensionRegistry) -> ValidationResult:
        if registry.total() >= self.policy.max_total_extensions:
            return ValidationResult.fail(
                f"Maximum total extensions exceeded: {self.policy.max_total_extensions}"
            )

        if ext_type not in self.policy.allowed_extension_types:
            return ValidationResult.fail(f"Extension type not allowed: {ext_type}")

        if registry.count(ext_type) >= self.policy.max_extensions_per_type:
            return ValidationResult.fail(
                f"Maximum extensions per type exceeded for {ext_type}: "
                f"{self.policy.max_extensions_per_type}"
            )

        return ValidationResult.ok()
