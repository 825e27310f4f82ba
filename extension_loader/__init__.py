"""
extension_loader: admission pipeline for runtime-loaded extensions.
"""
from extension_loader.errors import (
    ContentPolicyViolation,
    ExtensionLoadError,
    InterfaceViolation,
    LimitExceeded,
    LoadFailure,
    PathPolicyViolation,
    SafetyViolation,
)
from extension_loader.host import ExtensionHost
from extension_loader.interface import Extension
from extension_loader.loader import ModuleCache
from extension_loader.manager import LoadResult, SecurityManager
from extension_loader.policy import PolicyBundle, RetryPolicy, SecurityPolicy, ValidationPolicy
from extension_loader.registry import ExtensionRegistry, LoadedExtension, Reservation

__version__ = "0.1.0"
__all__ = [
    "SecurityManager",
    "ExtensionHost",
    "ExtensionRegistry",
    "LoadedExtension",
    "Reservation",
    "LoadResult",
    "ModuleCache",
    "Extension",
    "SecurityPolicy",
    "ValidationPolicy",
    "RetryPolicy",
    "PolicyBundle",
    "ExtensionLoadError",
    "PathPolicyViolation",
    "ContentPolicyViolation",
    "LimitExceeded",
    "LoadFailure",
    "InterfaceViolation",
    "SafetyViolation",
]
