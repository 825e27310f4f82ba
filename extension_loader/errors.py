"""
Error taxonomy for the extension admission pipeline.

Every stage failure is raised as one of these inside the pipeline and
converted into a failed LoadResult by the retry orchestrator. Callers of
SecurityManager.secure_load_extension never see them raised.
"""


class ExtensionLoadError(Exception):
    """Base class for admission failures"""
    kind = "load-error"


class PathPolicyViolation(ExtensionLoadError):
    kind = "path-policy"


class ContentPolicyViolation(ExtensionLoadError):
    kind = "content-policy"


class LimitExceeded(ExtensionLoadError):
    kind = "limit-exceeded"


class LoadFailure(ExtensionLoadError):
    """Module could not be executed or has no constructible default export"""
    kind = "load-failure"


class InterfaceViolation(ExtensionLoadError):
    kind = "interface-violation"


class SafetyViolation(ExtensionLoadError):
    """Trial call timed out or tried to reach process/system level access"""
    kind = "safety-violation"


def error_kind(exc: BaseException) -> str:
    """Map any exception to a taxonomy tag; foreign exceptions count as load failures"""
    if isinstance(exc, ExtensionLoadError):
        return exc.kind
    return LoadFailure.kind
