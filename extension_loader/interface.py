"""
Extension contract.

Extensions are loaded from outside the host's own code, so conformance is
checked structurally by InstanceValidator against the capability names
below. Subclassing `Extension` is the convenient way to satisfy it but is not
required.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

REQUIRED_CAPABILITIES = ("extract", "name", "version", "supported_types")
OPTIONAL_CAPABILITIES = ("initialize", "dispose", "validate", "configure")


class Extension(ABC):
    """
    Base class for extractor extensions.

    A module exposes its extension by assigning the class to `__extension__`::

        class ChartExtension(Extension):
            name = "chart"
            version = "1.0.0"
            supported_types = ("Chart",)

            async def extract(self, source, context=None):
                ...

        __extension__ = ChartExtension
    """

    name: str = ""
    version: str = ""
    supported_types: Sequence[str] = ()

    def __init__(self, dependencies: Optional[Dict[str, Any]] = None):
        self.dependencies = dependencies or {}

    @abstractmethod
    def extract(self, source: Any, context: Optional[Dict[str, Any]] = None) -> Any:
        """
        Extract structured data from an opaque source object.

        May be a coroutine function. Must reject inputs it cannot handle by
        raising, including a None source.
        """
        pass

    def initialize(self) -> None:
        """Called once after admission, before the extension is registered"""
        pass

    def dispose(self) -> None:
        """Called when the extension is unloaded"""
        pass
