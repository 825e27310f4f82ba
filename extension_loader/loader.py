"""
Loading extension modules from files.

The module cache is owned by the caller (the SecurityManager), never by the
process: nothing is inserted into sys.modules, and `evict()` is called before
every load so an admission always executes the file's current contents.
"""
import hashlib
import importlib.util
import inspect
import logging
from importlib.machinery import SourceFileLoader
from pathlib import Path
from types import ModuleType
from typing import Dict, Optional

from .errors import LoadFailure

logger = logging.getLogger(__name__)

EXPORT_ATTRIBUTE = "__extension__"


class _FreshSourceLoader(SourceFileLoader):
    """Compiles the given source text, never reading or writing __pycache__"""

    def __init__(self, fullname: str, path: str, source: Optional[str] = None):
        super().__init__(fullname, path)
        self.source = source

    def get_code(self, fullname):
        source = self.source if self.source is not None else self.get_data(self.path)
        return self.source_to_code(source, self.path)


class ModuleCache:
    """Caller-owned cache of executed extension modules keyed by resolved path"""

    def __init__(self, retain: bool = True):
        self.retain = retain
        self._modules: Dict[str, ModuleType] = {}

    @staticmethod
    def _key(path: str | Path) -> str:
        return str(Path(path).resolve())

    @staticmethod
    def _module_name(key: str) -> str:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
        return f"_extension_{Path(key).stem}_{digest}"

    def get(self, path: str | Path) -> Optional[ModuleType]:
        return self._modules.get(self._key(path))

    def evict(self, path: str | Path) -> bool:
        """Drop any cached module for `path`; returns whether one was cached"""
        removed = self._modules.pop(self._key(path), None) is not None
        if removed:
            logger.debug("Evicted cached extension module %s", path)
        return removed

    def load(self, path: str | Path, source: Optional[str] = None) -> ModuleType:
        """Execute the file as a fresh module, or return the cached one.

        When `source` is given it is executed instead of re-reading the file,
        so the code that runs is exactly the code that was scanned.
        """
        key = self._key(path)
        cached = self._modules.get(key)
        if cached is not None:
            return cached

        name = self._module_name(key)
        spec = importlib.util.spec_from_file_location(name, key, loader=_FreshSourceLoader(name, key, source))
        if spec is None or spec.loader is None:
            raise LoadFailure(f"Invalid extension: cannot create module spec for {path}")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise LoadFailure(f"Extension module failed to load: {type(e).__name__}: {e}") from e

        if self.retain:
            self._modules[key] = module
        return module

    def clear(self) -> None:
        self._modules.clear()

    def __contains__(self, path: str | Path) -> bool:
        return self._key(path) in self._modules

    def __len__(self) -> int:
        return len(self._modules)


def resolve_extension_class(module: ModuleType) -> type:
    """Return the module's default-exported class"""
    extension_class = getattr(module, EXPORT_ATTRIBUTE, None)
    if extension_class is None or not inspect.isclass(extension_class):
        raise LoadFailure("Invalid extension: must export default class")
    return extension_class
