"""
Host-side configuration for extension_loader.

The admission core only ever receives policy objects. This module is where a
host process turns environment variables and an optional YAML policy file
into those objects.
"""
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policy import PolicyBundle

logger = logging.getLogger(__name__)


class LoaderSettings(BaseSettings):
    """Process-level settings (EXTENSION_LOADER_* environment variables)"""

    model_config = SettingsConfigDict(env_prefix="EXTENSION_LOADER_", extra="ignore")

    log_level: str = "INFO"
    policy_file: Optional[str] = None
    extension_dirs: List[str] = Field(default_factory=list)


def load_policies(path: Optional[str | Path] = None) -> PolicyBundle:
    """Read a YAML policy file into a PolicyBundle.

    The document may contain `security`, `validation` and `retry` mappings;
    missing sections and fields fall back to defaults. With no path the
    defaults are returned.
    """
    if path is None:
        return PolicyBundle()

    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Policy file {p} must contain a mapping")
    logger.debug("Loaded policy file %s with sections %s", p, sorted(data))
    return PolicyBundle(**data)


def build_policies(settings: Optional[LoaderSettings] = None) -> PolicyBundle:
    """Resolve the effective policies for a host from its settings"""
    settings = settings or LoaderSettings()
    bundle = load_policies(settings.policy_file)
    if settings.extension_dirs:
        security = bundle.security.model_copy(
            update={"allowed_directories": tuple(settings.extension_dirs)}
        )
        bundle = bundle.model_copy(update={"security": security})
    return bundle
