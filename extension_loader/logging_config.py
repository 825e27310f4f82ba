"""
Logging setup for hosts and the command line.

Admission stages log under the `extension_loader` namespace, so hosts can
turn the pipeline up to DEBUG (every scanned pattern, cache eviction and
reservation) without drowning in their own debug output.
"""
import logging
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(name)s %(levelname)s: %(message)s"


def _level(name: Optional[str], default: int = logging.INFO) -> int:
    return getattr(logging, (name or "").upper(), default) if name else default


def configure_logging(level: Optional[str] = None, pipeline_level: Optional[str] = None) -> None:
    logging.basicConfig(level=_level(level), format=LOG_FORMAT)
    if pipeline_level:
        logging.getLogger("extension_loader").setLevel(_level(pipeline_level))
