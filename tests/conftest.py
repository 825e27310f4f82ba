import shutil
import textwrap
from pathlib import Path

import pytest

from extension_loader.manager import SecurityManager
from extension_loader.policy import RetryPolicy, SecurityPolicy, ValidationPolicy
from extension_loader.registry import ExtensionRegistry

BUNDLED_CHART = Path(__file__).parent.parent / "extension_loader" / "extensions" / "chart_extension.py"

TABLE_SOURCE = '''
from extension_loader.interface import Extension


class TableExtension(Extension):
    name = "table"
    version = "VERSION"
    supported_types = ("Table",)

    def initialize(self):
        self.ready = True

    async def extract(self, source, context=None):
        if source is None:
            raise ValueError("no table shape given")
        return {"rows": source}


__extension__ = TableExtension
'''


def table_source(version: str = "1.0.0") -> str:
    return TABLE_SOURCE.replace("VERSION", version)


@pytest.fixture
def ext_dir(tmp_path: Path) -> Path:
    d = tmp_path / "extensions"
    d.mkdir()
    return d


@pytest.fixture
def write_extension(ext_dir: Path):
    def _write(filename: str, source: str) -> Path:
        path = ext_dir / filename
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def chart_file(ext_dir: Path) -> Path:
    target = ext_dir / "chart_extension.py"
    shutil.copyfile(BUNDLED_CHART, target)
    return target


@pytest.fixture
def security_policy(ext_dir: Path):
    def _make(**overrides) -> SecurityPolicy:
        overrides.setdefault("allowed_directories", (str(ext_dir),))
        return SecurityPolicy(**overrides)
    return _make


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def make_manager(security_policy, sleeps):
    managers = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    def _make(security=None, validation=None, retry=None) -> SecurityManager:
        manager = SecurityManager(
            security or security_policy(),
            validation or ValidationPolicy(max_execution_time=2.0),
            retry or RetryPolicy(max_retries=2),
            sleep=fake_sleep,
        )
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.close()


@pytest.fixture
def registry() -> ExtensionRegistry:
    return ExtensionRegistry()
