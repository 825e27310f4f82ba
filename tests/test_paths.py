import os
import shutil
from pathlib import Path

import pytest

from extension_loader.paths import PathValidator
from extension_loader.policy import BUNDLED_EXTENSIONS_DIR, DEFAULT_BLOCKED_PATTERNS, SecurityPolicy


@pytest.fixture
def validator(security_policy):
    return PathValidator(security_policy())


def test_file_inside_allowed_directory(validator, chart_file):
    result = validator.validate_file_path(chart_file)
    assert result.valid
    assert result.reason is None


def test_path_outside_allowed_directories(validator, tmp_path: Path):
    outside = tmp_path / "elsewhere.py"
    outside.write_text("x = 1\n")
    result = validator.validate_file_path(outside)
    assert not result.valid
    assert result.reason.startswith("Path not in allowed directories")


def test_sibling_directory_with_same_prefix_is_not_allowed(validator, ext_dir: Path):
    sibling = ext_dir.parent / (ext_dir.name + "_other")
    sibling.mkdir()
    candidate = sibling / "chart.py"
    candidate.write_text("x = 1\n")
    result = validator.validate_file_path(candidate)
    assert not result.valid
    assert "allowed directories" in result.reason


def test_traversal_marker_rejected_even_inside_allowed_dir(validator, ext_dir: Path, chart_file):
    (ext_dir / "nested").mkdir()
    candidate = f"{ext_dir}/nested/../{chart_file.name}"
    result = validator.validate_file_path(candidate)
    assert not result.valid
    assert result.reason.startswith("Path matches blocked pattern")


def test_symlink_escaping_allowed_dir(validator, ext_dir: Path, tmp_path: Path):
    target = tmp_path / "outside.py"
    target.write_text("x = 1\n")
    link = ext_dir / "linked.py"
    os.symlink(target, link)
    result = validator.validate_file_path(link)
    assert not result.valid
    assert "allowed directories" in result.reason


@pytest.mark.parametrize("filename", ["spawn_worker.py", "SYSTEM_tools.py", "importlib_helper.py"])
def test_blocked_keywords_in_path(validator, ext_dir: Path, filename):
    candidate = ext_dir / filename
    candidate.write_text("x = 1\n")
    result = validator.validate_file_path(candidate)
    assert not result.valid
    assert result.reason.startswith("Path matches blocked pattern")


def test_missing_file(validator, ext_dir: Path):
    result = validator.validate_file_path(ext_dir / "missing.py")
    assert not result.valid
    assert result.reason.startswith("File does not exist")


def test_directory_is_not_a_file(validator, ext_dir: Path):
    (ext_dir / "package").mkdir()
    result = validator.validate_file_path(ext_dir / "package")
    assert not result.valid
    assert result.reason.startswith("Path is not a file")


def test_custom_blocked_pattern(security_policy, chart_file):
    validator = PathValidator(security_policy(blocked_patterns=(r"chart",)))
    result = validator.validate_file_path(chart_file)
    assert not result.valid
    assert "chart" in result.reason


def test_default_policy_accepts_bundled_chart_extension():
    result = PathValidator(SecurityPolicy()).validate_file_path(BUNDLED_EXTENSIONS_DIR / "chart_extension.py")
    assert result.valid


def test_default_patterns_accept_installed_package_layout(tmp_path: Path):
    installed = tmp_path / "venv" / "lib" / "python3.11" / "site-packages" / "extension_loader" / "extensions"
    installed.mkdir(parents=True)
    target = installed / "chart_extension.py"
    shutil.copyfile(BUNDLED_EXTENSIONS_DIR / "chart_extension.py", target)

    policy = SecurityPolicy(allowed_directories=(str(installed),))
    assert policy.blocked_patterns == DEFAULT_BLOCKED_PATTERNS
    assert PathValidator(policy).validate_file_path(target).valid


def test_package_metadata_directories_are_blocked(validator, ext_dir: Path):
    metadata = ext_dir / "extension_loader-0.1.0.dist-info"
    metadata.mkdir()
    candidate = metadata / "chart.py"
    candidate.write_text("x = 1\n")
    result = validator.validate_file_path(candidate)
    assert not result.valid
    assert result.reason.startswith("Path matches blocked pattern")
