import asyncio
import threading

import pytest

from extension_loader.interface import OPTIONAL_CAPABILITIES, REQUIRED_CAPABILITIES
from extension_loader.policy import ValidationPolicy
from extension_loader.validator import InstanceValidator


class GoodExtension:
    """Conforms structurally without subclassing Extension"""
    name = "table"
    version = "1.2.0"
    supported_types = ["Table"]

    async def extract(self, source, context=None):
        if source is None:
            raise ValueError("nothing to extract")
        return {}

    def dispose(self):
        pass


@pytest.fixture
def validator():
    return InstanceValidator(ValidationPolicy(max_execution_time=0.2))


def test_default_capabilities_follow_extension_contract():
    policy = ValidationPolicy()
    assert policy.required_capabilities == REQUIRED_CAPABILITIES
    assert policy.optional_capabilities == OPTIONAL_CAPABILITIES


def test_conformant_instance_passes(validator):
    assert validator.validate_extension_instance(GoodExtension(), "table").valid


def test_missing_capability(validator):
    class NoExtract:
        name = "x"
        version = "1"
        supported_types = ["X"]

    result = validator.validate_extension_instance(NoExtract(), "table")
    assert not result.valid
    assert result.reason == "Missing required method: extract"


def test_capability_of_wrong_type(validator):
    class NumericVersion(GoodExtension):
        version = 3

    result = validator.validate_extension_instance(NumericVersion(), "table")
    assert not result.valid
    assert result.reason == "Invalid type for version: expected callable or string"


def test_strict_mode_requires_non_empty_name(validator):
    class Nameless(GoodExtension):
        name = ""

    result = validator.validate_extension_instance(Nameless(), "table")
    assert result.reason == "Extension must have a valid name property"


def test_strict_mode_requires_supported_types_sequence(validator):
    class StringTypes(GoodExtension):
        supported_types = "Table"

    result = validator.validate_extension_instance(StringTypes(), "table")
    assert result.reason == "Extension must have a supported_types sequence"


def test_lenient_mode_skips_identity_checks():
    class StringTypes(GoodExtension):
        supported_types = "Table"

    v = InstanceValidator(ValidationPolicy(strict_type_checking=False))
    assert v.validate_extension_instance(StringTypes(), "table").valid


def test_optional_capability_must_be_callable(validator):
    class BadDispose(GoodExtension):
        dispose = "later"

    result = validator.validate_extension_instance(BadDispose(), "table")
    assert result.reason == "Optional capability dispose must be callable"


def test_property_errors_are_reported(validator):
    class Exploding(GoodExtension):
        @property
        def version(self):
            raise RuntimeError("boom")

    result = validator.validate_extension_instance(Exploding(), "table")
    assert not result.valid
    assert result.reason == "Instance validation error: boom"


@pytest.mark.asyncio
async def test_probe_passes_when_extract_rejects_null_input(validator):
    result = await validator.test_extension_safety(GoodExtension())
    assert result.safe
    assert result.reason is None


@pytest.mark.asyncio
async def test_probe_times_out_on_hanging_coroutine(validator):
    class Hanging(GoodExtension):
        async def extract(self, source, context=None):
            await asyncio.sleep(30)

    result = await validator.test_extension_safety(Hanging())
    assert not result.safe
    assert result.reason == "Test timeout"


@pytest.mark.asyncio
async def test_probe_times_out_on_blocking_call(validator):
    release = threading.Event()

    class Blocking(GoodExtension):
        def extract(self, source, context=None):
            release.wait(2)

    try:
        result = await validator.test_extension_safety(Blocking())
    finally:
        release.set()
    assert not result.safe
    assert result.reason == "Test timeout"


@pytest.mark.asyncio
async def test_hung_calls_do_not_starve_later_safety_checks(validator):
    release = threading.Event()

    class Stuck(GoodExtension):
        def extract(self, source, context=None):
            release.wait(5)

    try:
        for _ in range(5):
            assert (await validator.test_extension_safety(Stuck())).reason == "Test timeout"

        result = await validator.test_extension_safety(GoodExtension())
    finally:
        release.set()
    assert result.safe
    assert result.reason is None


@pytest.mark.asyncio
async def test_probe_flags_forbidden_access_errors(validator):
    class Snooping(GoodExtension):
        def extract(self, source, context=None):
            raise PermissionError("system access denied")

    result = await validator.test_extension_safety(Snooping())
    assert not result.safe
    assert result.reason == "Extension attempted system access during test"


@pytest.mark.asyncio
async def test_probe_tolerates_ordinary_errors(validator):
    class Picky(GoodExtension):
        def extract(self, source, context=None):
            raise TypeError("source must be a shape")

    assert (await validator.test_extension_safety(Picky())).safe


@pytest.mark.asyncio
async def test_probe_fails_when_identity_read_raises(validator):
    class Exploding(GoodExtension):
        @property
        def name(self):
            raise RuntimeError("boom")

    result = await validator.test_extension_safety(Exploding())
    assert not result.safe
    assert result.reason == "boom"


@pytest.mark.asyncio
async def test_probe_without_extract_is_safe(validator):
    class Inert:
        name = "inert"
        version = "1"
        supported_types = ()

    assert (await validator.test_extension_safety(Inert())).safe
