import pytest

from extension_loader.registry import ExtensionRegistry


class Dummy:
    name = "dummy"
    version = "1.0"


def test_reservation_is_invisible_until_committed(registry):
    reservation = registry.reserve("chart")
    assert len(registry) == 0
    assert registry.get("chart") == []
    assert registry.count("chart") == 1
    assert registry.total() == 1

    instance = Dummy()
    entry = reservation.commit(instance, "/ext/chart.py", "load-chart-1")
    assert registry.get("chart") == [instance]
    assert registry.pending("chart") == 0
    assert entry.name == "dummy"
    assert entry.file_path == "/ext/chart.py"


def test_release_frees_the_slot(registry):
    reservation = registry.reserve("chart")
    reservation.release()
    reservation.release()
    assert registry.total() == 0
    assert not reservation.pending


def test_commit_after_release_fails(registry):
    reservation = registry.reserve("chart")
    reservation.release()
    with pytest.raises(RuntimeError):
        reservation.commit(Dummy())


def test_release_after_commit_is_noop(registry):
    reservation = registry.reserve("table")
    reservation.commit(Dummy())
    reservation.release()
    assert len(registry) == 1
    assert registry.pending() == 0


def test_multiple_instances_per_type(registry):
    first, second = Dummy(), Dummy()
    registry.reserve("chart").commit(first)
    registry.reserve("chart").commit(second)
    assert registry.get("chart") == [first, second]
    assert registry.count("chart") == 2
    assert "chart" in registry
    assert registry.types() == ["chart"]


def test_remove_entry(registry):
    entry = registry.reserve("chart").commit(Dummy())
    assert registry.remove(entry)
    assert not registry.remove(entry)
    assert "chart" not in registry
    assert len(registry) == 0


def test_snapshot():
    registry = ExtensionRegistry()
    registry.reserve("chart").commit(Dummy(), "/ext/a.py")
    registry.reserve("table")
    snap = registry.snapshot()
    assert snap["pending"] == {"table": 1}
    assert snap["loaded"]["chart"][0]["name"] == "dummy"
    assert snap["loaded"]["chart"][0]["file_path"] == "/ext/a.py"
