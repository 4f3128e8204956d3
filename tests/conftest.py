import pytest

import xen
from xen import config


class Tracked:
    """Heap value that records when its destructor runs."""

    def __init__(self, name: str, log: list) -> None:
        self.name = name
        self.log = log

    def __drop__(self) -> None:
        self.log.append(self.name)


@pytest.fixture
def drops():
    return []


@pytest.fixture
def make(drops):
    """Place a Tracked value on the heap and return its raw pointer."""
    def _make(name: str = "value") -> int:
        return xen.new(Tracked(name, drops))
    return _make


@pytest.fixture
def heap():
    return xen.default_heap()


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for name in ("XEN_FAIL_FAST", "XEN_HEAP_SIZE", "XEN_MAX_HEAP_SIZE"):
        monkeypatch.delenv(name, raising=False)
    config.reload_settings()
    yield
    monkeypatch.undo()
    config.reload_settings()
