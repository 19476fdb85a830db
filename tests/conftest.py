import pytest
from prometheus_client import REGISTRY, CollectorRegistry


class FakeClock:
    """
    manually advanced clock, in seconds since epoch.
    """

    def __init__(self, now: "float" = 1_700_000_000.0) -> "None":
        self.now = now

    def __call__(self) -> "float":
        return self.now

    def advance(self, seconds: "float") -> "None":
        self.now += seconds


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def clock() -> "FakeClock":
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolate_global_registry() -> "object":
    """
    unregister collectors a test added to the global Prometheus registry.
    """
    before = set(REGISTRY._collector_to_names)
    yield
    for collector in set(REGISTRY._collector_to_names) - before:
        REGISTRY.unregister(collector)
