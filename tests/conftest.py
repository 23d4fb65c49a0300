"""Shared fixtures for tracewire tests."""

import pytest

from tracewire.config import TracerSettings, reset_settings
from tracewire.tracing import ExplicitScopeManager, InMemoryReporter, Tracer


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep TRACEWIRE_* variables from the host environment out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("TRACEWIRE_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()


@pytest.fixture
def settings() -> TracerSettings:
    return TracerSettings(reporter="memory", scope="explicit")


@pytest.fixture
def reporter() -> InMemoryReporter:
    return InMemoryReporter()


@pytest.fixture
def tracer(reporter: InMemoryReporter, settings: TracerSettings) -> Tracer:
    return Tracer(reporter=reporter, scope_manager=ExplicitScopeManager(), settings=settings)
