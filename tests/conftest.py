"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from chronicle.events import EventBus

# Widget tests run without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer CHRONICLE_* variables from leaking into tests."""

    for name in list(os.environ):
        if name.startswith("CHRONICLE_"):
            monkeypatch.delenv(name, raising=False)
