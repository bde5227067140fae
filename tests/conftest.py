"""Shared pytest fixtures for Sightline tests."""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest

from sightline.config import Settings
from sightline.config import get_settings as original_get_settings
from sightline.services.live.exceptions import LiveSessionClosedError
from sightline.services.live.protocol import (
    ContentTurn,
    LiveServerEvent,
    LiveSessionCallbacks,
    LiveSessionConfig,
    RealtimeInput,
)

TEST_MODEL = "gemini-live-test-model"


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "gemini_api_key": "test-gemini-key",
        "gemini_live_model": TEST_MODEL,
        "static_dir": "does-not-exist",
        "environment": "development",
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Fake Live Provider
# =============================================================================


class FakeLiveHandle:
    """In-memory Live session handle that records every send."""

    def __init__(self, config: LiveSessionConfig, callbacks: LiveSessionCallbacks) -> None:
        self.config = config
        self.callbacks = callbacks
        self.contents: list[ContentTurn] = []
        self.realtime_inputs: list[RealtimeInput] = []
        self.closed = False
        self.send_error: Exception | None = None

    def send_content(self, turn: ContentTurn) -> None:
        self._check()
        self.contents.append(turn)

    def send_realtime_input(self, realtime_input: RealtimeInput) -> None:
        self._check()
        self.realtime_inputs.append(realtime_input)

    async def close(self) -> None:
        self.closed = True

    def _check(self) -> None:
        if self.closed:
            raise LiveSessionClosedError()
        if self.send_error is not None:
            raise self.send_error

    @property
    def send_count(self) -> int:
        return len(self.contents) + len(self.realtime_inputs)


class FakeLiveProvider:
    """Live provider that opens FakeLiveHandles and completes setup immediately."""

    def __init__(self, *, session_id: str | None = "fake-session", auto_setup: bool = True) -> None:
        self.session_id = session_id
        self.auto_setup = auto_setup
        self.connect_error: Exception | None = None
        self.configs: list[LiveSessionConfig] = []
        self.handles: list[FakeLiveHandle] = []

    async def connect(
        self,
        config: LiveSessionConfig,
        callbacks: LiveSessionCallbacks,
    ) -> FakeLiveHandle:
        self.configs.append(config)
        if self.connect_error is not None:
            raise self.connect_error

        handle = FakeLiveHandle(config, callbacks)
        self.handles.append(handle)
        callbacks.on_open()
        if self.auto_setup:
            callbacks.on_message(LiveServerEvent(setup_complete=True, session_id=self.session_id))
        return handle

    @property
    def latest(self) -> FakeLiveHandle:
        return self.handles[-1]


@pytest.fixture
def live_provider() -> FakeLiveProvider:
    """In-memory Live provider."""
    return FakeLiveProvider()


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


def _build_test_client(monkeypatch, test_settings: Settings, provider: FakeLiveProvider):
    from fastapi.testclient import TestClient

    from sightline.main import create_app

    monkeypatch.setattr("sightline.config.get_settings", lambda: test_settings)
    monkeypatch.setattr("sightline.main.get_settings", lambda: test_settings)
    monkeypatch.setattr(
        "sightline.api.websocket.live_stream.get_settings", lambda: test_settings
    )
    monkeypatch.setattr(
        "sightline.api.websocket.live_stream.get_live_provider", lambda: provider
    )

    app = create_app()

    # Depends(get_settings) holds the original function object
    app.dependency_overrides[original_get_settings] = lambda: test_settings

    return TestClient(app)


@pytest.fixture
def test_client(settings_factory, live_provider, monkeypatch) -> Generator:
    """FastAPI TestClient with patched settings and a fake Live provider."""
    with _build_test_client(monkeypatch, settings_factory(), live_provider) as client:
        yield client


@pytest.fixture
def test_client_no_key(settings_factory, live_provider, monkeypatch) -> Generator:
    """FastAPI TestClient without a Gemini API key configured."""
    test_settings = settings_factory(gemini_api_key=None)
    with _build_test_client(monkeypatch, test_settings, live_provider) as client:
        yield client
