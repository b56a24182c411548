"""Unit tests for application startup, shutdown and failure handling."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from suspend_notifier.app import SuspendNotifierApp, _ComponentError
from suspend_notifier.k8s.client import ClusterResourceClient
from suspend_notifier.watch import Watcher


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("SUSPEND_NOTIFIER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SUSPEND_NOTIFIER_GCP_PROJECT_ID", "acme-prod")
    monkeypatch.setenv("SUSPEND_NOTIFIER_CLUSTER_NAME", "gke-prod")
    monkeypatch.setenv("SUSPEND_NOTIFIER_STORE_PATH", str(tmp_path / "state.db"))


@pytest.fixture
def fake_k8s(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    k8s = MagicMock()
    k8s.close = AsyncMock()
    monkeypatch.setattr(ClusterResourceClient, "create", AsyncMock(return_value=k8s))
    return k8s


class TestStartup:
    async def test_missing_config_is_a_component_error(self) -> None:
        app = SuspendNotifierApp()
        with pytest.raises(_ComponentError) as exc_info:
            await app.start()
        assert exc_info.value.component == "config"
        await app.stop()

    async def test_invalid_filter_is_a_component_error(
        self, configured_env: None, fake_k8s: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SUSPEND_NOTIFIER_NOTIFICATIONS_WEBHOOK_SECRET_REF", "HOOK_URL")
        monkeypatch.setenv("SUSPEND_NOTIFIER_NOTIFICATIONS_WEBHOOK_FILTER", "suspended and")
        monkeypatch.setenv("HOOK_URL", "https://hooks.example.com/flux")

        app = SuspendNotifierApp()
        with pytest.raises(_ComponentError) as exc_info:
            await app.start()
        assert exc_info.value.component == "notifications"
        await app.stop()
        fake_k8s.close.assert_awaited_once()

    async def test_runs_watcher_until_it_returns(
        self, configured_env: None, fake_k8s: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        watch = AsyncMock(return_value=None)
        monkeypatch.setattr(Watcher, "watch", watch)

        app = SuspendNotifierApp()
        await app.start()
        await app.wait()
        await app.stop()

        watch.assert_awaited_once()
        fake_k8s.close.assert_awaited_once()

    async def test_signal_during_startup_skips_watcher(
        self, configured_env: None, fake_k8s: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        app = SuspendNotifierApp()

        async def _create_then_signal(kubeconfig: str = "") -> MagicMock:
            app.request_shutdown()
            return fake_k8s

        watch = AsyncMock()
        monkeypatch.setattr(ClusterResourceClient, "create", _create_then_signal)
        monkeypatch.setattr(Watcher, "watch", watch)

        await app.start()
        app.request_shutdown()
        await asyncio.wait_for(app.wait(), timeout=1.0)
        await app.stop()

        assert app._watch_task is None
        watch.assert_not_called()
        fake_k8s.close.assert_awaited_once()


class TestShutdown:
    async def test_requested_shutdown_returns_normally(self) -> None:
        app = SuspendNotifierApp()
        app._watch_task = asyncio.create_task(asyncio.Event().wait())
        await asyncio.sleep(0)

        app.request_shutdown()
        await app.wait()
        await app.stop()

    async def test_watcher_failure_propagates(self) -> None:
        async def _fail() -> None:
            raise RuntimeError("stream gone")

        app = SuspendNotifierApp()
        app._watch_task = asyncio.create_task(_fail())

        with pytest.raises(RuntimeError, match="stream gone"):
            await app.wait()
        await app.stop()

    async def test_stop_without_start(self) -> None:
        await SuspendNotifierApp().stop()
