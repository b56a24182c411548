"""Application bootstrap for suspend-notifier.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → state store → notifiers
              → audit log tailer → watcher

The watcher runs as a single background task. SIGINT/SIGTERM cancel it;
any other termination of that task is fatal and exits non-zero so that
the supervisor restarts the process (re-running bootstrap).
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from suspend_notifier.config import load_config
from suspend_notifier.models.config import SuspendNotifierConfig
from suspend_notifier.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from suspend_notifier.k8s.client import ClusterResourceClient
    from suspend_notifier.notifications import MultiNotifier
    from suspend_notifier.store import SQLiteStateStore
    from suspend_notifier.watch import Watcher


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class SuspendNotifierApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.
    """

    def __init__(self) -> None:
        self.config: SuspendNotifierConfig | None = None

        self._k8s_client: ClusterResourceClient | None = None
        self._store: SQLiteStateStore | None = None
        self._notifier: MultiNotifier | None = None
        self._watcher: Watcher | None = None
        self._watch_task: asyncio.Task[None] | None = None

        self._shutdown_requested = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        try:
            self.config = load_config()
        except ValueError as exc:
            raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info(
            "suspend-notifier starting",
            version=_version(),
            project_id=self.config.cluster.project_id,
            cluster=self.config.cluster.cluster_name,
        )

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. State store ----------------------------------------------
        self._start_store()

        # --- 5. Notifiers --------------------------------------------------
        self._start_notifications()

        # --- 6. Watcher ----------------------------------------------------
        self._start_watcher()

        self._log.info("suspend-notifier started")

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            from suspend_notifier.k8s.client import ClusterResourceClient

            self._k8s_client = await ClusterResourceClient.create(self.config.cluster.kubeconfig)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_store(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting state store")
        try:
            from suspend_notifier.store import SQLiteStateStore

            self._store = SQLiteStateStore(self.config.store.path)
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    def _start_notifications(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting notifications")
        try:
            from suspend_notifier.notifications import build_notifier

            self._notifier = build_notifier(self.config.notifications)
            self._log.info("notifications started", sinks=len(self._notifier.notifiers))
        except Exception as exc:
            raise _ComponentError("notifications", exc) from exc

    def _start_watcher(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._k8s_client is not None
        assert self._store is not None
        assert self._notifier is not None
        if self._shutdown_requested:
            self._log.info("shutdown requested during startup, watcher not started")
            return
        self._log.debug("starting watcher")
        try:
            from suspend_notifier.auditlog import AuditLogTailer, TokenBucket
            from suspend_notifier.watch import Watcher

            cluster = self.config.cluster
            tailer = AuditLogTailer(
                cluster.project_id,
                cluster.cluster_name,
                excluded_principal=cluster.excluded_principal,
                limiter=TokenBucket(
                    burst=self.config.reconnect.burst,
                    interval=float(self.config.reconnect.interval_seconds),
                ),
            )
            self._watcher = Watcher(
                cluster.project_id,
                cluster.cluster_name,
                self._k8s_client,
                self._store,
                self._notifier,
                tailer=tailer,
                label_selector=cluster.crd_label_selector,
            )
            self._watch_task = asyncio.create_task(self._watcher.watch(), name="watcher")
        except Exception as exc:
            raise _ComponentError("watcher", exc) from exc

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Cancel the watch task; ``wait()`` then returns normally."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        if self._log:
            self._log.info("shutdown requested")
        if self._watch_task is not None and not self._watch_task.done():
            self._watch_task.cancel()

    async def wait(self) -> None:
        """Block until the watcher ends.

        Returns at once if shutdown was requested before the watcher
        started. Raises whatever terminated the watcher unless shutdown was
        requested.
        """
        if self._watch_task is None:
            return
        try:
            await self._watch_task
        except asyncio.CancelledError:
            if self._shutdown_requested:
                return
            raise

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order.

        Each teardown step is isolated; a failure in one does not prevent
        the others from running.
        """
        log = self._log or get_logger("app")

        if self._watch_task is not None and not self._watch_task.done():
            self._watch_task.cancel()
            await asyncio.gather(self._watch_task, return_exceptions=True)
        self._watch_task = None
        self._watcher = None
        self._notifier = None

        if self._store is not None:
            try:
                self._store.close()
            except Exception as exc:
                log.error("component stop raised an error", component="store", error=str(exc))
            self._store = None

        if self._k8s_client is not None:
            try:
                await self._k8s_client.close()
            except Exception as exc:
                log.debug("k8s client close raised (non-fatal)", error=str(exc))
            self._k8s_client = None

        if self._log is not None:
            log.info("suspend-notifier stopped")


def _version() -> str:
    from suspend_notifier import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown or failure."""
    app = SuspendNotifierApp()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.request_shutdown)

    try:
        await app.start()
        await app.wait()
    except _ComponentError as exc:
        get_logger("app").critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    except Exception as exc:
        get_logger("app").critical("watcher terminated", error=str(exc), exc_info=True)
        raise SystemExit(1) from exc
    finally:
        await app.stop()


def run() -> None:
    """Console script entry point (``suspend-notifier``)."""
    asyncio.run(main())
