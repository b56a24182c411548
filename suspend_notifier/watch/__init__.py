"""Reconciliation engine: discovery, bootstrap and steady-state diffing."""

from suspend_notifier.watch.watcher import Watcher, WatchError

__all__ = ["WatchError", "Watcher"]
