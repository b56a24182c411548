"""Notifier base class and fan-out for suspend-notifier.

Notifier      -- ABC every sink must implement.
MultiNotifier -- Delivers a ChangeEvent to every sink in order, stopping
                 at the first failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from suspend_notifier.models.state import ChangeEvent
from suspend_notifier.observability.logging import get_logger

_log = get_logger("notifications.manager")


class NotificationError(Exception):
    """Raised when a change event could not be delivered."""


class Notifier(ABC):
    """Abstract base class for all notification sinks.

    ``notify`` raises NotificationError on failure. Delivery is
    at-least-once; sinks may see the same transition again after a restart.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Human-readable sink identifier used in logs."""

    @abstractmethod
    async def notify(self, event: ChangeEvent) -> None:
        """Deliver *event* via this sink."""


class MultiNotifier(Notifier):
    """Broadcasts events to several notifiers sequentially."""

    def __init__(self, notifiers: list[Notifier]) -> None:
        self._notifiers = list(notifiers)

    @property
    def channel_name(self) -> str:
        return "multi"

    @property
    def notifiers(self) -> list[Notifier]:
        return list(self._notifiers)

    async def notify(self, event: ChangeEvent) -> None:
        for notifier in self._notifiers:
            await notifier.notify(event)
            _log.info(
                "notification_sent",
                channel=notifier.channel_name,
                resource=event.resource.path,
                suspended=event.suspended,
            )
