"""Expression-based notification filtering.

Expressions are Python boolean expressions evaluated with asteval against
the names ``resource``, ``suspended``, ``email`` and ``acting_principal``,
e.g. ``resource.namespace == "prod" and not suspended``.
"""

from __future__ import annotations

from asteval import Interpreter  # type: ignore[import-untyped]

from suspend_notifier.models.state import ChangeEvent
from suspend_notifier.notifications.manager import NotificationError, Notifier
from suspend_notifier.observability.logging import get_logger

_log = get_logger("notifications.filtering")


class FilteringNotifier(Notifier):
    """Passes events to *delegate* only when *expression* evaluates to True.

    Raises:
        ValueError: if *expression* is empty or not valid syntax.
    """

    def __init__(self, expression: str, delegate: Notifier) -> None:
        if not expression.strip():
            raise ValueError("filter expression must not be empty")
        self._interpreter = Interpreter(minimal=True)
        try:
            node = self._interpreter.parse(expression)
        except Exception as exc:
            raise ValueError(f"failed to compile filter expression {expression!r}: {exc}") from exc
        if node is None or self._interpreter.error:
            raise ValueError(f"failed to compile filter expression {expression!r}")
        self._interpreter.error = []
        self._expression = expression
        self._delegate = delegate

    @property
    def channel_name(self) -> str:
        return self._delegate.channel_name

    @property
    def expression(self) -> str:
        return self._expression

    def matches(self, event: ChangeEvent) -> bool:
        """Evaluate the filter for *event*.

        Raises:
            NotificationError: evaluation failed or did not yield a bool.
        """
        symtable = self._interpreter.symtable
        symtable["resource"] = event.resource
        symtable["suspended"] = event.suspended
        symtable["email"] = event.acting_principal
        symtable["acting_principal"] = event.acting_principal
        self._interpreter.error = []
        try:
            output = self._interpreter.eval(self._expression, show_errors=False, raise_errors=True)
        except Exception as exc:
            raise NotificationError(f"failed to evaluate expression {self._expression!r}: {exc}") from exc
        if not isinstance(output, bool):
            raise NotificationError(f"expression evaluated to {output!r}, but was not a boolean")
        return output

    async def notify(self, event: ChangeEvent) -> None:
        if not self.matches(event):
            _log.debug(
                "notification_filtered",
                channel=self.channel_name,
                resource=event.resource.path,
                expression=self._expression,
            )
            return
        await self._delegate.notify(event)
