"""Slack incoming-webhook notifier."""

from __future__ import annotations

import httpx

from suspend_notifier.models.state import ChangeEvent
from suspend_notifier.notifications.manager import NotificationError, Notifier
from suspend_notifier.observability.logging import get_logger

_log = get_logger("notifications.slack")


class SlackNotifier(Notifier):
    """Posts a coloured attachment per transition to a Slack webhook.

    Args:
        webhook_url: Slack incoming webhook URL.
        timeout:     HTTP request timeout in seconds. Defaults to 5.
        transport:   Optional httpx transport (tests).
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("empty webhook url supplied")
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "slack"

    async def notify(self, event: ChangeEvent) -> None:
        payload = self._build_payload(event)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._webhook_url, json=payload)
        except httpx.HTTPError as exc:
            _log.warning("slack_http_error", error=str(exc), resource=event.resource.path)
            raise NotificationError(f"send request failed: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            _log.warning("slack_non_200_response", status_code=response.status_code, body=response.text[:200])
            raise NotificationError(f"unexpected status code: {response.status_code}")

    def _build_payload(self, event: ChangeEvent) -> dict[str, object]:
        if event.suspended:
            action, color = "suspended", "danger"
        else:
            action, color = "resumed", "good"
        kind = event.resource.type.kind.removesuffix("s")
        return {
            "attachments": [
                {
                    "color": color,
                    "author_name": f"{kind}/{event.resource.name}.{event.resource.namespace}",
                    "text": f"{action} by {event.acting_principal}",
                    "mrkdwn_in": ["text"],
                    "fields": [
                        {
                            "title": "project",
                            "value": event.cluster_context_id,
                            "short": False,
                        }
                    ],
                }
            ]
        }
