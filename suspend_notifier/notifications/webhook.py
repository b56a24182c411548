"""Generic JSON webhook notifier.

Posts ChangeEvent fields as a flat JSON object so consumers need no
knowledge of suspend-notifier internals.
"""

from __future__ import annotations

import httpx

from suspend_notifier.models.state import ChangeEvent
from suspend_notifier.notifications.manager import NotificationError, Notifier
from suspend_notifier.observability.logging import get_logger

_log = get_logger("notifications.webhook")


class WebhookNotifier(Notifier):
    """Delivers events by POSTing a JSON payload to a configurable URL.

    Args:
        url:       Full endpoint URL.
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "webhook"

    async def notify(self, event: ChangeEvent) -> None:
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=self._build_payload(event), headers=request_headers)
        except httpx.TimeoutException as exc:
            _log.warning("webhook_request_timeout", url=self._url)
            raise NotificationError(f"webhook request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc))
            raise NotificationError(f"webhook request failed: {exc}") from exc
        if not response.is_success:
            _log.warning("webhook_non_2xx_response", status_code=response.status_code, body=response.text[:200])
            raise NotificationError(f"unexpected status code: {response.status_code}")

    def _build_payload(self, event: ChangeEvent) -> dict[str, object]:
        return {
            "group": event.resource.type.group,
            "version": event.resource.type.version,
            "kind": event.resource.type.kind,
            "namespace": event.resource.namespace,
            "name": event.resource.name,
            "suspended": event.suspended,
            "acting_principal": event.acting_principal,
            "cluster_context_id": event.cluster_context_id,
        }
