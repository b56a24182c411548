"""Notification system for suspend-notifier.

Delivers ChangeEvent instances to one or more sinks (Slack, Webhook),
optionally gated per sink by a filter expression.

Exports:
    Notifier          -- Abstract base for all sink implementations.
    NotificationError -- Raised when delivery fails.
    MultiNotifier     -- Sequential fan-out, stops at the first failure.
    FilteringNotifier -- Suppresses events not matching an expression.
    SlackNotifier     -- Slack attachment payload via webhook URL.
    WebhookNotifier   -- Generic JSON POST webhook.
    build_notifier    -- Factory used by the application bootstrap.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import TYPE_CHECKING

import structlog

from suspend_notifier.notifications.filtering import FilteringNotifier
from suspend_notifier.notifications.manager import MultiNotifier, NotificationError, Notifier
from suspend_notifier.notifications.slack import SlackNotifier
from suspend_notifier.notifications.webhook import WebhookNotifier

if TYPE_CHECKING:
    from suspend_notifier.models.config import NotificationConfig

_log = structlog.get_logger(component="notifications")

__all__ = [
    "FilteringNotifier",
    "MultiNotifier",
    "NotificationError",
    "Notifier",
    "SlackNotifier",
    "WebhookNotifier",
    "build_notifier",
]


def _with_filter(notifier: Notifier, expression: str) -> Notifier:
    if not expression:
        return notifier
    return FilteringNotifier(expression, notifier)


def build_notifier(
    config: NotificationConfig,
    environ: Mapping[str, str] | None = None,
) -> MultiNotifier:
    """Build the notifier fan-out from environment-resolved secrets.

    The ``secret_ref`` fields in NotificationConfig are names of
    environment variables holding the actual URLs.

    Slack (one entry per SlackSinkConfig):
        secret_ref (env var name) -> env var value is one or more
        comma-separated webhook URLs. The entry's filter applies to each
        of its URLs, so sinks with different filters need separate
        entries (SUSPEND_NOTIFIER_NOTIFICATIONS_SLACK_<n>_SECRET_REF /
        SUSPEND_NOTIFIER_NOTIFICATIONS_SLACK_<n>_FILTER).

    Webhook:
        SUSPEND_NOTIFIER_NOTIFICATIONS_WEBHOOK_SECRET_REF (env var name) ->
        env var value is the webhook URL.
        SUSPEND_NOTIFIER_NOTIFICATIONS_WEBHOOK_FILTER applies to it.

    Raises:
        ValueError: if a configured filter expression does not compile.
    """
    env = os.environ if environ is None else environ
    notifiers: list[Notifier] = []

    # --- Slack ---
    for sink in config.slack:
        slack_urls = [url.strip() for url in env.get(sink.secret_ref, "").split(",") if url.strip()]
        if not slack_urls:
            _log.debug("slack_channel_skipped", secret_ref=sink.secret_ref, reason="secret ref env var is empty")
            continue
        for slack_url in slack_urls:
            notifiers.append(_with_filter(SlackNotifier(webhook_url=slack_url), sink.filter))
        _log.info(
            "slack_channel_enabled",
            secret_ref=sink.secret_ref,
            sinks=len(slack_urls),
            filtered=bool(sink.filter),
        )

    # --- Generic webhook ---
    webhook_ref = config.webhook_secret_ref
    if webhook_ref:
        webhook_url = env.get(webhook_ref, "")
        if webhook_url:
            notifiers.append(_with_filter(WebhookNotifier(url=webhook_url), config.webhook_filter))
            _log.info("webhook_channel_enabled", filtered=bool(config.webhook_filter))
        else:
            _log.debug("webhook_channel_skipped", reason="secret ref env var is empty")

    if not notifiers:
        _log.info("no_notification_channels_configured")

    return MultiNotifier(notifiers)
