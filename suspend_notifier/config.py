"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from suspend_notifier.models.config import (
    DEFAULT_CRD_LABEL_SELECTOR,
    DEFAULT_EXCLUDED_PRINCIPAL,
    ClusterConfig,
    LogConfig,
    NotificationConfig,
    ReconnectConfig,
    SlackSinkConfig,
    StoreConfig,
    SuspendNotifierConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"SUSPEND_NOTIFIER_{key}", default)


def _env_required(key: str) -> str:
    val = _env(key).strip()
    if not val:
        raise ValueError(f"SUSPEND_NOTIFIER_{key} must be set")
    return val


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default)).strip()
    try:
        val = int(raw)
    except ValueError:
        raise ValueError(f"SUSPEND_NOTIFIER_{key} must be an integer, got {raw!r}") from None
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


_MAX_SLACK_SINKS = 20


def _slack_sinks() -> list[SlackSinkConfig]:
    """Collect Slack sinks from the unindexed and indexed variable pairs.

    NOTIFICATIONS_SLACK_SECRET_REF / NOTIFICATIONS_SLACK_FILTER form one
    sink; NOTIFICATIONS_SLACK_<n>_SECRET_REF / NOTIFICATIONS_SLACK_<n>_FILTER
    (n = 1, 2, ...) add one sink each, every one with its own filter.

    Raises:
        ValueError: if a filter is set for an index without a secret ref.
    """
    sinks: list[SlackSinkConfig] = []
    secret_ref = _env("NOTIFICATIONS_SLACK_SECRET_REF").strip()
    if secret_ref:
        sinks.append(SlackSinkConfig(secret_ref=secret_ref, filter=_env("NOTIFICATIONS_SLACK_FILTER")))

    for index in range(1, _MAX_SLACK_SINKS + 1):
        secret_ref = _env(f"NOTIFICATIONS_SLACK_{index}_SECRET_REF").strip()
        slack_filter = _env(f"NOTIFICATIONS_SLACK_{index}_FILTER")
        if not secret_ref:
            if slack_filter:
                raise ValueError(
                    f"SUSPEND_NOTIFIER_NOTIFICATIONS_SLACK_{index}_FILTER is set "
                    f"but SUSPEND_NOTIFIER_NOTIFICATIONS_SLACK_{index}_SECRET_REF is not"
                )
            break
        sinks.append(SlackSinkConfig(secret_ref=secret_ref, filter=slack_filter))
    return sinks


def load_config() -> SuspendNotifierConfig:
    """Load configuration from SUSPEND_NOTIFIER_* environment variables.

    Raises:
        ValueError: if a required variable is missing or a value is invalid.
    """
    return SuspendNotifierConfig(
        cluster=ClusterConfig(
            project_id=_env_required("GCP_PROJECT_ID"),
            cluster_name=_env_required("CLUSTER_NAME"),
            kubeconfig=_env("KUBECONFIG", ""),
            crd_label_selector=_env("CRD_LABEL_SELECTOR", DEFAULT_CRD_LABEL_SELECTOR),
            excluded_principal=_env("EXCLUDED_PRINCIPAL", DEFAULT_EXCLUDED_PRINCIPAL),
        ),
        reconnect=ReconnectConfig(
            burst=_env_int("RECONNECT_BURST", 3, min_val=1, max_val=10),
            interval_seconds=_env_int("RECONNECT_INTERVAL", 15, min_val=1, max_val=300),
        ),
        store=StoreConfig(
            path=_env("STORE_PATH", "/var/lib/suspend-notifier/state.db"),
        ),
        notifications=NotificationConfig(
            slack=_slack_sinks(),
            webhook_secret_ref=_env("NOTIFICATIONS_WEBHOOK_SECRET_REF", ""),
            webhook_filter=_env("NOTIFICATIONS_WEBHOOK_FILTER", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
