"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_CRD_LABEL_SELECTOR = "app.kubernetes.io/part-of=flux"
DEFAULT_EXCLUDED_PRINCIPAL = "^system:serviceaccount:flux-system:.*-controller$"


@dataclass
class ClusterConfig:
    """Cluster and audit log source configuration."""

    project_id: str = ""
    cluster_name: str = ""
    kubeconfig: str = ""
    crd_label_selector: str = DEFAULT_CRD_LABEL_SELECTOR
    excluded_principal: str = DEFAULT_EXCLUDED_PRINCIPAL


@dataclass
class ReconnectConfig:
    """Audit stream reconnect throttling."""

    burst: int = 3
    interval_seconds: int = 15


@dataclass
class StoreConfig:
    """State store configuration."""

    path: str = "/var/lib/suspend-notifier/state.db"


@dataclass
class SlackSinkConfig:
    """One Slack destination and the filter gating it."""

    secret_ref: str = ""
    filter: str = ""


@dataclass
class NotificationConfig:
    """Notification sink configuration.

    ``secret_ref`` fields name environment variables that hold the
    actual webhook URLs.
    """

    slack: list[SlackSinkConfig] = field(default_factory=list)
    webhook_secret_ref: str = ""
    webhook_filter: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class SuspendNotifierConfig:
    """Top-level configuration."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log: LogConfig = field(default_factory=LogConfig)
