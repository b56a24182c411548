"""Core data structures for suspend-notifier."""

from suspend_notifier.models.config import SlackSinkConfig, SuspendNotifierConfig
from suspend_notifier.models.resources import (
    ResourceInstance,
    ResourceReference,
    ResourceType,
    TypeDefinition,
    VersionDefinition,
)
from suspend_notifier.models.state import UNKNOWN_PRINCIPAL, ChangeEvent, StateEntry

__all__ = [
    "ChangeEvent",
    "ResourceInstance",
    "ResourceReference",
    "ResourceType",
    "SlackSinkConfig",
    "StateEntry",
    "SuspendNotifierConfig",
    "TypeDefinition",
    "UNKNOWN_PRINCIPAL",
    "VersionDefinition",
]
