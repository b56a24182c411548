"""Logging setup for suspend-notifier."""
