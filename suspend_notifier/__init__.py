"""suspend-notifier: notifies when Flux resources are suspended or resumed."""

__version__ = "0.1.0"
