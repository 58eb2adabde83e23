"""TimeCapsule API: messages that unlock at a future time."""

__version__ = "1.0.0"
