from __future__ import annotations


class S4Error(Exception):
    """Base class for errors raised by s4."""


class ConfigError(S4Error):
    """The .s3cfg file is missing, unreadable or incomplete."""


class StoreError(S4Error):
    """A call against the object store failed."""


class ValidationError(S4Error):
    """User input was rejected before any command was dispatched."""
