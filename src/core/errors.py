"""Error taxonomy shared by the core and its adapters."""

from __future__ import annotations


class AdSentryError(Exception):
    """Base class for all adsentry errors."""


class ConfigurationError(AdSentryError):
    """Required credentials or settings are missing or invalid."""


class ClassificationError(AdSentryError):
    """The scoring oracle was unreachable or answered with a failure."""


class EnforcementError(AdSentryError):
    """A chat-side action (delete, send, member lookup) failed."""


class StoreError(AdSentryError):
    """The state store could not durably persist a mutation."""
