class ListenerError(Exception):
    """Base class for every error raised by poolbook."""


class ConfigurationError(ListenerError):
    """Unsupported chain, malformed endpoint or invalid option. Never retried."""


class ResolutionError(ListenerError):
    """The market registry lookup failed or returned an unusable pool address."""


class MetadataError(ListenerError):
    """Token address or decimals read failed for a resolved pool."""


class SubscriptionError(ListenerError):
    """The live log subscription could not be established."""


class TransportError(ListenerError):
    """A fault reported by the live subscription transport. Non-fatal."""


class RefreshError(ListenerError):
    """An order-book refresh could not be completed."""
