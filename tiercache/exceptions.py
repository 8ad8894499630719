"""
tiercache exception hierarchy.

All custom exceptions inherit from TierCacheException so callers can
catch a single base type when they want a broad safety net.
"""


class TierCacheException(Exception):
    """Base exception for all tiercache errors."""


class ConfigurationError(TierCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class BackendUnavailableError(TierCacheException):
    """Raised when a cache layer's backend cannot complete an operation."""


class SerializationError(TierCacheException):
    """Raised when a layer cannot encode or decode a stored value."""


class LoaderError(TierCacheException):
    """Raised when the source-of-record loader fails for a key."""
