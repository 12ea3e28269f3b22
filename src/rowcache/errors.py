"""Exception hierarchy for rowcache.

Every error raised by the cache derives from ``CacheError``. Validation errors
also derive from ``ValueError`` so callers that already catch ``ValueError``
keep working.
"""


class CacheError(Exception):
    """Base error for the cache."""


class InvalidArgumentError(CacheError, ValueError):
    """Raised when a key, value or options argument is missing or malformed."""


class InvalidPolicyError(CacheError, ValueError):
    """Raised when an entry's expiration policy cannot be honoured."""


class InvalidConfigurationError(CacheError, ValueError):
    """Raised when cache or store construction options are invalid."""


class CacheCancelledError(CacheError):
    """Raised when a cancellation token fires before a store round-trip."""


class StoreError(CacheError):
    """Raised when the underlying row store fails."""


class DuplicateKeyError(StoreError):
    """Raised by ``CacheStore.insert`` when the key already exists."""
