"""
Errors raised by blob_cache.
"""


class BlobCacheError(Exception):
    """Base error for blob_cache."""


class CacheValidationError(BlobCacheError, TypeError):
    """Error thrown when a response cannot be cached.

    Raised by put() and add() before anything is written to the store.
    """

    UNCACHEABLE_STATUS = "UNCACHEABLE_STATUS"
    UNCACHEABLE_METHOD = "UNCACHEABLE_METHOD"
    PARTIAL_CONTENT = "PARTIAL_CONTENT"
    VARY_WILDCARD = "VARY_WILDCARD"

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code
