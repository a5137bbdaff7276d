from __future__ import annotations


class CacheError(Exception):
    """Base class for every error raised by the cache core."""


class ValidationError(CacheError, ValueError):
    """Malformed or missing input. Never retried."""


class CapacityExceededError(CacheError):
    def __init__(self, max_size: int):
        super().__init__("Cache is full")
        self.max_size = max_size


class OperationError(CacheError):
    """A store failure; the original exception is kept as ``__cause__``."""
