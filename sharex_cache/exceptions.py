"""
Custom exception hierarchy for the ShareX cache.

The query layer turns every one of these into a reported result; none of
them should reach the transport.
"""


class ShareXCacheError(Exception):
    """Base exception for all ShareX cache errors."""
    pass


class ConfigurationError(ShareXCacheError):
    """Raised when the watched directory cannot be determined."""
    pass


class FileTooLargeError(ShareXCacheError):
    """Raised when a file exceeds the size ceiling for an operation."""

    def __init__(self, name: str, size: int, limit: int):
        self.name = name
        self.size = size
        self.limit = limit
        super().__init__(f"{name} is {size} bytes, limit is {limit} bytes")


class FrameDecodeError(ShareXCacheError):
    """Raised when an animation cannot be opened or probed at all."""
    pass


class FileReadError(ShareXCacheError):
    """Raised when a cached file cannot be read back from disk."""
    pass
