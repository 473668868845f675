"""Custom exceptions for filesentinel."""


class FileSentinelError(Exception):
    """Base exception for all filesentinel errors."""


class ConfigError(FileSentinelError):
    """Raised when the audit configuration is missing or invalid."""


class ManifestUnreadableError(FileSentinelError):
    """Raised when a local package.json cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot read manifest {path}: {reason}")


class ContentDecodeError(FileSentinelError):
    """Raised when a contents API payload cannot be decoded to text."""
