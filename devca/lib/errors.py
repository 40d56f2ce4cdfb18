"""Exceptions raised by devca library code.

Every failure the CLI treats as fatal derives from DevCAError; only the
entry point turns them into an exit code.
"""


class DevCAError(Exception):
    """Base class for local CA errors."""


class ConfigurationError(DevCAError):
    """Raised for conflicting flags or invalid environment settings."""


class CARootNotFoundError(DevCAError):
    """Raised when no CA storage location can be determined."""


class StorageError(DevCAError):
    """Raised when the CA storage directory or files cannot be written."""


class AuthorityLoadError(DevCAError):
    """Raised when existing CA files are unreadable, mismatched or incomplete."""


class InvalidIdentifierError(DevCAError):
    """Raised when a requested name is neither a hostname nor an IP address."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name!r} is not a valid hostname or IP")
        self.name = name


class TrustStoreError(DevCAError):
    """Raised when adding to or removing from a trust store fails."""


class InstallVerificationError(DevCAError):
    """Raised when the CA still does not verify after a successful install."""


class IssuanceError(DevCAError):
    """Raised when a leaf certificate cannot be written."""
