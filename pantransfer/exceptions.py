"""Exceptions raised by pantransfer."""

from typing import Optional


class PanTransferError(Exception):
    """Base exception for all pantransfer errors."""


class PanAPIError(PanTransferError):
    """A remote storage call returned an error code."""

    def __init__(self, message: str, errno: Optional[int] = None):
        super().__init__(message)
        self.errno = errno


class PanLoginRequiredError(PanAPIError):
    """The remote storage session is missing or has expired."""

    def __init__(
        self,
        message: str = "Not logged in to the storage account or the session expired",
        errno: Optional[int] = None,
    ):
        super().__init__(message, errno)


class PanDirectoryNotFoundError(PanAPIError):
    """A remote directory does not exist."""

    def __init__(self, path: str, errno: Optional[int] = None):
        super().__init__(f"Directory not found: {path}", errno)
        self.path = path


class ShareMetadataError(PanAPIError):
    """Share metadata could not be resolved (bad link, wrong pass code, ...)."""


class PanConfigError(PanTransferError):
    """Invalid or missing configuration."""


class CacheStorageError(PanTransferError):
    """A cache snapshot could not be loaded or persisted."""


class RuleSettingsError(PanTransferError):
    """Processing settings file could not be read."""
