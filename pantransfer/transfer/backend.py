"""Collaborator protocol for the remote storage service.

The orchestrator never talks to the network itself. Everything remote goes
through an object implementing :class:`PanBackend`; the wire protocol lives
in that object.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..models import FileDescriptor


@dataclass
class ShareMetadata:
    """Resolved metadata of a share link."""

    signature_seed: Any
    """Opaque value passed back to ``submit_transfer`` (share id, user id, ...)"""

    entries: list[FileDescriptor] = field(default_factory=list)
    """Top-level entries of the share"""


@dataclass
class DirectoryPage:
    """One page of a remote directory listing."""

    names: list[str]
    has_more: bool = False


class DirectoryStatus(str, Enum):
    """Result of ensuring a remote directory."""

    CREATED = "created"
    ALREADY_EXISTS = "already-exists"


class PanBackend(Protocol):
    """Remote storage operations used by the transfer orchestrator.

    Any method may raise :class:`~pantransfer.exceptions.PanLoginRequiredError`
    when the storage session is missing.
    """

    def resolve_share_metadata(self, link_url: str, pass_code: str) -> ShareMetadata:
        """Verify the pass code and return the share's entries.

        Raises:
            ShareMetadataError: If the link is invalid, the pass code is
                wrong or the share has no files
        """
        ...

    def list_directory(self, path: str, start: int, limit: int) -> DirectoryPage:
        """Return one page of entry names of a remote directory.

        Raises:
            PanDirectoryNotFoundError: If the directory does not exist
        """
        ...

    def ensure_directory(self, path: str) -> DirectoryStatus:
        """Create a remote directory (and parents) if it does not exist.

        Raises:
            PanAPIError: If the directory cannot be created
        """
        ...

    def submit_transfer(
        self, signature_seed: Any, file_ids: list[int], target_path: str
    ) -> int:
        """Submit one transfer request and return the raw result code.

        Raises:
            PanDirectoryNotFoundError: If the target directory does not
                exist (stale "ensured" cache); the orchestrator recreates it
                and retries
        """
        ...


@runtime_checkable
class SupportsRename(Protocol):
    """Optional backend capability: rename an entry in place."""

    def rename_entry(self, path: str, new_name: str) -> int:
        """Rename the entry at ``path``; returns the raw result code."""
        ...


@runtime_checkable
class SupportsShareDirectory(Protocol):
    """Optional backend capability: list a folder inside a share."""

    def list_share_directory(
        self, signature_seed: Any, entry: FileDescriptor
    ) -> list[FileDescriptor]:
        """Return the entries of the shared folder ``entry``.

        Used when a share holds a single folder, so that the folder's
        contents are transferred instead of the folder itself.
        """
        ...
