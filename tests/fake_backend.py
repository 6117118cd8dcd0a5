"""In-memory storage backends used by the orchestrator and CLI tests."""

from pantransfer.exceptions import PanDirectoryNotFoundError, ShareMetadataError
from pantransfer.models import FileDescriptor
from pantransfer.transfer.backend import DirectoryPage, DirectoryStatus, ShareMetadata
from pantransfer.utils import normalize_path

DEMO_LINK = "https://pan.baidu.com/s/1demo?pwd=ab12"


class BasicBackend:
    """Backend without rename support.

    ``shares`` maps link URLs to ShareMetadata (or an exception to raise),
    ``directories`` maps remote paths to the names they contain and
    ``transfer_codes`` lists the codes returned by successive submissions
    (0 once exhausted; exceptions in the list are raised).
    """

    def __init__(self, shares=None, directories=None, transfer_codes=None):
        self.shares = dict(shares or {})
        self.directories = {
            normalize_path(path): list(names)
            for path, names in (directories or {}).items()
        }
        self.transfer_codes = list(transfer_codes or [])
        self.list_calls = []
        self.ensure_calls = []
        self.transfers = []
        self.metadata_calls = []

    def resolve_share_metadata(self, link_url, pass_code):
        self.metadata_calls.append((link_url, pass_code))
        share = self.shares.get(link_url)
        if share is None:
            raise ShareMetadataError("Share not found", errno=-9)
        if isinstance(share, Exception):
            raise share
        return share

    def list_directory(self, path, start, limit):
        self.list_calls.append((path, start, limit))
        if path not in self.directories:
            raise PanDirectoryNotFoundError(path, errno=-9)
        names = self.directories[path]
        return DirectoryPage(
            names=names[start : start + limit], has_more=start + limit < len(names)
        )

    def ensure_directory(self, path):
        self.ensure_calls.append(path)
        if path in self.directories:
            return DirectoryStatus.ALREADY_EXISTS
        self.directories[path] = []
        return DirectoryStatus.CREATED

    def submit_transfer(self, signature_seed, file_ids, target_path):
        self.transfers.append((signature_seed, list(file_ids), target_path))
        code = self.transfer_codes.pop(0) if self.transfer_codes else 0
        if isinstance(code, Exception):
            raise code
        return code


class FakeBackend(BasicBackend):
    """Backend that also renames entries and lists folders inside shares.

    ``rename_codes`` maps paths to rename result codes (or exceptions to
    raise) and ``share_folders`` maps shared folder names to their entries
    (or an exception to raise).
    """

    def __init__(self, *args, rename_codes=None, share_folders=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.rename_codes = dict(rename_codes or {})
        self.share_folders = dict(share_folders or {})
        self.renames = []
        self.folder_calls = []

    def rename_entry(self, path, new_name):
        self.renames.append((path, new_name))
        code = self.rename_codes.get(path, 0)
        if isinstance(code, Exception):
            raise code
        return code

    def list_share_directory(self, signature_seed, entry):
        self.folder_calls.append((signature_seed, entry.name))
        contents = self.share_folders.get(entry.name, [])
        if isinstance(contents, Exception):
            raise contents
        return list(contents)


def make_share(*entries, seed="seed"):
    """Build share metadata from (id, name, size) tuples."""
    return ShareMetadata(
        signature_seed=seed,
        entries=[FileDescriptor(id=i, name=n, size=s) for i, n, s in entries],
    )


def demo_backend():
    """Backend factory used by the CLI tests."""
    return FakeBackend(
        shares={
            DEMO_LINK: make_share(
                (1, "Movie.1080p.mkv", 4_500_000_000),
                (2, "Sample.ZERO.mkv", 0),
                seed={"share_id": 1},
            )
        }
    )
