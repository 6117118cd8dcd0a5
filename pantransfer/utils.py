"""Utility functions and constants for pantransfer."""

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

# =============================================================================
# Constants for transfer operations
# =============================================================================

# Retry configuration for transient transfer errors
DEFAULT_MAX_TRANSFER_ATTEMPTS: int = 3
DEFAULT_RETRY_BASE_DELAY: float = 0.5  # seconds, multiplied by attempt number

# Page size used when enumerating a remote directory
DIRECTORY_LIST_PAGE_SIZE: int = 200

# Cache table capacities
DEFAULT_MAX_DIRECTORY_ENTRIES: int = 100_000
DEFAULT_MAX_ENSURED_ENTRIES: int = 100_000
DEFAULT_MAX_COMPLETED_ENTRIES: int = 400_000
DEFAULT_MAX_HISTORY_RECORDS: int = 200_000

# Snapshot format version for persisted cache tables
CACHE_VERSION: int = 1

ROOT_PATH = "/"

_PASS_CODE_REGEX = re.compile(
    r"(?:提取码|pass(?:code|word)?|pwd)\s*[：:=]*\s*([0-9a-zA-Z]+)", re.IGNORECASE
)


# =============================================================================
# Path utilities
# =============================================================================


def normalize_path(path: Optional[str]) -> str:
    """Normalize a remote directory path.

    Backslashes become forward slashes, repeated slashes collapse, the path
    always starts with a single slash and never ends with one (except root).

    Args:
        path: Raw path (may be None or empty)

    Returns:
        Normalized absolute POSIX path

    Examples:
        >>> normalize_path("movies//2024/")
        '/movies/2024'
        >>> normalize_path("")
        '/'
    """
    if not path:
        return ROOT_PATH
    normalized = path.strip().replace("\\", "/")
    normalized = re.sub(r"/+", "/", normalized)
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def join_path(directory: str, name: str) -> str:
    """Join a directory and an entry name into a normalized path."""
    return normalize_path(f"{normalize_path(directory)}/{name}")


def is_same_or_related_path(key: str, target: str) -> bool:
    """Check whether two normalized paths are equal, ancestor or descendant.

    Comparison is by whole path segments, so ``/a/b`` is not related to
    ``/a/bc``.
    """
    if key == target:
        return True
    return target.startswith(key + "/") or key.startswith(target + "/")


# =============================================================================
# Share link utilities
# =============================================================================


def build_signature(link_url: Optional[str]) -> str:
    """Extract the content signature from a share link.

    The signature is the short share id of the link and does not depend on
    the display name of the resource, so the same share imported under a
    different title is still recognized.

    Args:
        link_url: Share link URL

    Returns:
        Signature string, or an empty string when the link is not recognized

    Examples:
        >>> build_signature("https://pan.baidu.com/s/1AbCdEf?pwd=1234")
        'AbCdEf'
        >>> build_signature("https://pan.baidu.com/share/init?surl=AbCdEf")
        'AbCdEf'
    """
    if not link_url:
        return ""
    try:
        parsed = urlparse(link_url.strip())
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    if parsed.path.startswith("/s/"):
        segment = parsed.path[len("/s/") :].strip("/")
        # Short links carry a leading "1" that is not part of the share id
        if segment.startswith("1"):
            segment = segment[1:]
        return segment
    if parsed.path.startswith("/share/init"):
        values = parse_qs(parsed.query).get("surl")
        if values and values[0]:
            return values[0]
    return ""


def extract_pass_code(text: Optional[str]) -> str:
    """Extract a share pass code from free text or a link query string.

    Examples:
        >>> extract_pass_code("提取码: ab12")
        'ab12'
        >>> extract_pass_code("https://pan.baidu.com/s/1xyz?pwd=ab12")
        'ab12'
    """
    if not text:
        return ""
    match = _PASS_CODE_REGEX.search(text)
    return match.group(1) if match else ""


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
