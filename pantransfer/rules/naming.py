"""File name helpers: extension splitting and category derivation."""

import re
from dataclasses import dataclass

COMPOUND_EXTENSION_REGEX = re.compile(
    r"^(.+?)\.(?P<ext>(?:pkg\.)?tar\.(?:gz|xz|bz2|zst)"
    r"|cpio\.(?:gz|bz2|xz|zst)"
    r"|(?:7z|rar|zip)(?:\.(?:part\d+|\d{2,4}|r\d{2}))"
    r"|tgz|tbz2|txz|tzst|[^.]+)$",
    re.IGNORECASE,
)

CATEGORIES = (
    "archive",
    "audio",
    "video",
    "image",
    "document",
    "subtitle",
    "media",
    "other",
)

ARCHIVE_EXTS = frozenset(
    ["zip", "rar", "7z", "tar", "gz", "bz2", "xz", "iso", "tgz", "tbz", "lz", "cab"]
)

AUDIO_EXTS = frozenset(
    ["mp3", "aac", "flac", "wav", "m4a", "ogg", "oga", "opus", "wma", "alac"]
)

VIDEO_EXTS = frozenset(
    [
        "mp4",
        "mkv",
        "mov",
        "avi",
        "ts",
        "flv",
        "wmv",
        "mpg",
        "mpeg",
        "m4v",
        "webm",
        "rm",
        "rmvb",
        "3gp",
    ]
)

IMAGE_EXTS = frozenset(
    ["jpg", "jpeg", "png", "gif", "webp", "bmp", "svg", "tiff", "heic", "heif"]
)

DOCUMENT_EXTS = frozenset(
    [
        "pdf",
        "doc",
        "docx",
        "ppt",
        "pptx",
        "xls",
        "xlsx",
        "txt",
        "rtf",
        "md",
        "epub",
        "pages",
        "numbers",
        "key",
    ]
)

SUBTITLE_EXTS = frozenset(["srt", "ass", "ssa", "vtt", "sub"])


@dataclass(frozen=True)
class SplitName:
    """A file name split into base and extension (without the dot)."""

    base: str
    extension: str

    @property
    def suffix(self) -> str:
        """Extension including the leading dot, or an empty string."""
        return f".{self.extension}" if self.extension else ""


def split_name(name: str) -> SplitName:
    """Split a file name into base name and extension.

    Compound and multi-volume extensions are kept whole. A single leading
    dot (hidden files) is part of the base name.

    Examples:
        >>> split_name("dataset.pkg.tar.zst")
        SplitName(base='dataset', extension='pkg.tar.zst')
        >>> split_name(".bashrc")
        SplitName(base='.bashrc', extension='')
    """
    if not name:
        return SplitName("", "")
    trimmed = name.strip()
    if not trimmed:
        return SplitName("", "")
    match = COMPOUND_EXTENSION_REGEX.match(trimmed)
    if match and match.group("ext"):
        return SplitName(match.group(1), match.group("ext"))
    last_dot = trimmed.rfind(".")
    if last_dot <= 0 or last_dot == len(trimmed) - 1:
        return SplitName(trimmed, "")
    return SplitName(trimmed[:last_dot], trimmed[last_dot + 1 :])


def categorize_extension(extension: str) -> frozenset[str]:
    """Derive the categories of a file from its extension.

    A file may belong to several categories (audio and video files are also
    media). Compound extensions such as ``tar.gz`` or ``7z.002`` are
    categorized by any of their components. Files matching no category are
    'other'.
    """
    categories: set[str] = set()
    for ext in extension.lower().split("."):
        if ext in ARCHIVE_EXTS:
            categories.add("archive")
        if ext in AUDIO_EXTS:
            categories.update(("audio", "media"))
        if ext in VIDEO_EXTS:
            categories.update(("video", "media"))
        if ext in IMAGE_EXTS:
            categories.add("image")
        if ext in DOCUMENT_EXTS:
            categories.add("document")
        if ext in SUBTITLE_EXTS:
            categories.add("subtitle")
    if not categories:
        categories.add("other")
    return frozenset(categories)
