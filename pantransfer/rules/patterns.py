"""Compilation of user-supplied regular expressions.

Rules are written with JavaScript-style flag strings (``"gi"``) and
replacement templates (``$1``, ``$&``), since that is how rule sets are
shared between tools. Patterns are compiled once per ``(pattern, flags)``
pair; a pattern that does not compile is reported as ``None`` and the rule
using it behaves as a no-op.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

logger = logging.getLogger(__name__)

VALID_REGEX_FLAGS = frozenset("gimsuy")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}

# JS named groups "(?<name>" become "(?P<name>"; lookbehinds are left alone
_NAMED_GROUP = re.compile(r"(?<!\\)\(\?<(?![=!])")

_REPLACEMENT_TOKEN = re.compile(r"\$(\$|&|`|'|\d{1,2}|<[^>]*>)")


@dataclass(frozen=True)
class CompiledPattern:
    """A compiled user pattern together with its replace-all and sticky flags.

    A sticky pattern only matches at the start of the text, and with
    ``replace_all`` it replaces back-to-back matches from there.
    """

    regex: "re.Pattern[str]"
    replace_all: bool
    sticky: bool = False

    def search(self, text: str) -> bool:
        if self.sticky:
            return self.regex.match(text) is not None
        return self.regex.search(text) is not None

    def replace(self, text: str, replacement: str) -> str:
        """Replace matches in text using a JS-style replacement template."""
        expand = _expand_template(replacement)
        if not self.sticky:
            count = 0 if self.replace_all else 1
            return self.regex.sub(expand, text, count=count)

        parts: list[str] = []
        pos = 0
        while True:
            match = self.regex.match(text, pos)
            if match is None:
                break
            parts.append(expand(match))
            empty = match.end() == pos
            pos = match.end()
            if empty or not self.replace_all:
                break
        return "".join(parts) + text[pos:]


def sanitize_flags(flags: Optional[str], fallback: str = "g") -> str:
    """Keep only known flag characters, deduplicated, in order.

    Examples:
        >>> sanitize_flags("gix")
        'gi'
        >>> sanitize_flags("", fallback="g")
        'g'
    """
    if not isinstance(flags, str):
        return fallback
    seen: list[str] = []
    for char in flags:
        if char in VALID_REGEX_FLAGS and char not in seen:
            seen.append(char)
    return "".join(seen) if seen else fallback


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str, flags: str = "") -> Optional[CompiledPattern]:
    """Compile a user pattern, returning None when it is malformed.

    Args:
        pattern: Regular expression source
        flags: JS-style flag string (g, i, m, s, u, y)

    Returns:
        CompiledPattern, or None if the pattern or flags are invalid
    """
    if not pattern:
        return None
    re_flags = 0
    for char in flags or "":
        if char not in VALID_REGEX_FLAGS:
            logger.debug(f"Ignoring rule pattern {pattern!r}: bad flag {char!r}")
            return None
        re_flags |= _FLAG_MAP.get(char, 0)
    source = _NAMED_GROUP.sub("(?P<", pattern)
    try:
        regex = re.compile(source, re_flags)
    except re.error as e:
        logger.debug(f"Ignoring malformed rule pattern {pattern!r}: {e}")
        return None
    return CompiledPattern(
        regex=regex, replace_all="g" in (flags or ""), sticky="y" in (flags or "")
    )


def _expand_template(template: str) -> Callable[["re.Match[str]"], str]:
    def expand(match: "re.Match[str]") -> str:
        def token(found: "re.Match[str]") -> str:
            tok = found.group(1)
            if tok == "$":
                return "$"
            if tok == "&":
                return match.group(0)
            if tok == "`":
                return match.string[: match.start()]
            if tok == "'":
                return match.string[match.end() :]
            if tok.startswith("<"):
                name = tok[1:-1]
                if name in match.re.groupindex:
                    return match.group(name) or ""
                return found.group(0)
            groups = match.re.groups
            index = int(tok)
            if 0 < index <= groups:
                return match.group(index) or ""
            if len(tok) == 2 and 0 < int(tok[0]) <= groups:
                return (match.group(int(tok[0])) or "") + tok[1]
            return found.group(0)

        return _REPLACEMENT_TOKEN.sub(token, template)

    return expand
