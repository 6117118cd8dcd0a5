"""Remote result codes and their classification.

Raw numeric codes returned by the storage service are classified once, at
the collaborator boundary, into a closed set of kinds. Retry and
orchestration logic only ever branches on the kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

SUCCESS_ERRNO = 0
DUPLICATE_ERRNO = 666
REQUEST_TIMEOUT_ERRNO = -999

RETRYABLE_ERRNOS = frozenset({4})
LOGIN_REQUIRED_ERRNOS = frozenset({-4, -6, 9019, 20010})
DIRECTORY_EXISTS_ERRNOS = frozenset({-8, 31039})
PATH_MISSING_ERRNO = 2

PATH_MISSING_MESSAGE = "Transfer failed: target directory does not exist"

ERROR_MESSAGES: dict[int, str] = {
    -1: "Link invalid: share id not found",
    -2: "Link invalid: user id not found",
    -3: "Link invalid: file ids not found",
    -4: "Transfer failed: invalid login",
    -6: "Transfer failed: session cookie rejected",
    -7: "Transfer failed: file name contains illegal characters",
    -8: "Transfer failed: a file or folder with the same name exists",
    -9: "Link error: wrong pass code or verification expired",
    -10: "Transfer failed: not enough storage space",
    -62: "Too many failed link attempts, try again later",
    12: "Transfer failed: too many files",
    20: "Transfer failed: not enough storage space",
    105: "Transfer failed: malformed link",
    2: "Pass code verification failed or a captcha is required",
    404: "Transfer failed: instant transfer unavailable",
    9019: "Transfer failed: access token invalid",
    20010: "Transfer failed: application authorization failed",
    31039: "Transfer failed: file name conflict",
    31190: "Transfer failed: instant transfer not effective",
    666: "Skipped: files already exist",
    REQUEST_TIMEOUT_ERRNO: "Transfer failed: request timed out",
}


class ResultKind(str, Enum):
    """Classification of a remote result code."""

    SUCCESS = "success"
    DUPLICATE_EXISTS = "duplicate"
    RETRYABLE = "retryable"
    LOGIN_REQUIRED = "login-required"
    PATH_MISSING = "path-missing"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class ResultCode:
    """A classified remote result code."""

    kind: ResultKind
    errno: int

    @classmethod
    def from_errno(cls, errno: Optional[int]) -> "ResultCode":
        """Classify a raw result code.

        Examples:
            >>> ResultCode.from_errno(666).kind
            <ResultKind.DUPLICATE_EXISTS: 'duplicate'>
            >>> ResultCode.from_errno(4).kind
            <ResultKind.RETRYABLE: 'retryable'>
        """
        if errno is None:
            return cls.request_timeout()
        errno = int(errno)
        if errno == SUCCESS_ERRNO:
            return cls(ResultKind.SUCCESS, errno)
        if errno == DUPLICATE_ERRNO:
            return cls(ResultKind.DUPLICATE_EXISTS, errno)
        if errno in RETRYABLE_ERRNOS:
            return cls(ResultKind.RETRYABLE, errno)
        if errno in LOGIN_REQUIRED_ERRNOS:
            return cls(ResultKind.LOGIN_REQUIRED, errno)
        return cls(ResultKind.TERMINAL, errno)

    @classmethod
    def request_timeout(cls) -> "ResultCode":
        return cls(ResultKind.TERMINAL, REQUEST_TIMEOUT_ERRNO)

    @classmethod
    def path_missing(cls, errno: Optional[int] = None) -> "ResultCode":
        """The target directory vanished between ensuring it and submitting."""
        return cls(
            ResultKind.PATH_MISSING, PATH_MISSING_ERRNO if errno is None else errno
        )

    @property
    def is_success(self) -> bool:
        """Whether the code ends the retry loop as a success (incl. duplicate)."""
        return self.kind in (ResultKind.SUCCESS, ResultKind.DUPLICATE_EXISTS)

    @property
    def is_duplicate(self) -> bool:
        return self.kind == ResultKind.DUPLICATE_EXISTS

    @property
    def message(self) -> str:
        if self.kind == ResultKind.PATH_MISSING:
            return PATH_MISSING_MESSAGE
        return map_error_message(self.errno)


def map_error_message(errno: Optional[int], fallback: Optional[str] = None) -> str:
    """Return a readable message for a remote result code.

    Args:
        errno: Raw result code
        fallback: Message used when the code is unknown

    Returns:
        Known message, the fallback, or a generic "unknown error" message
    """
    if errno is not None:
        try:
            message = ERROR_MESSAGES.get(int(errno))
        except (TypeError, ValueError):
            message = None
        if message:
            return message
    return fallback or f"Unknown error: {errno}"
