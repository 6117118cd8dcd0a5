"""Bounded retry loop for transfer submissions."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..utils import DEFAULT_MAX_TRANSFER_ATTEMPTS, DEFAULT_RETRY_BASE_DELAY
from .codes import ResultCode, ResultKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryOutcome:
    """Final state of a retry run."""

    code: ResultCode
    """Final classified result code"""

    attempts: int
    """Number of times the operation was invoked"""

    message: str = ""
    """Extra detail (exception text) when the run failed with an exception"""

    last_errno: Optional[int] = None
    """Last raw code returned by the operation, if any"""

    @property
    def succeeded(self) -> bool:
        return self.code.is_success


class RetryExecutor:
    """Drives one operation through a bounded retry loop.

    Success and duplicate codes end the loop. A retryable code schedules a
    new attempt after ``base_delay * attempt`` seconds while attempts remain.
    A path-missing code runs the ``recover`` callback, when one is given, and
    retries straight away within the same attempt budget.
    Running out of attempts on a retryable code, or an exception raised by
    the operation, ends the loop with the request-timeout code. Any other
    code is terminal immediately.

    Example:
        >>> delays = []
        >>> executor = RetryExecutor(sleep=delays.append)
        >>> outcome = executor.run(lambda: ResultCode.from_errno(4), 3)
        >>> outcome.attempts, delays
        (3, [0.5, 1.0])
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    ):
        """Initialize the executor.

        Args:
            sleep: Blocking wait function, injectable for tests
            base_delay: Delay unit in seconds, multiplied by the attempt number
        """
        self._sleep = sleep
        self.base_delay = base_delay

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt

    def run(
        self,
        operation: Callable[[], ResultCode],
        max_attempts: int = DEFAULT_MAX_TRANSFER_ATTEMPTS,
        recover: Optional[Callable[[], None]] = None,
    ) -> RetryOutcome:
        """Run the operation until it succeeds, fails terminally or runs out.

        Args:
            operation: Single attempt returning a classified result code
            max_attempts: Maximum number of invocations (at least 1)
            recover: Called before retrying a path-missing result. Exceptions
                it raises propagate to the caller.

        Returns:
            RetryOutcome with the final code and the number of attempts
        """
        max_attempts = max(1, int(max_attempts))
        last_errno: Optional[int] = None
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            try:
                code = operation()
            except Exception as e:
                logger.warning(
                    f"Transfer attempt {attempt} raised {type(e).__name__}: {e}"
                )
                return RetryOutcome(
                    code=ResultCode.request_timeout(),
                    attempts=attempt,
                    message=str(e),
                    last_errno=last_errno,
                )
            last_errno = code.errno

            if code.is_success:
                logger.debug(f"Transfer attempt {attempt} succeeded ({code.errno})")
                return RetryOutcome(code=code, attempts=attempt, last_errno=last_errno)

            if (
                code.kind == ResultKind.PATH_MISSING
                and recover is not None
                and attempt < max_attempts
            ):
                logger.info(
                    f"Transfer attempt {attempt} found the target directory "
                    f"missing, recreating it"
                )
                recover()
                continue

            if code.kind != ResultKind.RETRYABLE:
                logger.debug(
                    f"Transfer attempt {attempt} failed terminally (errno {code.errno})"
                )
                return RetryOutcome(code=code, attempts=attempt, last_errno=last_errno)

            if attempt < max_attempts:
                delay = self.delay_for(attempt)
                logger.debug(
                    f"Transfer attempt {attempt} failed with retryable errno "
                    f"{code.errno}, retrying in {delay:.1f}s"
                )
                self._sleep(delay)

        logger.warning(
            f"Transfer still failing after {attempt} attempts (errno {last_errno})"
        )
        return RetryOutcome(
            code=ResultCode.request_timeout(),
            attempts=attempt,
            last_errno=last_errno,
        )
