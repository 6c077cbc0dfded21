"""Sequential number and 4-digit code allocation."""

import time
from typing import Callable, Iterable, Optional, TypeVar

from ledgerkit.domain.errors import DuplicateValueError, NoCodesAvailableError
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.allocation")

T = TypeVar("T")

CODE_MIN = 1
CODE_MAX = 9999
MAX_ATTEMPTS = 10
DEFAULT_ATTEMPTS = MAX_ATTEMPTS


def format_code(value: int) -> str:
    """Render an integer as a zero-padded 4-digit code."""
    return f"{value:04d}"


def is_four_digit_code(code: str) -> bool:
    return len(code) == 4 and code.isdigit()


def next_free_code(
    occupied: Iterable[str],
    start: int,
    previous: Optional[int] = None,
    end: int = CODE_MAX,
) -> str:
    """Return the next unoccupied 4-digit code.

    Scanning begins at ``previous + 1`` when given (the last code handed out
    in this series), otherwise at ``start``, and wraps to ``start`` once
    before giving up.

    Args:
        occupied: Codes already in use
        start: First code of the series
        previous: Highest code already allocated in the series, if any
        end: Last usable code

    Returns:
        Zero-padded code

    Raises:
        NoCodesAvailableError: If every code in ``[start, end]`` is taken
    """
    taken = {c for c in occupied if c.isdigit()}
    first = start if previous is None or previous < start else previous + 1
    for candidate in list(range(first, end + 1)) + list(range(start, first)):
        code = format_code(candidate)
        if code not in taken:
            return code
    raise NoCodesAvailableError(start)


def next_sequence_number(existing: Iterable[Optional[str]]) -> int:
    """Return ``max(numeric values) + 1``, or 1 when none are numeric."""
    numbers = [int(value) for value in existing if value is not None and str(value).isdigit()]
    return max(numbers, default=0) + 1


def retry_on_conflict(
    operation: Callable[[], T],
    attempts: int = DEFAULT_ATTEMPTS,
    backoff: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` again when it loses a unique-value race.

    The operation is expected to recompute its candidate value on every call.
    Only DuplicateValueError triggers a retry; every other error propagates.

    Args:
        operation: Zero-argument callable performing one allocation attempt
        attempts: Maximum number of calls, at most MAX_ATTEMPTS
        backoff: Seconds to wait before the n-th retry, multiplied by n
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever ``operation`` returns on its first successful call

    Raises:
        DuplicateValueError: If every attempt collided
    """
    if not 1 <= attempts <= MAX_ATTEMPTS:
        raise ValueError(f"attempts must be between 1 and {MAX_ATTEMPTS}")
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except DuplicateValueError:
            if attempt == attempts:
                raise
            logger.warning(
                "Unique value collision, retrying",
                extra={"attempt": attempt, "max_attempts": attempts},
            )
            if backoff > 0:
                sleep(backoff * attempt)
    raise AssertionError("unreachable")
