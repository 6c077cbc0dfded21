"""Tests for code and sequence allocation."""

import pytest

from ledgerkit.domain.allocation import (
    format_code,
    is_four_digit_code,
    next_free_code,
    next_sequence_number,
    retry_on_conflict,
)
from ledgerkit.domain.errors import DuplicateValueError, NoCodesAvailableError, ValidationError


def test_format_code():
    assert format_code(7) == "0007"
    assert format_code(6100) == "6100"


@pytest.mark.parametrize("code,valid", [("0001", True), ("9999", True), ("123", False), ("12a4", False)])
def test_is_four_digit_code(code, valid):
    assert is_four_digit_code(code) is valid


def test_next_free_code_starts_at_series_start():
    assert next_free_code(set(), 6100) == "6100"
    assert next_free_code({"6100", "6101"}, 6100) == "6102"


def test_next_free_code_continues_after_previous():
    # 6100 was freed but the series continues after the last handed out code
    assert next_free_code({"6101"}, 6100, previous=6101) == "6102"


def test_next_free_code_wraps_to_start():
    assert next_free_code({"9999"}, 9998, previous=9999) == "9998"


def test_next_free_code_exhausted():
    with pytest.raises(NoCodesAvailableError):
        next_free_code({"9998", "9999"}, 9998)


def test_next_sequence_number():
    assert next_sequence_number([]) == 1
    assert next_sequence_number(["1", "7", "REV-9", None]) == 8


def test_retry_on_conflict_retries_duplicates():
    calls = []
    sleeps = []

    def operation():
        calls.append(1)
        if len(calls) < 3:
            raise DuplicateValueError("taken")
        return "ok"

    assert retry_on_conflict(operation, attempts=5, backoff=0.5, sleep=sleeps.append) == "ok"
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]


def test_retry_on_conflict_gives_up():
    def operation():
        raise DuplicateValueError("taken")

    with pytest.raises(DuplicateValueError):
        retry_on_conflict(operation, attempts=2)


@pytest.mark.parametrize("attempts", [0, 11])
def test_retry_on_conflict_attempts_are_bounded(attempts):
    with pytest.raises(ValueError):
        retry_on_conflict(lambda: "ok", attempts=attempts)


def test_retry_on_conflict_does_not_retry_other_errors():
    calls = []

    def operation():
        calls.append(1)
        raise ValidationError("bad")

    with pytest.raises(ValidationError):
        retry_on_conflict(operation, attempts=5)
    assert len(calls) == 1
