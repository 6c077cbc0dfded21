"""Environment-driven configuration."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ledgerkit.domain.allocation import DEFAULT_ATTEMPTS, MAX_ATTEMPTS
from ledgerkit.domain.entities import CodeSlot
from ledgerkit.domain.errors import ValidationError

ENV_PREFIX = "LEDGERKIT_"

# Environment variables for the handler-detail numbering offsets
BANK_DETAIL_START_CODE = "BANK_DETAIL_START_CODE"
CARD_READER_DETAIL_START_CODE = "CARD_READER_DETAIL_START_CODE"
CASHBOX_START_CODE = "CASHBOX_START_CODE"

DEFAULT_BANK_DETAIL_START = 6100
DEFAULT_CARD_READER_DETAIL_START = 6200
DEFAULT_CASHBOX_START = 6000


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValidationError(f"Environment variable {name} must be an integer, got '{raw}'")


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ValidationError(f"Environment variable {name} must be a number, got '{raw}'")


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime settings that are not stored in the settings table.

    Attributes:
        code_overrides: Posting slot name -> code node ID, checked first
        fallback_codes: Posting slot name -> literal code value, checked last
        allocation_attempts: Bound on unique-collision retries
        allocation_backoff: Seconds of linear backoff between retries
    """

    code_overrides: Mapping[str, int] = field(default_factory=dict)
    fallback_codes: Mapping[str, str] = field(default_factory=dict)
    allocation_attempts: int = DEFAULT_ATTEMPTS
    allocation_backoff: float = 0.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """Build configuration from environment variables.

        ``LEDGERKIT_<SLOT>`` holds a code node ID override and
        ``LEDGERKIT_<SLOT>_CODE`` a literal fallback code for each posting
        slot (for example ``LEDGERKIT_CODE_TREASURY_CASH_RECEIPT``).
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, int] = {}
        fallbacks: dict[str, str] = {}
        for slot in CodeSlot:
            override_name = f"{ENV_PREFIX}{slot.value}"
            if environ.get(override_name, "").strip():
                overrides[slot.value] = _int_env(environ, override_name, 0)
            fallback = environ.get(f"{override_name}_CODE", "").strip()
            if fallback:
                fallbacks[slot.value] = fallback

        attempts = _int_env(environ, f"{ENV_PREFIX}ALLOCATION_ATTEMPTS", DEFAULT_ATTEMPTS)
        if not 1 <= attempts <= MAX_ATTEMPTS:
            raise ValidationError(f"LEDGERKIT_ALLOCATION_ATTEMPTS must be between 1 and {MAX_ATTEMPTS}")
        return cls(
            code_overrides=overrides,
            fallback_codes=fallbacks,
            allocation_attempts=attempts,
            allocation_backoff=_float_env(environ, f"{ENV_PREFIX}ALLOCATION_BACKOFF", 0.0),
        )
