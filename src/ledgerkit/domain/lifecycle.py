"""Allowed status transitions for each stateful entity."""

from enum import Enum
from typing import Mapping

from ledgerkit.domain.entities import (
    CheckStatus,
    CheckType,
    CheckbookStatus,
    DocumentStatus,
    JournalStatus,
)
from ledgerkit.domain.errors import InvalidTransitionError

JOURNAL_TRANSITIONS: Mapping[JournalStatus, frozenset[JournalStatus]] = {
    JournalStatus.DRAFT: frozenset({JournalStatus.POSTED}),
    JournalStatus.POSTED: frozenset(),
}

DOCUMENT_TRANSITIONS: Mapping[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.DRAFT: frozenset({DocumentStatus.SENT}),
    DocumentStatus.SENT: frozenset(),
}

CHECKBOOK_TRANSITIONS: Mapping[CheckbookStatus, frozenset[CheckbookStatus]] = {
    CheckbookStatus.ACTIVE: frozenset({CheckbookStatus.EXHAUSTED}),
    CheckbookStatus.EXHAUSTED: frozenset(),
}

# Incoming checks travel created -> incashbox -> spent and back;
# outgoing checks only toggle between issued and spent.
CHECK_TRANSITIONS: Mapping[CheckType, Mapping[CheckStatus, frozenset[CheckStatus]]] = {
    CheckType.INCOMING: {
        CheckStatus.CREATED: frozenset({CheckStatus.INCASHBOX}),
        CheckStatus.INCASHBOX: frozenset({CheckStatus.CREATED, CheckStatus.SPENT}),
        CheckStatus.SPENT: frozenset({CheckStatus.INCASHBOX}),
        CheckStatus.ISSUED: frozenset(),
    },
    CheckType.OUTGOING: {
        CheckStatus.ISSUED: frozenset({CheckStatus.SPENT}),
        CheckStatus.SPENT: frozenset({CheckStatus.ISSUED}),
        CheckStatus.CREATED: frozenset(),
        CheckStatus.INCASHBOX: frozenset(),
    },
}

INITIAL_CHECK_STATUS: Mapping[CheckType, CheckStatus] = {
    CheckType.INCOMING: CheckStatus.CREATED,
    CheckType.OUTGOING: CheckStatus.ISSUED,
}


def can_transition(table: Mapping[Enum, frozenset], current: Enum, target: Enum) -> bool:
    """Return True if ``table`` allows moving from ``current`` to ``target``."""
    return target in table.get(current, frozenset())


def require_transition(entity: str, table: Mapping[Enum, frozenset], current: Enum, target: Enum) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(table, current, target):
        raise InvalidTransitionError(entity, current, target)


def require_check_transition(check_type: CheckType, current: CheckStatus, target: CheckStatus) -> None:
    """Validate a check status change against its type's transition table."""
    require_transition(f"{check_type.value} check", CHECK_TRANSITIONS[check_type], current, target)
