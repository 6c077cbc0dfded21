"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or a wrong lifecycle state."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class InvariantViolation(DomainError):
    """A structural or accounting invariant would be broken by the operation."""


class ConfigurationError(DomainError):
    """Required configuration is missing or exhausted."""


# Invariant violations


class UnbalancedError(InvariantViolation):
    """Journal debits and credits differ by more than the balance epsilon."""

    def __init__(self, total_debit, total_credit):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Journal is unbalanced: debit {total_debit} != credit {total_credit}"
        )


class InvalidParentError(InvariantViolation):
    """Code node kind does not match its parent."""


class MustBeLeafError(InvariantViolation):
    """Details may only be linked to code nodes without children."""

    def __init__(self, level_id: int):
        self.level_id = level_id
        super().__init__(f"Code node {level_id} has children; details can only link to leaf nodes")


class OutOfRangeError(InvariantViolation):
    """Check number falls outside its checkbook's page range."""

    def __init__(self, number: int, first: int, last: int):
        self.number = number
        self.first = first
        self.last = last
        super().__init__(f"Check number {number} is outside checkbook range {first}-{last}")


class InvalidTransitionError(InvariantViolation):
    """Entity status cannot move from its current state to the requested one."""

    def __init__(self, entity: str, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from '{_label(current)}' to '{_label(target)}'")


class TotalMismatchError(InvariantViolation):
    """Document total differs from the sum of its items."""

    def __init__(self, total, items_total):
        self.total = total
        self.items_total = items_total
        super().__init__(f"Total amount {total} does not match sum of items {items_total}")


class MissingItemsError(InvariantViolation):
    """Document has no items to post."""


# Conflicts


class NotDraftError(ConflictError):
    """Operation requires a draft journal."""

    def __init__(self, journal_id: int):
        self.journal_id = journal_id
        super().__init__(f"Journal {journal_id} is not a draft")


class NotPostedError(ConflictError):
    """Operation requires a posted journal."""

    def __init__(self, journal_id: int):
        self.journal_id = journal_id
        super().__init__(f"Journal {journal_id} is not posted")


class AlreadyPostedError(ConflictError):
    """Treasury document has already been sent to the ledger."""

    def __init__(self, kind: str, document_id: int, journal_id: Optional[int] = None):
        self.kind = kind
        self.document_id = document_id
        self.journal_id = journal_id
        super().__init__(f"{kind.capitalize()} {document_id} has already been posted")


class MustBeClosedError(ConflictError):
    """Operation requires a closed fiscal year."""

    def __init__(self, fiscal_year_id: int):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year {fiscal_year_id} must be closed first")


class HasDocumentsError(ConflictError):
    """Fiscal year is referenced by journals or treasury documents."""

    def __init__(self, fiscal_year_id: int, document_count: int):
        self.fiscal_year_id = fiscal_year_id
        self.document_count = document_count
        super().__init__(
            f"Fiscal year {fiscal_year_id} has {document_count} "
            f"document{'s' if document_count != 1 else ''}"
        )


class DuplicateCodeError(ConflictError):
    """Code already exists in its namespace."""

    def __init__(self, code: str, namespace: str = "code"):
        self.code = code
        self.namespace = namespace
        super().__init__(f"{namespace.capitalize()} '{code}' already exists")


class DuplicateRangeError(ConflictError):
    """A fiscal year already starts on the requested date."""

    def __init__(self, start_date):
        self.start_date = start_date
        super().__init__(f"A fiscal year starting on {start_date} already exists")


class DuplicateCheckError(ConflictError):
    """Check number already issued from the checkbook."""

    def __init__(self, checkbook_id: int, number: str):
        self.checkbook_id = checkbook_id
        self.number = number
        super().__init__(f"Check {number} already exists in checkbook {checkbook_id}")


class DuplicateValueError(ConflictError):
    """Persistence layer reported a unique constraint violation."""


class ForbiddenError(ConflictError):
    """Entity is system-managed and cannot be changed directly."""


# Configuration


class MissingCodeMappingError(ConfigurationError):
    """No code could be resolved for a posting slot."""

    def __init__(self, slot: str):
        self.slot = slot
        super().__init__(f"No code mapping configured for '{slot}'")


class NoCodesAvailableError(ConfigurationError):
    """The 4-digit code space is exhausted."""

    def __init__(self, start: int = 1):
        self.start = start
        super().__init__(f"No free 4-digit code available from {start:04d}")


def _label(value) -> str:
    return getattr(value, "value", value)


def not_found(entity: str, entity_id) -> str:
    """Return message for a missing entity."""
    return f"{entity} {entity_id} not found"


def delete_blocked(entity: str, entity_id: int, counts: dict[str, int]) -> str:
    """Return message when an entity still has dependent records."""
    parts = [
        f"{count} {name}{'s' if count != 1 else ''}" for name, count in counts.items() if count > 0
    ]
    return (
        f"Cannot delete {entity} {entity_id}: it has {', '.join(parts)}. "
        "Please remove them first."
    )
