"""Fiscal year domain service."""

from datetime import date
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import FiscalYear
from ledgerkit.domain.errors import (
    DuplicateRangeError,
    HasDocumentsError,
    InvariantViolation,
    MustBeClosedError,
    NotFoundError,
    ValidationError,
    not_found,
)
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.fiscal_year")


def next_year_range(end_date: date) -> tuple[date, date]:
    """Return the range of the year following one that ends on ``end_date``."""
    start = end_date + relativedelta(days=1)
    return start, start + relativedelta(years=1) - relativedelta(days=1)


class FiscalYearService:
    """Service for the fiscal year lifecycle.

    At most one fiscal year is open at any time. Every operation that changes
    an open flag runs in a transaction that ends with
    :meth:`_check_single_open_year`.
    """

    def __init__(self, db: Database):
        """Initialize fiscal year service.

        Args:
            db: Database instance
        """
        self.db = db

    def _require(self, fiscal_year_id: int, for_update: bool = False) -> FiscalYear:
        year = self.db.get_fiscal_year(fiscal_year_id, for_update=for_update)
        if year is None:
            raise NotFoundError(not_found("Fiscal year", fiscal_year_id))
        return year

    @staticmethod
    def _check_range(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")

    def _check_single_open_year(self) -> None:
        open_ids = [year.id for year in self.db.list_fiscal_years() if year.is_open]
        if len(open_ids) > 1:
            raise InvariantViolation(f"More than one fiscal year is open: {open_ids}")

    def _open_exclusively(self, fiscal_year_id: int) -> None:
        """Close every other year and open ``fiscal_year_id``. Call inside a transaction."""
        for year in self.db.list_fiscal_years(for_update=True):
            if year.id != fiscal_year_id and year.is_open:
                self.db.update_fiscal_year(year.id, is_closed=True)
        self.db.update_fiscal_year(fiscal_year_id, is_closed=False)
        self._check_single_open_year()

    def create(self, name: str, start_date: date, end_date: date) -> int:
        """Create a closed fiscal year.

        Args:
            name: Display name
            start_date: First day of the year
            end_date: Last day of the year

        Returns:
            Fiscal year ID

        Raises:
            ValidationError: If the name is empty or start is after end
        """
        if not name or not name.strip():
            raise ValidationError("Fiscal year name is required")
        self._check_range(start_date, end_date)
        fiscal_year_id = self.db.create_fiscal_year(
            name=name.strip(), start_date=start_date, end_date=end_date, is_closed=True
        )
        logger.info("Fiscal year created", extra={"fiscal_year_id": fiscal_year_id})
        return fiscal_year_id

    def get(self, fiscal_year_id: int) -> Optional[FiscalYear]:
        """Get fiscal year by ID."""
        return self.db.get_fiscal_year(fiscal_year_id)

    def list_years(self) -> list[FiscalYear]:
        """List fiscal years ordered by start date."""
        return self.db.list_fiscal_years()

    def get_open_year(self) -> Optional[FiscalYear]:
        """Return the currently open fiscal year, if any."""
        for year in self.db.list_fiscal_years():
            if year.is_open:
                return year
        return None

    def has_documents(self, fiscal_year_id: int) -> bool:
        """Return True if journals, receipts or payments reference the year."""
        return self.db.count_fiscal_year_documents(fiscal_year_id) > 0

    def open(self, fiscal_year_id: int) -> None:
        """Open a fiscal year, closing whichever year was open before.

        Raises:
            NotFoundError: If the year does not exist
        """
        with self.db.transaction():
            self._require(fiscal_year_id, for_update=True)
            self._open_exclusively(fiscal_year_id)
        logger.info("Fiscal year opened", extra={"fiscal_year_id": fiscal_year_id})

    def close(self, fiscal_year_id: int) -> None:
        """Close a fiscal year.

        Raises:
            NotFoundError: If the year does not exist
        """
        with self.db.transaction():
            self._require(fiscal_year_id, for_update=True)
            self.db.update_fiscal_year(fiscal_year_id, is_closed=True)
        logger.info("Fiscal year closed", extra={"fiscal_year_id": fiscal_year_id})

    def open_next(self, fiscal_year_id: int, name: Optional[str] = None) -> int:
        """Create and open the year following a closed one.

        Args:
            fiscal_year_id: Source year, which must be closed
            name: Name of the new year, defaults to "<source name> (Next)"

        Returns:
            ID of the new fiscal year

        Raises:
            NotFoundError: If the source year does not exist
            MustBeClosedError: If the source year is still open
            DuplicateRangeError: If a year already starts the day after the source ends
        """
        with self.db.transaction():
            source = self._require(fiscal_year_id, for_update=True)
            if source.is_open:
                raise MustBeClosedError(fiscal_year_id)

            start_date, end_date = next_year_range(source.end_date)
            if self.db.get_fiscal_year_by_start(start_date) is not None:
                raise DuplicateRangeError(start_date)

            next_name = name.strip() if name and name.strip() else f"{source.name} (Next)"
            new_id = self.db.create_fiscal_year(
                name=next_name, start_date=start_date, end_date=end_date, is_closed=True
            )
            self._open_exclusively(new_id)
        logger.info(
            "Next fiscal year opened",
            extra={"fiscal_year_id": new_id, "source_fiscal_year_id": fiscal_year_id},
        )
        return new_id

    def delete(self, fiscal_year_id: int) -> None:
        """Delete a fiscal year without documents.

        When the open year is deleted, the year starting just before it is
        opened instead, or the one just after it when there is none earlier.

        Raises:
            NotFoundError: If the year does not exist
            HasDocumentsError: If any document references the year
        """
        with self.db.transaction():
            years = self.db.list_fiscal_years(for_update=True)
            target = next((y for y in years if y.id == fiscal_year_id), None)
            if target is None:
                raise NotFoundError(not_found("Fiscal year", fiscal_year_id))

            document_count = self.db.count_fiscal_year_documents(fiscal_year_id)
            if document_count:
                raise HasDocumentsError(fiscal_year_id, document_count)

            self.db.delete_fiscal_year(fiscal_year_id)

            if target.is_open:
                fallback = self._fallback_year(target, [y for y in years if y.id != fiscal_year_id])
                if fallback is not None:
                    self._open_exclusively(fallback.id)
                    logger.info(
                        "Fiscal year reopened after delete",
                        extra={"fiscal_year_id": fallback.id},
                    )
            self._check_single_open_year()
        logger.info("Fiscal year deleted", extra={"fiscal_year_id": fiscal_year_id})

    @staticmethod
    def _fallback_year(deleted: FiscalYear, remaining: list[FiscalYear]) -> Optional[FiscalYear]:
        earlier = [y for y in remaining if y.start_date < deleted.start_date]
        if earlier:
            return max(earlier, key=lambda y: y.start_date)
        later = [y for y in remaining if y.start_date >= deleted.start_date]
        if later:
            return min(later, key=lambda y: y.start_date)
        return None

    def update(
        self,
        fiscal_year_id: int,
        name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> None:
        """Rename a fiscal year or change its dates.

        Raises:
            NotFoundError: If the year does not exist
            ValidationError: If the resulting range is inverted
            HasDocumentsError: If dates change while documents reference the year
        """
        year = self._require(fiscal_year_id)
        fields: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Fiscal year name is required")
            fields["name"] = name.strip()

        next_start = year.start_date if start_date is None else start_date
        next_end = year.end_date if end_date is None else end_date
        if (next_start, next_end) != (year.start_date, year.end_date):
            self._check_range(next_start, next_end)
            document_count = self.db.count_fiscal_year_documents(fiscal_year_id)
            if document_count:
                raise HasDocumentsError(fiscal_year_id, document_count)
            fields["start_date"] = next_start
            fields["end_date"] = next_end

        if fields:
            self.db.update_fiscal_year(fiscal_year_id, **fields)
