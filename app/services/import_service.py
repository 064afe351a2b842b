import logging
from typing import Iterable, Mapping, Optional

from pydantic import ValidationError as RowValidationError

from app.core.errors import PersistenceError, ValidationError
from app.models.debt import Debt
from app.repositories.debt_repo import DebtStore, UpsertOutcome
from app.schemas.importing import ImportRow, ImportSummary
from app.services.notification_service import NotificationError, Notifier
from app.utils.csv_rows import CSVFormatError, normalize_row

logger = logging.getLogger(__name__)


def format_row_errors(exc: RowValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        message = error["msg"].removeprefix("Value error, ")
        messages.append(f"{field}: {message}")
    return ", ".join(messages)


class ImportReconciler:
    """
    Merges a batch of externally sourced rows into the DebtStore.

    Each row stands alone: a bad row is reported and skipped, a storage
    fault on one row is reported and the batch carries on. Rows are applied
    in order, so when an email repeats the later row wins.
    """

    def __init__(self, store: DebtStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier

    async def reconcile(self, rows: Iterable[Mapping[str, object]]) -> ImportSummary:
        summary = ImportSummary()

        try:
            for index, raw in enumerate(rows):
                # +2: one for the header line, one for 0-indexing
                row_number = index + 2
                summary.total_rows += 1

                try:
                    row = ImportRow.model_validate(normalize_row(raw))
                except RowValidationError as exc:
                    summary.invalid_rows += 1
                    summary.errors.append(f"Row {row_number}: {format_row_errors(exc)}")
                    continue

                summary.valid_rows += 1
                await self._apply(row, summary)
        except CSVFormatError as exc:
            raise ValidationError(str(exc)) from exc

        if summary.total_rows == 0:
            summary.errors.append("CSV content is empty or contains no data rows")
        elif summary.valid_rows == 0:
            summary.errors.insert(0, "No valid rows found in CSV content")

        logger.info(
            "Import finished: %d rows, %d valid, %d invalid, %d created, %d updated",
            summary.total_rows, summary.valid_rows, summary.invalid_rows,
            summary.created, summary.updated
        )
        return summary

    async def _apply(self, row: ImportRow, summary: ImportSummary) -> None:
        try:
            outcome, debt = await self.store.upsert_from_import(row)
        except PersistenceError as exc:
            summary.errors.append(f"Failed to import {row.email}: {exc.message}")
            logger.error("Import error for %s: %s", row.email, exc.message)
            return
        except Exception as exc:
            # Any other per-row failure is reported; the batch carries on.
            summary.errors.append(f"Failed to import {row.email}: {exc}")
            logger.exception("Unexpected import error for %s", row.email)
            return

        if outcome == UpsertOutcome.CREATED:
            summary.created += 1
            await self._notify_created(debt)
        else:
            summary.updated += 1

    async def _notify_created(self, debt: Debt) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.send_debt_creation_email(
                debt.email, debt.name, debt.amount, debt.subject
            )
        except NotificationError as exc:
            # The debt stays created; the email is best-effort.
            logger.warning("Failed to send debt creation email to %s: %s", debt.email, exc)
