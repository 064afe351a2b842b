"""
Import debts from a CSV file straight into MongoDB.

    python -m scripts.import_csv path/to/file.csv [--no-email]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from app.core.logging import configure_logging
from app.core.errors import DebtServiceError
from app.db.mongo import close_mongo_connection, connect_to_mongo, get_db
from app.repositories.debt_repo import DebtStore
from app.services.import_service import ImportReconciler
from app.services.notification_service import Notifier
from app.utils.csv_rows import iter_csv_rows

logger = logging.getLogger("scripts.import_csv")


async def run_import(path: Path, send_email: bool) -> int:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Cannot read %s: %s", path, exc)
        return 1

    await connect_to_mongo()
    try:
        reconciler = ImportReconciler(DebtStore(get_db()), Notifier() if send_email else None)
        summary = await reconciler.reconcile(iter_csv_rows(content))
    except DebtServiceError as exc:
        logger.error("Import failed: %s", exc.message)
        return 1
    finally:
        await close_mongo_connection()

    print("\n=== Import Summary ===")
    print(f"Total rows:  {summary.total_rows}")
    print(f"Valid rows:  {summary.valid_rows}")
    print(f"Created:     {summary.created}")
    print(f"Updated:     {summary.updated}")
    print(f"Errors:      {len(summary.errors)}")
    for error in summary.errors:
        print(f"  - {error}")

    return 0 if summary.valid_rows else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import debts from a CSV file")
    parser.add_argument("csv_file", nargs="?", default="file.csv", type=Path)
    parser.add_argument("--no-email", action="store_true", help="do not send creation emails")
    args = parser.parse_args(argv)

    configure_logging()
    return asyncio.run(run_import(args.csv_file, send_email=not args.no_email))


if __name__ == "__main__":
    sys.exit(main())
