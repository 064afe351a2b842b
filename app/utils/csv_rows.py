"""CSV import row helpers: header normalisation and lazy row iteration."""
import csv
import io
from typing import Dict, Iterable, Iterator, List, Mapping

REQUIRED_COLUMNS = ["name", "email", "debtSubject", "debtAmount"]

HEADER_SYNONYMS = {
    "name": "name",
    "email": "email",
    "debtsubject": "debtSubject",
    "debt subject": "debtSubject",
    "debt_subject": "debtSubject",
    "subject": "debtSubject",
    "debtamount": "debtAmount",
    "debt amount": "debtAmount",
    "debt_amount": "debtAmount",
    "amount": "debtAmount",
}


class CSVFormatError(Exception):
    """The CSV source itself is unusable (not a single row)."""


def canonical_header(header: str) -> str:
    key = (header or "").strip().lower()
    return HEADER_SYNONYMS.get(key, key)


def normalize_row(raw: Mapping[str, object]) -> Dict[str, str]:
    """Map a raw row onto the canonical keys; values are stringified and trimmed."""
    row: Dict[str, str] = {}
    for key, value in raw.items():
        if key is None:
            # csv.DictReader puts surplus cells under a None key
            continue
        row[canonical_header(key)] = "" if value is None else str(value).strip()
    return row


def missing_columns(headers: Iterable[str]) -> List[str]:
    present = {canonical_header(h) for h in headers}
    return [col for col in REQUIRED_COLUMNS if col not in present]


def iter_csv_rows(content: str) -> Iterator[Dict[str, str]]:
    """
    Lazily yield raw row dicts from CSV text.

    Raises CSVFormatError when there is no header or a required column
    is missing; blank lines are skipped.
    """
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    headers = reader.fieldnames
    if not headers:
        raise CSVFormatError("CSV content is empty or contains no data rows")

    missing = missing_columns(headers)
    if missing:
        raise CSVFormatError(f"Missing required columns: {', '.join(missing)}")

    for raw in reader:
        if not any(isinstance(v, str) and v.strip() for v in raw.values()):
            continue
        yield raw
