"""CSV account import.

Reads an uploaded CSV into a DataFrame and creates (or updates, when an
account with the same email already exists) one account per row. Rows are
processed one at a time; a bad row is reported and skipped, never fatal.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pandas as pd

from ..repo.client import error_messages


LOG = logging.getLogger(__name__)

ACCOUNT_CSV_COLUMNS = ("name", "email", "photo", "organizationLine", "residence")
REQUIRED_ACCOUNT_COLUMNS = ("name", "email", "organizationLine", "residence")


class CsvImportError(Exception):
    """Raised when the uploaded file cannot be parsed as CSV."""


@dataclass
class ImportResult:
    success: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "errors": list(self.errors)}


def read_csv_records(content: bytes) -> List[Dict[str, str]]:
    """Parse CSV bytes into a list of row dicts with trimmed string values.

    The first line is the header. Blank lines are skipped and missing cells
    become empty strings. A row with more fields than the header raises
    `CsvImportError`.
    """
    try:
        # header=None: the header line fixes the row width, so longer rows
        # fail to tokenize instead of being shifted into an index column
        raw = pd.read_csv(
            io.BytesIO(content),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as exc:
        raise CsvImportError(str(exc)) from exc

    if raw.empty:
        return []
    # short rows leave NaN in trailing cells
    raw = raw.fillna("")
    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = [str(c).strip() for c in raw.iloc[0]]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df.to_dict(orient="records")


def import_accounts(client: Any, records: List[Dict[str, str]]) -> ImportResult:
    """Create or update one account per record.

    Row numbers in error messages are 1-based data rows (header excluded).
    """
    result = ImportResult()
    for i, record in enumerate(records, start=1):
        if any(not record.get(col) for col in REQUIRED_ACCOUNT_COLUMNS):
            result.errors.append(f"Row {i}: name, email, organizationLine and residence are required")
            continue

        fields = {
            "name": record["name"],
            "email": record["email"],
            "photo": record.get("photo") or None,
            "organizationLine": record["organizationLine"],
            "residence": record["residence"],
        }
        try:
            found = client.list_account_by_email(fields["email"])
            if found.errors:
                result.errors.append(f"Row {i}: {error_messages(found.errors)}")
                continue
            if found.data:
                res = client.accounts.update(found.data[0]["id"], **fields)
            else:
                res = client.accounts.create(**fields)
        except Exception as exc:
            LOG.exception("CSV import failed on row %s", i)
            result.errors.append(f"Row {i}: {exc}")
            continue

        if res.errors:
            result.errors.append(f"Row {i}: {error_messages(res.errors)}")
        else:
            result.success += 1

    LOG.info("CSV import finished: %d imported, %d errors", result.success, len(result.errors))
    return result


def import_accounts_csv(client: Any, content: bytes) -> ImportResult:
    """Parse `content` and import its rows. Raises `CsvImportError`."""
    return import_accounts(client, read_csv_records(content))


__all__ = [
    "ACCOUNT_CSV_COLUMNS",
    "REQUIRED_ACCOUNT_COLUMNS",
    "CsvImportError",
    "ImportResult",
    "read_csv_records",
    "import_accounts",
    "import_accounts_csv",
]
