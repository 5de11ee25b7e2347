#!/usr/bin/env python3
"""Import accounts from a CSV file straight into the configured database.

Usage:
  python scripts/import_accounts.py <csv_path>

The CSV header must be `name,email,photo,organizationLine,residence`.
Accounts whose email already exists are updated in place.
"""
from pathlib import Path
import sys

from staffing.core.db import init_db, get_connection
from staffing.core.logging_config import setup_logging
from staffing.pipeline.importer import import_accounts_csv
from staffing.repo.client import DataClient
from staffing.repo.schema import create_tables


def main(csv_path: str) -> int:
    setup_logging()
    init_db()
    conn = get_connection()
    try:
        create_tables(conn)
        result = import_accounts_csv(DataClient(conn), Path(csv_path).read_bytes())
    finally:
        conn.close()

    print(f"{result.success} accounts imported")
    for err in result.errors:
        print(f"  {err}")
    return 1 if result.errors else 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/import_accounts.py <csv_path>")
        sys.exit(1)
    sys.exit(main(sys.argv[1]))
