"""Database schema for repository layer.

Defines SQL for the entity and join tables and a helper to create them.
"""
from __future__ import annotations

from typing import Any
import sqlite3


ACCOUNTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    photo TEXT,
    organization_line TEXT NOT NULL,
    residence TEXT NOT NULL,
    owner TEXT,
    created_at TEXT,
    updated_at TEXT
);
"""


ACCOUNTS_EMAIL_INDEX_SQL = """
CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_idx ON accounts (email);
"""


PROJECTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    client_name TEXT NOT NULL,
    overview TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT,
    created_at TEXT,
    updated_at TEXT
);
"""


PROJECT_TECHNOLOGIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS project_technologies (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT,
    updated_at TEXT
);
"""


PROJECT_ASSIGNMENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS project_assignments (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    account_id TEXT NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
    start_date TEXT NOT NULL,
    end_date TEXT,
    created_at TEXT,
    updated_at TEXT
);
"""


PROJECT_TECHNOLOGY_LINKS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS project_technology_links (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    technology_id TEXT NOT NULL REFERENCES project_technologies (id) ON DELETE CASCADE,
    created_at TEXT,
    updated_at TEXT
);
"""


def create_tables(conn: sqlite3.Connection | Any) -> None:
    """Create required tables on the given SQLite connection.

    The function will execute DDL statements and commit the transaction.
    """
    cur = conn.cursor()
    cur.execute(ACCOUNTS_TABLE_SQL)
    cur.execute(ACCOUNTS_EMAIL_INDEX_SQL)
    cur.execute(PROJECTS_TABLE_SQL)
    cur.execute(PROJECT_TECHNOLOGIES_TABLE_SQL)
    cur.execute(PROJECT_ASSIGNMENTS_TABLE_SQL)
    cur.execute(PROJECT_TECHNOLOGY_LINKS_TABLE_SQL)
    conn.commit()


__all__ = [
    "ACCOUNTS_TABLE_SQL",
    "ACCOUNTS_EMAIL_INDEX_SQL",
    "PROJECTS_TABLE_SQL",
    "PROJECT_TECHNOLOGIES_TABLE_SQL",
    "PROJECT_ASSIGNMENTS_TABLE_SQL",
    "PROJECT_TECHNOLOGY_LINKS_TABLE_SQL",
    "create_tables",
]
