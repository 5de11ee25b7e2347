"""Data-access client over the SQLite store.

Every entity gets a `ModelClient` exposing `get`, `list`, `create`, `update`
and `delete`. Each call returns a `Result(data, errors)`: store failures such
as a missing required field, a duplicate email or an unknown id come back in
`errors` as a list of ``{"message": ...}`` dicts instead of being raised, so
callers decide whether a failure is terminal.

Records are plain dicts keyed by the camelCase field names used on the wire
(``projectId``, ``startDate``...); column names stay snake_case in SQL.
"""
from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


LOG = logging.getLogger(__name__)


class Result(NamedTuple):
    data: Any
    errors: Optional[List[Dict[str, str]]] = None


def error_messages(errors: Optional[List[Dict[str, str]]]) -> str:
    """Join the messages of a `Result.errors` list with ', '."""
    return ", ".join(str(e.get("message", e)) for e in (errors or []))


@dataclass(frozen=True)
class ModelDef:
    name: str
    table: str
    # wire name -> column name, excluding id and timestamps
    fields: Dict[str, str]
    required: Tuple[str, ...] = ()


ACCOUNT = ModelDef(
    name="Account",
    table="accounts",
    fields={
        "name": "name",
        "email": "email",
        "photo": "photo",
        "organizationLine": "organization_line",
        "residence": "residence",
        "owner": "owner",
    },
    required=("name", "email", "organizationLine", "residence"),
)

PROJECT = ModelDef(
    name="Project",
    table="projects",
    fields={
        "name": "name",
        "clientName": "client_name",
        "overview": "overview",
        "startDate": "start_date",
        "endDate": "end_date",
    },
    required=("name", "clientName", "overview", "startDate"),
)

PROJECT_TECHNOLOGY = ModelDef(
    name="ProjectTechnology",
    table="project_technologies",
    fields={"name": "name", "description": "description"},
    required=("name",),
)

PROJECT_ASSIGNMENT = ModelDef(
    name="ProjectAssignment",
    table="project_assignments",
    fields={
        "projectId": "project_id",
        "accountId": "account_id",
        "startDate": "start_date",
        "endDate": "end_date",
    },
    required=("projectId", "accountId", "startDate"),
)

PROJECT_TECHNOLOGY_LINK = ModelDef(
    name="ProjectTechnologyLink",
    table="project_technology_links",
    fields={"projectId": "project_id", "technologyId": "technology_id"},
    required=("projectId", "technologyId"),
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_missing(value: Any) -> bool:
    return value is None


class ModelClient:
    """CRUD operations for one entity table."""

    def __init__(self, conn: sqlite3.Connection, model: ModelDef) -> None:
        self.conn = conn
        self.model = model

    def _columns(self) -> List[str]:
        return ["id", *self.model.fields.values(), "created_at", "updated_at"]

    def _select_sql(self) -> str:
        return f"SELECT {', '.join(self._columns())} FROM {self.model.table}"

    def _to_record(self, row: Tuple[Any, ...]) -> Dict[str, Any]:
        keys = ["id", *self.model.fields.keys(), "createdAt", "updatedAt"]
        return dict(zip(keys, row))

    def _check_fields(self, fields: Dict[str, Any]) -> Optional[List[Dict[str, str]]]:
        unknown = [k for k in fields if k not in self.model.fields]
        if unknown:
            return [{"message": f"Unknown field for {self.model.name}: {', '.join(sorted(unknown))}"}]
        return None

    def get(self, id: str) -> Result:
        """Return the record with `id`, or ``Result(None)`` when it does not exist."""
        cur = self.conn.cursor()
        cur.execute(f"{self._select_sql()} WHERE id = ?", (id,))
        row = cur.fetchone()
        return Result(self._to_record(row) if row else None)

    def list(self, **filters: Any) -> Result:
        """List records, optionally filtered by field equality.

        ``id__in=[...]`` restricts the result to the given ids.
        """
        params: list = []
        where_clauses: list = []
        ids = filters.pop("id__in", None)
        if ids is not None:
            ids = list(ids)
            if not ids:
                return Result([])
            where_clauses.append(f"id IN ({','.join('?' for _ in ids)})")
            params.extend(ids)

        errors = self._check_fields(filters)
        if errors:
            return Result([], errors)
        for key, value in filters.items():
            column = self.model.fields[key]
            if value is None:
                where_clauses.append(f"{column} IS NULL")
            else:
                where_clauses.append(f"{column} = ?")
                params.append(value)

        where_sql = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        cur = self.conn.cursor()
        cur.execute(f"{self._select_sql()}{where_sql} ORDER BY rowid ASC", tuple(params))
        return Result([self._to_record(r) for r in cur.fetchall()])

    def create(self, **fields: Any) -> Result:
        errors = self._check_fields(fields)
        if errors:
            return Result(None, errors)
        missing = [f for f in self.model.required if _is_missing(fields.get(f))]
        if missing:
            return Result(None, [{"message": f"Field '{f}' is required"} for f in missing])

        record_id = uuid.uuid4().hex
        now = _now()
        columns = ["id", *self.model.fields.values(), "created_at", "updated_at"]
        values = [record_id, *(fields.get(k) for k in self.model.fields), now, now]
        placeholders = ",".join("?" for _ in columns)
        cur = self.conn.cursor()
        try:
            cur.execute(
                f"INSERT INTO {self.model.table} ({', '.join(columns)}) VALUES ({placeholders})",
                tuple(values),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            LOG.debug("create %s rejected: %s", self.model.name, exc)
            return Result(None, [{"message": str(exc)}])
        return self.get(record_id)

    def update(self, id: str, **fields: Any) -> Result:
        """Update only the given fields of record `id`.

        Passing ``None`` clears a nullable field; required fields cannot be
        cleared.
        """
        errors = self._check_fields(fields)
        if errors:
            return Result(None, errors)
        cleared = [f for f in self.model.required if f in fields and _is_missing(fields[f])]
        if cleared:
            return Result(None, [{"message": f"Field '{f}' is required"} for f in cleared])

        assignments = [f"{self.model.fields[k]} = ?" for k in fields]
        params = [fields[k] for k in fields]
        assignments.append("updated_at = ?")
        params.append(_now())
        params.append(id)
        cur = self.conn.cursor()
        try:
            cur.execute(
                f"UPDATE {self.model.table} SET {', '.join(assignments)} WHERE id = ?",
                tuple(params),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as exc:
            self.conn.rollback()
            LOG.debug("update %s %s rejected: %s", self.model.name, id, exc)
            return Result(None, [{"message": str(exc)}])
        if cur.rowcount == 0:
            return Result(None, [{"message": f"{self.model.name} not found: {id}"}])
        return self.get(id)

    def delete(self, id: str) -> Result:
        """Delete record `id` and return the deleted record."""
        existing = self.get(id).data
        if existing is None:
            return Result(None, [{"message": f"{self.model.name} not found: {id}"}])
        cur = self.conn.cursor()
        cur.execute(f"DELETE FROM {self.model.table} WHERE id = ?", (id,))
        self.conn.commit()
        return Result(existing)


class DataClient:
    """Entry point bundling one `ModelClient` per entity."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.accounts = ModelClient(conn, ACCOUNT)
        self.projects = ModelClient(conn, PROJECT)
        self.project_technologies = ModelClient(conn, PROJECT_TECHNOLOGY)
        self.project_assignments = ModelClient(conn, PROJECT_ASSIGNMENT)
        self.project_technology_links = ModelClient(conn, PROJECT_TECHNOLOGY_LINK)

    def list_account_by_email(self, email: str) -> Result:
        """Secondary-index lookup of accounts by email."""
        return self.accounts.list(email=email)

    def get_account_with_assignments(self, account_id: str) -> Result:
        """Return the account with its `assignments` list loaded."""
        res = self.accounts.get(account_id)
        if res.data is None:
            return res
        account = dict(res.data)
        account["assignments"] = self.project_assignments.list(accountId=account_id).data
        return Result(account)

    def get_project_with_technologies(self, project_id: str) -> Result:
        """Return the project with its `technologies` link records loaded."""
        res = self.projects.get(project_id)
        if res.data is None:
            return res
        project = dict(res.data)
        project["technologies"] = self.project_technology_links.list(projectId=project_id).data
        return Result(project)


__all__ = [
    "Result",
    "ModelDef",
    "ModelClient",
    "DataClient",
    "ACCOUNT",
    "PROJECT",
    "PROJECT_TECHNOLOGY",
    "PROJECT_ASSIGNMENT",
    "PROJECT_TECHNOLOGY_LINK",
    "error_messages",
]
