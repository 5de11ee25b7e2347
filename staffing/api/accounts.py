"""API router for accounts.

Account forms post plain fields; the edit form also carries the desired
project assignments as a JSON array in the `projectAssignments` field, which
is reconciled against the account's current assignments.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator

from ..core.db import init_db, get_connection
from ..repo.schema import create_tables
from ..repo.client import DataClient, error_messages
from ..pipeline.importer import CsvImportError, import_accounts_csv
from ..pipeline.provisioning import ensure_account_for_identity
from ..pipeline.reconcile import update_project_assignments

router = APIRouter()

LOG = logging.getLogger(__name__)


def _init_db_conn():
    """Ensure DB initialized and return (conn, client).

    Caller is responsible for closing `conn`.
    """
    init_db()
    conn = get_connection()
    create_tables(conn)
    return conn, DataClient(conn)


class ProjectAssignmentIn(BaseModel):
    projectId: str
    startDate: date
    endDate: Optional[date] = None

    @field_validator("endDate", mode="before")
    @classmethod
    def _empty_end_date(cls, value: Any) -> Any:
        return value or None

    def as_desired(self) -> Dict[str, Optional[str]]:
        return {
            "projectId": self.projectId,
            "startDate": self.startDate.isoformat(),
            "endDate": self.endDate.isoformat() if self.endDate else None,
        }


_ASSIGNMENTS_ADAPTER = TypeAdapter(List[ProjectAssignmentIn])


class IdentityIn(BaseModel):
    email: str
    sub: str
    username: str
    name: Optional[str] = None


def parse_project_assignments(raw: str) -> List[Dict[str, Optional[str]]]:
    """Decode and validate the `projectAssignments` form field.

    Raises ValueError on malformed JSON, missing fields or a project listed
    twice.
    """
    try:
        items = _ASSIGNMENTS_ADAPTER.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Invalid projectAssignments: {exc}") from exc

    seen = set()
    for item in items:
        if item.projectId in seen:
            raise ValueError(f"Invalid projectAssignments: project {item.projectId} listed twice")
        seen.add(item.projectId)
    return [item.as_desired() for item in items]


def _require(name: str, organization_line: str, residence: str) -> None:
    if not name or not organization_line or not residence:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, Organization Line, and Residence are required",
        )


def _with_projects(client: DataClient, account: Dict[str, Any]) -> Dict[str, Any]:
    """Attach `project` (id, name, clientName) to each loaded assignment."""
    assignments = account.get("assignments") or []
    projects = client.projects.list(id__in=[a["projectId"] for a in assignments]).data
    by_id = {p["id"]: {"id": p["id"], "name": p["name"], "clientName": p["clientName"]} for p in projects}
    out = dict(account)
    out["assignments"] = [dict(a, project=by_id.get(a["projectId"])) for a in assignments]
    return out


@router.get("/accounts")
def list_accounts():
    """Return all accounts."""
    conn, client = _init_db_conn()
    try:
        res = client.accounts.list()
        if res.errors:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_messages(res.errors))
        return {"accounts": res.data}
    finally:
        conn.close()


@router.post("/accounts")
def create_account(
    name: str = Form(""),
    email: str = Form(""),
    photo: Optional[str] = Form(None),
    organizationLine: str = Form(""),
    residence: str = Form(""),
):
    """Create an account from form fields."""
    _require(name, organizationLine, residence)
    conn, client = _init_db_conn()
    try:
        res = client.accounts.create(
            name=name,
            email=email,
            photo=photo or None,
            organizationLine=organizationLine,
            residence=residence,
        )
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        return {"account": res.data}
    finally:
        conn.close()


@router.post("/accounts/import")
async def import_accounts(csvFile: Optional[UploadFile] = File(None)):
    """Import accounts from an uploaded CSV file.

    Header: name,email,photo,organizationLine,residence. Returns the number of
    imported rows and one message per rejected row.
    """
    if csvFile is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A CSV file is required")

    try:
        content = await csvFile.read()
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to read uploaded file") from exc

    conn, client = _init_db_conn()
    try:
        results = import_accounts_csv(client, content)
    except CsvImportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Failed to process CSV: {exc}") from exc
    finally:
        conn.close()

    return {"results": results.as_dict()}


@router.post("/accounts/provision")
def provision_account(payload: IdentityIn):
    """Ensure a confirmed identity has an account bound to it."""
    conn, client = _init_db_conn()
    try:
        account = ensure_account_for_identity(
            client, payload.email, payload.sub, payload.username, name=payload.name
        )
    finally:
        conn.close()

    if account is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to provision account")
    return {"account": account}


@router.get("/accounts/{account_id}")
def get_account(account_id: str):
    """Return an account with its assignments and their projects."""
    conn, client = _init_db_conn()
    try:
        account = client.get_account_with_assignments(account_id).data
        if account is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
        return {"account": _with_projects(client, account)}
    finally:
        conn.close()


@router.get("/accounts/{account_id}/edit")
def get_account_for_edit(account_id: str):
    """Return an account with its assignments plus the selectable projects."""
    conn, client = _init_db_conn()
    try:
        account = client.get_account_with_assignments(account_id).data
        if account is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
        projects = [
            {k: p[k] for k in ("id", "name", "clientName", "startDate", "endDate")}
            for p in client.projects.list().data
        ]
        return {"account": account, "projects": projects}
    finally:
        conn.close()


@router.post("/accounts/{account_id}")
def update_account(
    account_id: str,
    name: str = Form(""),
    email: str = Form(""),
    photo: Optional[str] = Form(None),
    organizationLine: str = Form(""),
    residence: str = Form(""),
    projectAssignments: Optional[str] = Form(None),
):
    """Update an account and reconcile its project assignments.

    Assignments are left untouched when `projectAssignments` is omitted; an
    empty JSON array removes them all.
    """
    _require(name, organizationLine, residence)
    desired = None
    if projectAssignments:
        try:
            desired = parse_project_assignments(projectAssignments)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    conn, client = _init_db_conn()
    try:
        if client.accounts.get(account_id).data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

        fields: Dict[str, Any] = {
            "name": name,
            "photo": photo or None,
            "organizationLine": organizationLine,
            "residence": residence,
        }
        if email:
            fields["email"] = email
        res = client.accounts.update(account_id, **fields)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))

        summary = None
        if desired is not None:
            account = client.get_account_with_assignments(account_id).data
            summary = update_project_assignments(client, account, desired)
            if summary.errors:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=", ".join(summary.errors))

        account = client.get_account_with_assignments(account_id).data
        return {
            "account": _with_projects(client, account),
            "assignments": summary.as_dict() if summary else None,
        }
    except HTTPException:
        raise
    except Exception as exc:
        LOG.exception("Error updating account %s", account_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        conn.close()


__all__ = ["router", "parse_project_assignments"]
