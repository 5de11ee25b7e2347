"""API router for projects.

Project forms carry the selected technology ids as a JSON array in the
`selectedTechnologies` field; links are reconciled after the project itself
is saved.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Form, HTTPException, status
from pydantic import TypeAdapter, ValidationError

from ..core.db import init_db, get_connection
from ..repo.schema import create_tables
from ..repo.client import DataClient, error_messages
from ..pipeline.reconcile import update_project_technology_links

router = APIRouter()

LOG = logging.getLogger(__name__)

_TECH_IDS_ADAPTER = TypeAdapter(List[str])


def _init_db_conn():
    init_db()
    conn = get_connection()
    create_tables(conn)
    return conn, DataClient(conn)


def parse_technology_ids(raw: Optional[str]) -> List[str]:
    """Decode the `selectedTechnologies` form field, dropping repeated ids."""
    if not raw:
        return []
    try:
        ids = _TECH_IDS_ADAPTER.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Invalid selectedTechnologies: {exc}") from exc
    return list(dict.fromkeys(ids))


def _check_fields(name: str, client_name: str, overview: str, start_date: str, end_date: str) -> Dict[str, Any]:
    if not name or not client_name or not overview or not start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="All required fields must be filled out",
        )
    for label, value in (("startDate", start_date), ("endDate", end_date)):
        if value:
            try:
                date.fromisoformat(value)
            except ValueError as exc:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid {label}: {value}",
                ) from exc
    return {
        "name": name,
        "clientName": client_name,
        "overview": overview,
        "startDate": start_date,
        "endDate": end_date or None,
    }


def _parse_tech_ids_or_400(raw: Optional[str]) -> List[str]:
    try:
        return parse_technology_ids(raw)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _reconcile_links(client: DataClient, project_id: str, tech_ids: List[str]) -> Dict[str, Any]:
    project = client.get_project_with_technologies(project_id).data
    summary = update_project_technology_links(client, project, tech_ids)
    if summary.errors:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=", ".join(summary.errors))
    return summary.as_dict()


def _linked_technologies(client: DataClient, project: Dict[str, Any]) -> List[Dict[str, Any]]:
    tech_ids = [link["technologyId"] for link in project.get("technologies") or []]
    techs = client.project_technologies.list(id__in=tech_ids).data
    return [{"id": t["id"], "name": t["name"]} for t in techs]


@router.get("/projects")
def list_projects():
    """Return all projects."""
    conn, client = _init_db_conn()
    try:
        return {"projects": client.projects.list().data}
    finally:
        conn.close()


@router.post("/projects")
def create_project(
    name: str = Form(""),
    clientName: str = Form(""),
    overview: str = Form(""),
    startDate: str = Form(""),
    endDate: str = Form(""),
    selectedTechnologies: Optional[str] = Form(None),
):
    """Create a project and link the selected technologies."""
    fields = _check_fields(name, clientName, overview, startDate, endDate)
    tech_ids = _parse_tech_ids_or_400(selectedTechnologies)

    conn, client = _init_db_conn()
    try:
        res = client.projects.create(**fields)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        links = _reconcile_links(client, res.data["id"], tech_ids)
        return {"project": res.data, "technologyLinks": links}
    except HTTPException:
        raise
    except Exception as exc:
        LOG.exception("Error creating project")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        conn.close()


@router.get("/projects/{project_id}")
def get_project(project_id: str):
    """Return a project and the technologies linked to it."""
    conn, client = _init_db_conn()
    try:
        project = client.get_project_with_technologies(project_id).data
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
        return {"project": project, "technologies": _linked_technologies(client, project)}
    finally:
        conn.close()


@router.get("/projects/{project_id}/edit")
def get_project_for_edit(project_id: str):
    """Return a project with its links plus every selectable technology."""
    conn, client = _init_db_conn()
    try:
        project = client.get_project_with_technologies(project_id).data
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
        technologies = [{"id": t["id"], "name": t["name"]} for t in client.project_technologies.list().data]
        return {"project": project, "technologies": technologies}
    finally:
        conn.close()


@router.post("/projects/{project_id}")
def update_project(
    project_id: str,
    name: str = Form(""),
    clientName: str = Form(""),
    overview: str = Form(""),
    startDate: str = Form(""),
    endDate: str = Form(""),
    selectedTechnologies: Optional[str] = Form(None),
):
    """Update a project and reconcile its technology links.

    An omitted or empty `selectedTechnologies` unlinks every technology.
    """
    fields = _check_fields(name, clientName, overview, startDate, endDate)
    tech_ids = _parse_tech_ids_or_400(selectedTechnologies)

    conn, client = _init_db_conn()
    try:
        if client.projects.get(project_id).data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
        res = client.projects.update(project_id, **fields)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        links = _reconcile_links(client, project_id, tech_ids)
        return {"project": res.data, "technologyLinks": links}
    except HTTPException:
        raise
    except Exception as exc:
        LOG.exception("Error updating project %s", project_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        conn.close()


@router.delete("/projects/{project_id}")
def delete_project(project_id: str):
    """Delete a project after removing its technology links."""
    conn, client = _init_db_conn()
    try:
        project = client.get_project_with_technologies(project_id).data
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

        errors = []
        for link in project["technologies"]:
            link_res = client.project_technology_links.delete(link["id"])
            if link_res.errors:
                msg = f"delete technology link {link['id']}: {error_messages(link_res.errors)}"
                LOG.warning("Project %s: %s", project_id, msg)
                errors.append(msg)
        # the project is kept while any of its links could not be removed
        if errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=", ".join(errors))

        res = client.projects.delete(project_id)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        return {"deleted": project_id}
    except HTTPException:
        raise
    except Exception as exc:
        LOG.exception("Error deleting project %s", project_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        conn.close()


__all__ = ["router", "parse_technology_ids"]
