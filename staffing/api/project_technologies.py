"""API endpoints to manage project technologies."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Form, HTTPException, status

from ..core.db import init_db, get_connection
from ..repo.schema import create_tables
from ..repo.client import DataClient, error_messages

router = APIRouter()

LOG = logging.getLogger(__name__)


def _init_db_conn():
    init_db()
    conn = get_connection()
    create_tables(conn)
    return conn, DataClient(conn)


@router.get("/project-technologies")
def list_project_technologies():
    """Return all technologies with the number of projects using each."""
    conn, client = _init_db_conn()
    try:
        project_ids = {p["id"] for p in client.projects.list().data}
        counts = Counter(
            link["technologyId"]
            for link in client.project_technology_links.list().data
            if link["projectId"] in project_ids
        )
        technologies = [
            dict(t, projectsCount=counts.get(t["id"], 0))
            for t in client.project_technologies.list().data
        ]
        return {"projectTechnologies": technologies}
    finally:
        conn.close()


@router.post("/project-technologies")
def create_project_technology(name: str = Form(""), description: Optional[str] = Form(None)):
    """Create a project technology."""
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    conn, client = _init_db_conn()
    try:
        res = client.project_technologies.create(name=name, description=description or None)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        return {"projectTechnology": res.data}
    finally:
        conn.close()


@router.get("/project-technologies/{technology_id}")
def get_project_technology(technology_id: str):
    """Return a technology and the projects linked to it."""
    conn, client = _init_db_conn()
    try:
        technology = client.project_technologies.get(technology_id).data
        if technology is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project technology not found")
        links = client.project_technology_links.list(technologyId=technology_id).data
        projects = client.projects.list(id__in=[link["projectId"] for link in links]).data
        return {
            "projectTechnology": technology,
            "projects": [{"id": p["id"], "name": p["name"]} for p in projects],
        }
    finally:
        conn.close()


@router.post("/project-technologies/{technology_id}")
def update_project_technology(
    technology_id: str,
    name: str = Form(""),
    description: Optional[str] = Form(None),
):
    """Update a project technology."""
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    conn, client = _init_db_conn()
    try:
        if client.project_technologies.get(technology_id).data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project technology not found")
        res = client.project_technologies.update(technology_id, name=name, description=description or None)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_messages(res.errors))
        return {"projectTechnology": res.data}
    finally:
        conn.close()


@router.delete("/project-technologies/{technology_id}")
def delete_project_technology(technology_id: str):
    """Delete a project technology; its links go with it."""
    conn, client = _init_db_conn()
    try:
        res = client.project_technologies.delete(technology_id)
        if res.errors:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error_messages(res.errors))
        LOG.info("Deleted project technology %s", technology_id)
        return {"deleted": technology_id}
    finally:
        conn.close()


__all__ = ["router"]
