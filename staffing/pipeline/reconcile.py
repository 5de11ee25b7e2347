"""Relationship reconciliation.

Brings a parent's current join records in line with a desired list
submitted from a form:

- `update_project_assignments`: an account's project assignments, keyed by
  ``projectId`` and carrying start/end dates.
- `update_project_technology_links`: a project's technology links, keyed by
  ``technologyId`` with no mutable attributes.

Removals are issued first, then updates/creates in desired-list order. Calls
are made one at a time against the injected client; nothing is batched,
retried or rolled back. A call that returns ``errors`` has its messages
collected into the summary and the loop moves on. An exception raised by the
client propagates and leaves the remaining items unprocessed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..repo.client import Result, error_messages


LOG = logging.getLogger(__name__)


@dataclass
class ReconcileSummary:
    deleted: int = 0
    updated: int = 0
    created: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def as_dict(self) -> Dict[str, Any]:
        return {
            "deleted": self.deleted,
            "updated": self.updated,
            "created": self.created,
            "errors": list(self.errors),
        }


def _normalize_date(value: Optional[str]) -> Optional[str]:
    # an omitted or empty end date means open-ended
    return value or None


def _record(summary: ReconcileSummary, res: Result, action: str, what: str) -> bool:
    if res.errors:
        msg = f"{action} {what}: {error_messages(res.errors)}"
        LOG.warning("reconcile %s", msg)
        summary.errors.append(msg)
        return False
    return True


def update_project_assignments(
    client: Any,
    account: Mapping[str, Any],
    project_assignments: Sequence[Mapping[str, Any]],
) -> ReconcileSummary:
    """Reconcile an account's assignments against `project_assignments`.

    `account` carries ``id`` and its loaded ``assignments`` (each with
    ``id``, ``projectId``, ``startDate``, ``endDate``). Every entry of
    `project_assignments` has ``projectId`` and ``startDate`` and optionally
    ``endDate``; the list is expected to hold one entry per project.
    """
    summary = ReconcileSummary()
    current = list(account.get("assignments") or [])
    desired_project_ids = {pa["projectId"] for pa in project_assignments}

    for assignment in current:
        if assignment["projectId"] in desired_project_ids:
            continue
        LOG.debug("deleting assignment %s (project %s)", assignment["id"], assignment["projectId"])
        res = client.project_assignments.delete(assignment["id"])
        if _record(summary, res, "delete assignment", assignment["id"]):
            summary.deleted += 1

    by_project = {a["projectId"]: a for a in current}
    for pa in project_assignments:
        start_date = pa["startDate"]
        end_date = _normalize_date(pa.get("endDate"))
        existing = by_project.get(pa["projectId"])

        if existing is not None:
            if existing.get("startDate") == start_date and _normalize_date(existing.get("endDate")) == end_date:
                continue
            LOG.debug("updating assignment %s (project %s)", existing["id"], pa["projectId"])
            res = client.project_assignments.update(existing["id"], startDate=start_date, endDate=end_date)
            if _record(summary, res, "update assignment", existing["id"]):
                summary.updated += 1
        else:
            LOG.debug("creating assignment for account %s on project %s", account["id"], pa["projectId"])
            res = client.project_assignments.create(
                accountId=account["id"],
                projectId=pa["projectId"],
                startDate=start_date,
                endDate=end_date,
            )
            if _record(summary, res, "create assignment for project", pa["projectId"]):
                summary.created += 1

    LOG.info(
        "reconciled assignments for account %s: %d deleted, %d updated, %d created, %d errors",
        account["id"], summary.deleted, summary.updated, summary.created, len(summary.errors),
    )
    return summary


def update_project_technology_links(
    client: Any,
    project: Mapping[str, Any],
    project_technology_ids: Sequence[str],
) -> ReconcileSummary:
    """Reconcile a project's technology links against `project_technology_ids`.

    `project` carries ``id`` and its loaded ``technologies`` link records
    (each with ``id`` and ``technologyId``).
    """
    summary = ReconcileSummary()
    links = list(project.get("technologies") or [])
    desired = set(project_technology_ids)
    current_tech_ids = {link["technologyId"] for link in links}

    for link in links:
        if link["technologyId"] in desired:
            continue
        LOG.debug("deleting technology link %s (technology %s)", link["id"], link["technologyId"])
        res = client.project_technology_links.delete(link["id"])
        if _record(summary, res, "delete technology link", link["id"]):
            summary.deleted += 1

    for tech_id in project_technology_ids:
        if tech_id in current_tech_ids:
            continue
        LOG.debug("linking technology %s to project %s", tech_id, project["id"])
        res = client.project_technology_links.create(projectId=project["id"], technologyId=tech_id)
        if _record(summary, res, "link technology", tech_id):
            summary.created += 1

    LOG.info(
        "reconciled technology links for project %s: %d deleted, %d created, %d errors",
        project["id"], summary.deleted, summary.created, len(summary.errors),
    )
    return summary


__all__ = ["ReconcileSummary", "update_project_assignments", "update_project_technology_links"]
