import itertools

import pytest

from staffing.repo.client import Result
from staffing.pipeline.reconcile import update_project_assignments, update_project_technology_links


class FakeModel:
    """In-memory model client that records every write call."""

    def __init__(self, calls, name, fail_on=()):
        self.calls = calls
        self.name = name
        self.rows = {}
        self.fail_on = set(fail_on)
        self._ids = itertools.count(1)

    def seed(self, **fields):
        rid = f"{self.name}-{next(self._ids)}"
        self.rows[rid] = dict(fields, id=rid)
        return self.rows[rid]

    def list(self, **filters):
        return Result([r for r in self.rows.values() if all(r.get(k) == v for k, v in filters.items())])

    def create(self, **fields):
        self.calls.append(("create", fields))
        if "create" in self.fail_on:
            return Result(None, [{"message": "boom"}])
        return Result(self.seed(**fields))

    def update(self, id, **fields):
        self.calls.append(("update", id, fields))
        if "update" in self.fail_on:
            return Result(None, [{"message": "boom"}])
        self.rows[id].update(fields)
        return Result(self.rows[id])

    def delete(self, id):
        self.calls.append(("delete", id))
        if "delete" in self.fail_on:
            return Result(None, [{"message": "boom"}])
        return Result(self.rows.pop(id))


class FakeClient:
    def __init__(self, fail_on=()):
        self.calls = []
        self.project_assignments = FakeModel(self.calls, "pa", fail_on)
        self.project_technology_links = FakeModel(self.calls, "link", fail_on)


def _account(client, *assignments):
    rows = [client.project_assignments.seed(accountId="acc-1", **a) for a in assignments]
    return {"id": "acc-1", "assignments": rows}


def _reload_account(client):
    return {"id": "acc-1", "assignments": client.project_assignments.list(accountId="acc-1").data}


def _project(client, *tech_ids):
    links = [client.project_technology_links.seed(projectId="prj-1", technologyId=t) for t in tech_ids]
    return {"id": "prj-1", "technologies": links}


def _reload_project(client):
    return {"id": "prj-1", "technologies": client.project_technology_links.list(projectId="prj-1").data}


def test_changed_start_date_issues_single_update():
    client = FakeClient()
    account = _account(client, {"projectId": "p1", "startDate": "2024-01-01", "endDate": None})
    assignment_id = account["assignments"][0]["id"]

    summary = update_project_assignments(client, account, [{"projectId": "p1", "startDate": "2024-06-01"}])

    assert client.calls == [("update", assignment_id, {"startDate": "2024-06-01", "endDate": None})]
    assert summary.updated == 1 and summary.ok


def test_end_date_change_updates_only_that_assignment():
    client = FakeClient()
    account = _account(
        client,
        {"projectId": "p1", "startDate": "2024-01-01", "endDate": None},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": None},
        {"projectId": "p3", "startDate": "2024-01-01", "endDate": "2024-12-31"},
    )
    p2_id = account["assignments"][1]["id"]
    desired = [
        {"projectId": "p1", "startDate": "2024-01-01"},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": "2024-08-31"},
        {"projectId": "p3", "startDate": "2024-01-01", "endDate": "2024-12-31"},
    ]

    summary = update_project_assignments(client, account, desired)

    assert client.calls == [("update", p2_id, {"startDate": "2024-01-01", "endDate": "2024-08-31"})]
    assert (summary.deleted, summary.updated, summary.created) == (0, 1, 0)
    assert summary.ok


def test_empty_desired_list_deletes_assignment():
    client = FakeClient()
    account = _account(client, {"projectId": "p1", "startDate": "2024-01-01", "endDate": None})

    summary = update_project_assignments(client, account, [])

    assert client.calls == [("delete", account["assignments"][0]["id"])]
    assert summary.deleted == 1


def test_new_project_issues_single_create_bound_to_account():
    client = FakeClient()
    account = _account(client)

    update_project_assignments(client, account, [{"projectId": "p2", "startDate": "2024-01-01"}])

    assert client.calls == [
        ("create", {"accountId": "acc-1", "projectId": "p2", "startDate": "2024-01-01", "endDate": None})
    ]


def test_removals_come_before_updates_and_creates_in_desired_order():
    client = FakeClient()
    account = _account(
        client,
        {"projectId": "p1", "startDate": "2024-01-01", "endDate": None},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": None},
    )
    desired = [
        {"projectId": "p3", "startDate": "2024-03-01"},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": "2024-12-31"},
        {"projectId": "p4", "startDate": "2024-04-01"},
    ]

    update_project_assignments(client, account, desired)

    kinds = [(c[0], c[-1].get("projectId") if isinstance(c[-1], dict) else c[1]) for c in client.calls]
    assert [k for k, _ in kinds] == ["delete", "create", "update", "create"]
    assert kinds[1][1] == "p3" and kinds[3][1] == "p4"


def test_assignment_key_set_matches_desired_and_second_run_is_noop():
    client = FakeClient()
    account = _account(
        client,
        {"projectId": "p1", "startDate": "2024-01-01", "endDate": None},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": "2024-06-30"},
        {"projectId": "p3", "startDate": "2024-01-01", "endDate": None},
    )
    desired = [
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": "2024-09-30"},
        {"projectId": "p3", "startDate": "2024-01-01"},
        {"projectId": "p5", "startDate": "2024-05-01", "endDate": ""},
    ]

    update_project_assignments(client, account, desired)
    reloaded = _reload_account(client)
    assert {a["projectId"] for a in reloaded["assignments"]} == {"p2", "p3", "p5"}
    by_project = {a["projectId"]: a for a in reloaded["assignments"]}
    assert by_project["p2"]["endDate"] == "2024-09-30"

    client.calls.clear()
    summary = update_project_assignments(client, reloaded, desired)
    assert client.calls == []
    assert (summary.deleted, summary.updated, summary.created) == (0, 0, 0)


@pytest.mark.parametrize(
    "current, desired, kind, count",
    [
        (["p1", "p2", "p3"], ["p2"], "delete", 2),
        (["p1"], ["p1", "p2", "p3"], "create", 2),
    ],
)
def test_subset_and_superset_changes_issue_one_kind_of_call(current, desired, kind, count):
    client = FakeClient()
    account = _account(client, *({"projectId": p, "startDate": "2024-01-01", "endDate": None} for p in current))

    update_project_assignments(client, account, [{"projectId": p, "startDate": "2024-01-01"} for p in desired])

    assert [c[0] for c in client.calls] == [kind] * count


def test_store_errors_are_collected_and_loop_continues():
    client = FakeClient(fail_on={"delete"})
    account = _account(
        client,
        {"projectId": "p1", "startDate": "2024-01-01", "endDate": None},
        {"projectId": "p2", "startDate": "2024-01-01", "endDate": None},
    )

    summary = update_project_assignments(client, account, [{"projectId": "p9", "startDate": "2024-01-01"}])

    assert len(summary.errors) == 2
    assert all("boom" in e for e in summary.errors)
    assert summary.created == 1
    assert not summary.ok


def test_client_exception_stops_the_loop():
    class Exploding(FakeClient):
        def __init__(self):
            super().__init__()
            original = self.project_assignments.create

            def create(**fields):
                if fields["projectId"] == "p2":
                    raise ConnectionError("network down")
                return original(**fields)

            self.project_assignments.create = create

    client = Exploding()
    account = _account(client)
    desired = [{"projectId": p, "startDate": "2024-01-01"} for p in ("p1", "p2", "p3")]

    with pytest.raises(ConnectionError):
        update_project_assignments(client, account, desired)
    assert [c[1]["projectId"] for c in client.calls] == ["p1"]


def test_technology_links_are_deleted_and_created():
    client = FakeClient()
    project = _project(client, "t1", "t2")

    summary = update_project_technology_links(client, project, ["t2", "t3"])

    assert [c[0] for c in client.calls] == ["delete", "create"]
    assert client.calls[0][1] == project["technologies"][0]["id"]
    assert client.calls[1][1] == {"projectId": "prj-1", "technologyId": "t3"}
    assert (summary.deleted, summary.created) == (1, 1)

    reloaded = _reload_project(client)
    assert {link["technologyId"] for link in reloaded["technologies"]} == {"t2", "t3"}

    client.calls.clear()
    update_project_technology_links(client, reloaded, ["t2", "t3"])
    assert client.calls == []


def test_technology_links_have_no_update_path():
    client = FakeClient()
    project = _project(client, "t1")

    update_project_technology_links(client, project, ["t1"])
    update_project_technology_links(client, project, [])

    assert [c[0] for c in client.calls] == ["delete"]
