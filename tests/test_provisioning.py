from staffing.core.config import settings
from staffing.core.db import init_db, get_connection
from staffing.repo.schema import create_tables
from staffing.repo.client import DataClient, Result
from staffing.pipeline.provisioning import ensure_account_for_identity


def test_creates_account_once_per_email(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    init_db()
    conn = get_connection()
    try:
        create_tables(conn)
        client = DataClient(conn)

        account = ensure_account_for_identity(client, "ana@example.com", "sub-1", "ana")
        assert account["name"] == "ana@example.com"
        assert account["owner"] == "sub-1::ana"
        assert account["organizationLine"] == "" and account["residence"] == ""

        again = ensure_account_for_identity(client, "ana@example.com", "sub-1", "ana", name="Ana")
        assert again["id"] == account["id"]
        assert len(client.accounts.list().data) == 1
    finally:
        conn.close()


def test_lookup_errors_return_none():
    class BrokenClient:
        def list_account_by_email(self, email):
            return Result([], [{"message": "unavailable"}])

    assert ensure_account_for_identity(BrokenClient(), "x@example.com", "s", "u") is None
