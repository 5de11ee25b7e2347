from staffing.core.config import settings
from staffing.core.db import init_db, get_connection
from staffing.repo import schema


def test_init_db_creates_file_and_tables(tmp_path, monkeypatch):
    # point DB_PATH to a temp file in a directory that does not exist yet
    temp_db = tmp_path / "nested" / "test.db"
    monkeypatch.setattr(settings, "DB_PATH", str(temp_db))

    init_db()
    assert temp_db.exists()

    conn = get_connection()
    try:
        schema.create_tables(conn)
        # running the DDL twice must be harmless
        schema.create_tables(conn)

        cur = conn.cursor()
        for table in (
            "accounts",
            "projects",
            "project_technologies",
            "project_assignments",
            "project_technology_links",
        ):
            cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,))
            assert cur.fetchone() is not None, table

        cur.execute("SELECT name FROM sqlite_master WHERE type='index' AND name='accounts_email_idx'")
        assert cur.fetchone() is not None
    finally:
        conn.close()
