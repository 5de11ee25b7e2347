from fastapi.testclient import TestClient

from main import app
from staffing.core.config import settings


def test_health_and_routers_mounted(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/accounts").json() == {"accounts": []}
    assert client.get("/projects").json() == {"projects": []}
    assert client.get("/project-technologies").json() == {"projectTechnologies": []}
