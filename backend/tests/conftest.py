import pytest
from fastapi.testclient import TestClient

from backend import db
from backend.app.main import app


@pytest.fixture()
def client(tmp_path, monkeypatch):
    # isolated database file per test
    monkeypatch.setenv('ZPM_DB_PATH', str(tmp_path / 'zpm_test.db'))
    db.init_db()
    with TestClient(app) as c:
        yield c
