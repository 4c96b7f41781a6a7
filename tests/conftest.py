import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import security
from main import app


@pytest.fixture
def mongo(monkeypatch):
    fake_db = mongomock.MongoClient()["coin_ledger_test"]
    monkeypatch.setattr(database, "db", fake_db)
    monkeypatch.setattr(security, "_admin_seeded", False)
    return fake_db


@pytest.fixture
def client(mongo):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(client):
    resp = client.post(
        "/auth/login",
        json={"email": security.ADMIN_EMAIL, "password": security.ADMIN_PASSWORD},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def user_headers(client):
    resp = client.post(
        "/auth/register",
        json={"email": "player@coinroom.io", "password": "secret123", "name": "Player"},
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}
