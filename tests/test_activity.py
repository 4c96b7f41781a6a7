import pytest


@pytest.fixture
def game(client):
    return client.post("/games", json={"name": "Pac-Man"}).json()


def record(client, **body):
    resp = client.post("/activities", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_record_activity_against_game(client, game):
    entry = record(client, username="ann", type="deposit", amount=12, gameId=game["id"], date="2025-04-02")

    assert entry["username"] == "ann"
    assert entry["gameName"] == "Pac-Man"
    assert entry["amount"] == 12
    assert entry["date"] == "2025-04-02"


def test_record_activity_validation(client):
    assert client.post("/activities", json={"username": "", "type": "deposit", "amount": 1}).status_code == 400
    assert client.post("/activities", json={"username": "ann", "type": "bonus", "amount": 1}).status_code == 400
    assert client.post("/activities", json={"username": "ann", "type": "redeem", "amount": -1}).status_code == 400
    assert client.post("/activities", json={"username": "ann", "type": "redeem", "amount": 1, "gameId": 404}).status_code == 404


def test_list_activity_filters(client):
    record(client, username="ann", type="deposit", amount=1, date="2025-01-01")
    record(client, username="ann", type="freeplay", amount=2, date="2025-01-05")
    record(client, username="bob", type="deposit", amount=3, date="2025-01-10")

    assert [r["amount"] for r in client.get("/activities").json()] == [3, 2, 1]
    assert [r["amount"] for r in client.get("/activities", params={"username": "ann"}).json()] == [2, 1]
    assert [r["amount"] for r in client.get("/activities", params={"type": "deposit"}).json()] == [3, 1]
    window = client.get("/activities", params={"dateFrom": "2025-01-02", "dateTo": "2025-01-09"}).json()
    assert [r["amount"] for r in window] == [2]


def test_activity_summary(client):
    record(client, username="ann", type="deposit", amount=10)
    record(client, username="ann", type="deposit", amount=5)
    record(client, username="bob", type="redeem", amount=7)

    summary = client.get("/activities/summary").json()

    assert summary == [
        {"username": "ann", "totalDeposit": 15.0, "totalRedeem": 0.0, "totalFreeplay": 0.0},
        {"username": "bob", "totalDeposit": 0.0, "totalRedeem": 7.0, "totalFreeplay": 0.0},
    ]


def test_admin_edits_and_deletes_activity(client, admin_headers):
    entry = record(client, username="ann", type="deposit", amount=10, note="cash")

    edited = client.put(f"/activities/{entry['id']}", json={"amount": 12, "note": None}, headers=admin_headers)
    assert edited.status_code == 200
    assert edited.json()["amount"] == 12
    assert edited.json()["note"] is None
    assert edited.json()["type"] == "deposit"

    removed = client.delete(f"/activities/{entry['id']}", headers=admin_headers)
    assert removed.status_code == 200
    assert client.get("/activities").json() == []
    assert client.delete(f"/activities/{entry['id']}", headers=admin_headers).status_code == 404


def test_activity_edits_require_admin(client, user_headers):
    entry = record(client, username="ann", type="deposit", amount=10)

    assert client.put(f"/activities/{entry['id']}", json={"amount": 1}).status_code == 401
    assert client.delete(f"/activities/{entry['id']}", headers=user_headers).status_code == 403
