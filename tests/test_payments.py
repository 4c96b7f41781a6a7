import pytest

import database
from totals import compute_totals
from utils import today_str


def add_payment(client, amount, method, **extra):
    resp = client.post("/payments", json={"amount": amount, "method": method, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_payment_rounds_amount_and_updates_totals(client):
    data = add_payment(client, 19.999, "paypal")

    assert data["ok"] is True
    assert data["payment"]["amount"] == 20.0
    assert data["payment"]["method"] == "paypal"
    assert data["payment"]["note"] is None
    assert data["payment"]["date"] == today_str()
    assert data["payment"]["id"]
    assert data["totals"] == {"cashapp": 0.0, "paypal": 20.0, "chime": 0.0}
    assert client.get("/totals").json()["paypal"] == 20.0


@pytest.mark.parametrize("amount", [0, -5, "abc", None, True, "", [10]])
def test_create_payment_rejects_invalid_amount(client, amount):
    resp = client.post("/payments", json={"amount": amount, "method": "cashapp"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid amount"}
    assert client.get("/payments").json() == []


def test_create_payment_rejects_amount_that_rounds_to_zero(client):
    resp = client.post("/payments", json={"amount": 0.001, "method": "cashapp"})

    assert resp.status_code == 400


def test_create_payment_accepts_numeric_string(client):
    data = add_payment(client, "12.5", "chime")

    assert data["payment"]["amount"] == 12.5


def test_create_payment_rejects_unknown_method(client):
    resp = client.post("/payments", json={"amount": 10, "method": "venmo"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid method"}
    assert client.get("/totals").json() == {"cashapp": 0.0, "paypal": 0.0, "chime": 0.0}


def test_invalid_date_falls_back_to_today(client):
    data = add_payment(client, 5, "cashapp", date="2025-13-45")

    assert data["payment"]["date"] == today_str()


def test_created_payment_reads_back_by_date(client):
    created = add_payment(client, 42.4242, "cashapp", date="2025-03-01", note="table 4")["payment"]
    add_payment(client, 1, "cashapp", date="2025-03-02")

    listed = client.get("/payments", params={"date": "2025-03-01"}).json()

    assert len(listed) == 1
    assert listed[0]["id"] == created["id"]
    assert listed[0]["amount"] == 42.42
    assert listed[0]["method"] == "cashapp"
    assert listed[0]["date"] == "2025-03-01"
    assert listed[0]["note"] == "table 4"


def test_list_payments_in_creation_order(client):
    ids = [add_payment(client, n, "chime")["payment"]["id"] for n in (1, 2, 3)]

    assert [p["id"] for p in client.get("/payments").json()] == ids


def test_update_moves_amount_between_methods(client):
    add_payment(client, 7, "paypal")
    payment = add_payment(client, 10, "cashapp")["payment"]
    before = client.get("/totals").json()

    resp = client.put(f"/payments/{payment['id']}", json={"method": "chime"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["payment"]["method"] == "chime"
    assert data["payment"]["amount"] == 10.0
    assert data["totals"]["cashapp"] == before["cashapp"] - 10
    assert data["totals"]["chime"] == before["chime"] + 10
    assert data["totals"]["paypal"] == before["paypal"]


def test_update_amount_same_method(client):
    payment = add_payment(client, 10, "cashapp")["payment"]

    data = client.put(f"/payments/{payment['id']}", json={"amount": 25.5}).json()

    assert data["payment"]["amount"] == 25.5
    assert data["totals"]["cashapp"] == 25.5


def test_update_note_semantics(client):
    payment = add_payment(client, 10, "cashapp", note="first")["payment"]

    kept = client.put(f"/payments/{payment['id']}", json={"amount": 11}).json()["payment"]
    assert kept["note"] == "first"

    changed = client.put(f"/payments/{payment['id']}", json={"note": "second"}).json()["payment"]
    assert changed["note"] == "second"

    cleared = client.put(f"/payments/{payment['id']}", json={"note": ""}).json()["payment"]
    assert cleared["note"] is None


def test_update_with_invalid_values_changes_nothing(client):
    payment = add_payment(client, 10, "cashapp")["payment"]

    resp = client.put(f"/payments/{payment['id']}", json={"amount": 20, "method": "venmo"})

    assert resp.status_code == 400
    stored = client.get("/payments").json()[0]
    assert stored["amount"] == 10.0
    assert stored["method"] == "cashapp"
    assert client.get("/totals").json()["cashapp"] == 10.0


def test_update_missing_payment_is_404(client):
    resp = client.put("/payments/nope", json={"amount": 5})

    assert resp.status_code == 404
    assert resp.json() == {"message": "Payment not found"}


def test_delete_payment_subtracts_from_totals(client):
    keep = add_payment(client, 3, "paypal")["payment"]
    drop = add_payment(client, 4.5, "paypal")["payment"]

    resp = client.delete(f"/payments/{drop['id']}")

    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["removed"]["id"] == drop["id"]
    assert data["totals"]["paypal"] == 3.0
    assert [p["id"] for p in client.get("/payments").json()] == [keep["id"]]


def test_delete_missing_payment_leaves_totals(client):
    add_payment(client, 8, "chime")
    before = client.get("/totals").json()

    resp = client.delete("/payments/does-not-exist")

    assert resp.status_code == 404
    assert client.get("/totals").json() == before


def test_reset_clears_everything(client):
    add_payment(client, 8, "chime")
    add_payment(client, 2, "cashapp")

    resp = client.post("/reset")

    assert resp.json() == {"ok": True, "totals": {"cashapp": 0.0, "paypal": 0.0, "chime": 0.0}}
    assert client.get("/payments").json() == []
    assert client.get("/totals").json() == {"cashapp": 0.0, "paypal": 0.0, "chime": 0.0}


def test_recalc_repairs_drift_and_is_idempotent(client, mongo):
    add_payment(client, 8, "chime")
    add_payment(client, 2.25, "cashapp")
    mongo["totals"].update_one({"_id": "totals"}, {"$set": {"chime_cents": 1, "paypal_cents": 999}})

    first = client.post("/recalc").json()
    second = client.post("/recalc").json()

    assert first == {"ok": True, "totals": {"cashapp": 2.25, "paypal": 0.0, "chime": 8.0}}
    assert second == first
    assert client.get("/totals").json() == first["totals"]


def test_incremental_totals_match_recomputation(client):
    a = add_payment(client, 10.1, "cashapp")["payment"]
    b = add_payment(client, 0.2, "paypal")["payment"]
    c = add_payment(client, 33.333, "chime")["payment"]
    add_payment(client, 5, "cashapp")
    client.put(f"/payments/{a['id']}", json={"method": "paypal", "amount": 7.77})
    client.put(f"/payments/{b['id']}", json={"amount": 0.3})
    client.delete(f"/payments/{c['id']}")
    add_payment(client, 19.999, "chime")

    incremental = client.get("/totals").json()
    stored = client.get("/payments").json()

    assert incremental == compute_totals(stored)
    assert incremental == client.post("/recalc").json()["totals"]


def test_storage_unavailable_returns_500(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)

    resp = client.get("/totals")

    assert resp.status_code == 500
    assert resp.json() == {"message": "Storage failure"}


@pytest.mark.parametrize("amount", [1e308, 1e17, 1_000_000_000.01])
def test_create_payment_rejects_huge_amount(client, amount):
    resp = client.post("/payments", json={"amount": amount, "method": "cashapp"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid amount"}
    assert client.get("/payments").json() == []
    assert client.get("/totals").json() == {"cashapp": 0.0, "paypal": 0.0, "chime": 0.0}


def test_update_payment_rejects_huge_amount(client):
    payment = add_payment(client, 10, "cashapp")["payment"]

    resp = client.put(f"/payments/{payment['id']}", json={"amount": 1e308})

    assert resp.status_code == 400
    assert client.get("/totals").json()["cashapp"] == 10.0
