import pytest
from conftest import ScriptedRandom, parse_ts

TRANSFER = {
    "amount": 100,
    "recipientPhone": "+254712345678",
    "senderName": "Jane Doe",
    "senderEmail": "jane@example.com",
}

FORWARD = ["PENDING_GATEWAY", "GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT"]


def test_health(client):
    assert client.get("/healthz").json() == {"ok": True}
    assert client.get("/health").json() == {"status": "ok"}


def test_create_transfer(client):
    r = client.post("/v1/transfers", json=TRANSFER)
    assert r.status_code == 201
    body = r.json()

    assert body["status"] == "PENDING_GATEWAY"
    assert body["currency"] == "KES"
    assert body["amount"] == 100
    assert body["recipientPhone"] == "+254712345678"
    assert body["senderName"] == "Jane Doe"
    assert body["createdAt"] == body["updatedAt"]
    assert body["mpesaTransactionId"] is None


def test_create_transfer_without_sender_details(client):
    r = client.post("/v1/transfers", json={"amount": "75.50", "recipientPhone": "+254700000000"})
    assert r.status_code == 201
    assert r.json()["amount"] == 75.5


@pytest.mark.parametrize(
    "patch",
    [
        {"amount": -5},
        {"amount": 0},
        {"amount": 49.99},
        {"amount": "1e400"},
        {"amount": "123456789012.34"},
        {"recipientPhone": "0712345678"},
        {"recipientPhone": "+25471234567"},
        {"recipientPhone": "+2547123456789"},
        {"senderEmail": "not-an-email"},
        {"senderName": "J"},
    ],
)
def test_create_transfer_validation(client, patch):
    r = client.post("/v1/transfers", json=dict(TRANSFER, **patch))
    assert r.status_code == 422
    assert client.get("/v1/transfers").json() == []


def test_create_transfer_missing_fields(client):
    assert client.post("/v1/transfers", json={"amount": 100}).status_code == 422
    assert client.post("/v1/transfers", json={"recipientPhone": "+254712345678"}).status_code == 422


def test_get_and_list(client, scheduler):
    first = client.post("/v1/transfers", json=TRANSFER).json()
    scheduler.advance(0.5)
    second = client.post("/v1/transfers", json=TRANSFER).json()

    assert client.get(f"/v1/transfers/{first['id']}").json()["id"] == first["id"]
    assert [t["id"] for t in client.get("/v1/transfers").json()] == [second["id"], first["id"]]


def test_get_unknown(client):
    r = client.get("/v1/transfers/does-not-exist")
    assert r.status_code == 404
    assert r.json()["detail"] == "Transaction not found"


def test_statuses(client):
    statuses = client.get("/v1/transfers/statuses").json()
    assert [s["status"] for s in statuses][:3] == FORWARD
    completed = next(s for s in statuses if s["status"] == "COMPLETED")
    assert completed["terminal"] is True
    assert completed["label"] == "Transfer Completed"


def test_advance_endpoint(make_client):
    client = make_client(simulate_settlement=False)
    tid = client.post("/v1/transfers", json=TRANSFER).json()["id"]

    r = client.post(f"/v1/transfers/{tid}/status", json={"status": "GATEWAY_SUCCESSFUL"})
    assert r.status_code == 200
    assert r.json()["status"] == "GATEWAY_SUCCESSFUL"

    r = client.post(f"/v1/transfers/{tid}/status", json={"status": "COMPLETED"})
    assert r.status_code == 409
    assert "cannot move" in r.json()["detail"]

    r = client.post(f"/v1/transfers/{tid}/status", json={"status": "NOT_A_STATUS"})
    assert r.status_code == 422

    r = client.post("/v1/transfers/missing/status", json={"status": "GATEWAY_SUCCESSFUL"})
    assert r.status_code == 404


def test_simulation_can_be_disabled(make_client, scheduler):
    client = make_client(simulate_settlement=False)
    tid = client.post("/v1/transfers", json=TRANSFER).json()["id"]
    scheduler.advance(60)
    assert client.get(f"/v1/transfers/{tid}").json()["status"] == "PENDING_GATEWAY"


def test_cancel_simulation(client, scheduler):
    tid = client.post("/v1/transfers", json=TRANSFER).json()["id"]
    assert client.post(f"/v1/transfers/{tid}/cancel-simulation").json() == {"canceled": True}
    assert client.post(f"/v1/transfers/{tid}/cancel-simulation").json() == {"canceled": False}
    scheduler.advance(60)
    assert client.get(f"/v1/transfers/{tid}").json()["status"] == "PENDING_GATEWAY"
    assert client.post("/v1/transfers/missing/cancel-simulation").status_code == 404


@pytest.mark.parametrize("draw, final", [(0.42, "COMPLETED"), (0.97, "FAILED_SETTLEMENT")])
def test_transfer_settles_end_to_end(make_client, scheduler, draw, final):
    client = make_client(ScriptedRandom([draw]))
    created = client.post(
        "/v1/transfers", json={"amount": 100, "recipientPhone": "+254712345678"}
    ).json()
    tid = created["id"]
    assert created["status"] == "PENDING_GATEWAY"

    statuses = [created["status"]]
    stamps = [parse_ts(created["updatedAt"])]
    for _ in range(12):
        scheduler.advance(1)
        current = client.get(f"/v1/transfers/{tid}").json()
        if current["status"] != statuses[-1]:
            statuses.append(current["status"])
            stamps.append(parse_ts(current["updatedAt"]))

    assert statuses == FORWARD + [final]
    assert all(a < b for a, b in zip(stamps, stamps[1:]))

    done = client.get(f"/v1/transfers/{tid}").json()
    assert (done["mpesaTransactionId"] is not None) == (final == "COMPLETED")

    scheduler.advance(120)
    assert client.get(f"/v1/transfers/{tid}").json() == done
