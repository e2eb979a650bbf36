import pytest

from conftest import HOSPITAL_FAR, CramMd5SMTP
from services import notification_service, order_service


def place_order(client, headers, to_hospital_id, **extra):
    payload = {"medicineName": "Paracetamol", "quantity": 10, "toHospitalId": to_hospital_id, **extra}
    response = client.post("/api/orders/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def reputation(client, hospital_id):
    return client.get(f"/api/hospitals/{hospital_id}").json()["data"]["reputation"]


def test_create_order_is_pending(client, hospital_a, hospital_b):
    a_id, _ = hospital_a
    b_id, b_headers = hospital_b

    order = place_order(client, b_headers, a_id)

    assert order["status"] == "pending"
    assert order["fromHospitalId"] == b_id
    assert order["toHospitalId"] == a_id
    assert order["emergency"] is False
    assert client.get(f"/api/orders/{order['id']}").json()["data"]["id"] == order["id"]


def test_order_to_unknown_hospital_is_not_persisted(client, hospital_b):
    _, headers = hospital_b

    response = client.post("/api/orders/", headers=headers, json={
        "medicineName": "Paracetamol", "quantity": 10, "toHospitalId": "HOSP-MISSING"
    })

    assert response.status_code == 404
    assert response.json()["message"] == "Destination hospital not found"
    assert client.get("/api/orders/").json()["results"] == 0


def test_order_validation(client, hospital_a, hospital_b):
    a_id, _ = hospital_a
    _, headers = hospital_b
    response = client.post("/api/orders/", headers=headers, json={"medicineName": "Paracetamol", "toHospitalId": a_id})
    assert response.status_code == 400
    zero = client.post("/api/orders/", headers=headers, json={
        "medicineName": "Paracetamol", "quantity": 0, "toHospitalId": a_id
    })
    assert zero.status_code == 400


def test_receiver_completing_order_credits_reputation_once(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)

    response = client.put(f"/api/orders/{order['id']}/status", headers=a_headers, json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "completed"
    assert reputation(client, a_id) == 1


def test_only_participants_change_status(client, register, hospital_a, hospital_b):
    a_id, _ = hospital_a
    _, b_headers = hospital_b
    _, outsider_headers = register(HOSPITAL_FAR)
    order = place_order(client, b_headers, a_id)

    response = client.put(f"/api/orders/{order['id']}/status", headers=outsider_headers, json={"status": "cancelled"})

    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to update this order"
    assert client.get(f"/api/orders/{order['id']}").json()["data"]["status"] == "pending"


def test_sender_can_cancel(client, hospital_a, hospital_b):
    a_id, _ = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)

    response = client.put(f"/api/orders/{order['id']}/status", headers=b_headers, json={"status": "cancelled"})

    assert response.json()["data"]["status"] == "cancelled"
    assert reputation(client, a_id) == 0


def test_invalid_status_rejected(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)

    response = client.put(f"/api/orders/{order['id']}/status", headers=a_headers, json={"status": "shipped"})

    assert response.status_code == 400
    assert client.get(f"/api/orders/{order['id']}").json()["data"]["status"] == "pending"


def test_pending_to_pending_is_a_no_op(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)

    response = client.put(f"/api/orders/{order['id']}/status", headers=a_headers, json={"status": "pending"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "pending"


@pytest.mark.parametrize("final", ["completed", "cancelled"])
def test_terminal_orders_reject_further_transitions(client, hospital_a, hospital_b, final):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)
    client.put(f"/api/orders/{order['id']}/status", headers=a_headers, json={"status": final})

    for target in ("pending", "completed", "cancelled"):
        response = client.put(f"/api/orders/{order['id']}/status", headers=a_headers, json={"status": target})
        assert response.status_code == 400
        assert response.json()["message"] == f"Order is already {final}"

    assert client.get(f"/api/orders/{order['id']}").json()["data"]["status"] == final
    assert reputation(client, a_id) == (1 if final == "completed" else 0)


def test_blockchain_completion(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)
    tx_hash = "0x" + "ab" * 32

    response = client.put(f"/api/orders/{order['id']}/complete", headers=a_headers, json={
        "transactionHash": tx_hash, "nftCertificateId": "42"
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["transactionHash"] == tx_hash
    assert data["nftCertificateId"] == "42"
    assert reputation(client, a_id) == 1


def test_blockchain_completion_twice_credits_once(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)
    body = {"transactionHash": "0x" + "cd" * 32}

    first = client.put(f"/api/orders/{order['id']}/complete", headers=a_headers, json=body)
    second = client.put(f"/api/orders/{order['id']}/complete", headers=a_headers, json=body)

    assert first.status_code == 200
    assert second.status_code == 400
    assert reputation(client, a_id) == 1


def test_blockchain_completion_requires_receiver_and_hash(client, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    _, b_headers = hospital_b
    order = place_order(client, b_headers, a_id)

    by_sender = client.put(f"/api/orders/{order['id']}/complete", headers=b_headers, json={"transactionHash": "0x1"})
    no_hash = client.put(f"/api/orders/{order['id']}/complete", headers=a_headers, json={})
    unknown = client.put("/api/orders/ORD-MISSING/complete", headers=a_headers, json={"transactionHash": "0x1"})

    assert by_sender.status_code == 403
    assert no_hash.status_code == 400
    assert unknown.status_code == 404
    assert reputation(client, a_id) == 0


def test_emergency_order(client, register, hospital_a, hospital_b):
    a_id, _ = hospital_a
    _, b_headers = hospital_b
    register(HOSPITAL_FAR)

    response = client.post("/api/orders/emergency", headers=b_headers, json={
        "medicineName": "Insulin", "quantity": 5, "toHospitalId": a_id
    })

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["emergency"] is True
    assert data["status"] == "pending"


def test_emergency_order_triggers_broadcast(client, register, hospital_a, hospital_b, monkeypatch):
    a_id, _ = hospital_a
    b_id, b_headers = hospital_b
    register(HOSPITAL_FAR)
    calls = []

    async def fake_broadcast(db, order, requester):
        calls.append((order["_id"], requester["_id"]))
        return []

    monkeypatch.setattr(order_service, "broadcast_emergency", fake_broadcast)

    emergency = place_order(client, b_headers, a_id, emergency=True)
    place_order(client, b_headers, a_id)

    assert calls == [(emergency["id"], b_id)]


def test_my_orders(client, register, hospital_a, hospital_b):
    a_id, a_headers = hospital_a
    b_id, b_headers = hospital_b
    far_id, far_headers = register(HOSPITAL_FAR)
    sent = place_order(client, b_headers, a_id)
    received = place_order(client, a_headers, b_id)
    place_order(client, far_headers, a_id)

    mine = client.get("/api/orders/my-orders", headers=b_headers).json()

    assert mine["results"] == 2
    assert {o["id"] for o in mine["data"]} == {sent["id"], received["id"]}
    assert client.get("/api/orders/").json()["results"] == 3


def test_emergency_order_survives_mail_failure(client, hospital_a, hospital_b, monkeypatch):
    a_id, _ = hospital_a
    _, b_headers = hospital_b
    monkeypatch.setattr(notification_service, "SENDER_EMAIL", "sos@mediledger.com")
    monkeypatch.setattr(notification_service, "SENDER_PASSWORD", None)
    monkeypatch.setattr(notification_service.smtplib, "SMTP", CramMd5SMTP)

    response = client.post("/api/orders/emergency", headers=b_headers, json={
        "medicineName": "Insulin", "quantity": 5, "toHospitalId": a_id
    })

    assert response.status_code == 201
    assert client.get("/api/orders/").json()["results"] == 1


def test_emergency_order_survives_broadcast_failure(client, hospital_a, hospital_b, monkeypatch):
    a_id, _ = hospital_a
    _, b_headers = hospital_b

    async def failing_broadcast(db, order, requester):
        raise ConnectionError("hospital lookup timed out")

    monkeypatch.setattr(order_service, "broadcast_emergency", failing_broadcast)

    response = client.post("/api/orders/emergency", headers=b_headers, json={
        "medicineName": "Insulin", "quantity": 5, "toHospitalId": a_id
    })

    assert response.status_code == 201
    orders = client.get("/api/orders/").json()
    assert orders["results"] == 1
    assert orders["data"][0]["id"] == response.json()["data"]["id"]
