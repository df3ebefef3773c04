import uuid
from datetime import date, timedelta
from decimal import Decimal

from fastapi.testclient import TestClient

from staybook.auth import create_access_token
from staybook.main import app


client = TestClient(app)

ADMIN = {"Authorization": f"Bearer {create_access_token('admin-2', role='admin')}"}
PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 32


def _auth():
    token = create_access_token(f"cust-{uuid.uuid4().hex[:8]}", phone="+919800000002", name="Guest")
    return {"Authorization": f"Bearer {token}"}


def _booking(headers, offset: int = 30):
    r = client.post("/properties", headers=ADMIN, json={
        "name": "Lakeview", "location": "Lake Rd", "base_price_per_night": "2000",
        "per_head_price": "200", "cleaning_fee": "100", "service_fee": "50", "max_guests": 10,
    })
    assert r.status_code == 200, r.text
    day = (date.today() + timedelta(days=offset)).isoformat()
    r = client.post("/bookings", headers=headers, json={"property_id": r.json()["id"], "check_in": day, "check_out": day, "num_guests": 4})
    assert r.status_code == 200, r.text
    return r.json()


def _upload(headers, booking_id: str, n: int = 2, ctype: str = "image/png"):
    files = [("files", (f"id{i}.png", PNG, ctype)) for i in range(n)]
    return client.post(f"/bookings/{booking_id}/id-proofs", headers=headers, files=files)


def test_id_proof_upload_and_approval_advances_stage(blob_store):
    h = _auth()
    b = _booking(h)
    r = _upload(h, b["id"])
    assert r.status_code == 200, r.text
    body = r.json()
    assert len(body["id_proofs"]) == 2
    assert body["stage"] == "awaiting_id_approval"
    assert all(url.startswith("memory://blobs/id_proofs/") for url in body["id_proofs"])
    assert any(key.startswith(f"id_proofs/{b['id']}/") for key in blob_store.objects)

    r = client.post(f"/bookings/{b['id']}/verify", headers=ADMIN, json={"status": "approved"})
    assert r.status_code == 200, r.text
    assert r.json()["verification_status"] == "approved"
    assert r.json()["stage"] == "awaiting_payment"


def test_id_proof_needs_minimum_count():
    h = _auth()
    b = _booking(h)
    r = _upload(h, b["id"], n=1)
    assert r.status_code == 400
    assert r.json()["field"] == "files"


def test_id_proof_rejects_other_file_types():
    h = _auth()
    b = _booking(h)
    r = _upload(h, b["id"], ctype="text/plain")
    assert r.status_code == 400
    assert r.json()["detail"] == "Only image or PDF files are allowed"


def test_repeated_approval_is_accepted():
    h = _auth()
    b = _booking(h)
    _upload(h, b["id"])
    first = client.post(f"/bookings/{b['id']}/verify", headers=ADMIN, json={"status": "approved"})
    assert first.status_code == 200, first.text
    second = client.post(f"/bookings/{b['id']}/verify", headers=ADMIN, json={"status": "approved"})
    assert second.status_code == 200, second.text
    assert second.json()["verification_status"] == "approved"
    assert second.json()["stage"] == first.json()["stage"] == "awaiting_payment"


def test_reupload_after_rejection_resets_to_pending():
    h = _auth()
    b = _booking(h)
    _upload(h, b["id"])
    r = client.post(f"/bookings/{b['id']}/verify", headers=ADMIN, json={"status": "rejected"})
    assert r.json()["stage"] == "id_rejected"
    r = _upload(h, b["id"])
    assert r.status_code == 200
    assert r.json()["verification_status"] == "pending"
    assert len(r.json()["id_proofs"]) == 4


def test_submit_payment_before_approval_rejected():
    h = _auth()
    b = _booking(h)
    r = client.post("/payments/submit", headers=h, data={"booking_id": b["id"], "amount": "1475", "reference_id": "UTR1"})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("ID proof not approved yet")
    r = client.get(f"/bookings/{b['id']}", headers=h)
    assert Decimal(r.json()["advance_paid"]) == 0
    assert r.json()["manual_reference"] is None


def test_cancel_confirmed_then_cancel_again():
    h = _auth()
    b = _booking(h)
    assert client.post(f"/bookings/{b['id']}/confirm", headers=ADMIN).status_code == 200
    r = client.post(f"/bookings/{b['id']}/cancel", headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"
    assert r.json()["stage"] == "cancelled"
    r = client.post(f"/bookings/{b['id']}/cancel", headers=h)
    assert r.status_code == 400
    assert r.json()["detail"] == "Booking cannot be cancelled"
    assert r.json()["code"] == "invalid_transition"


def test_completed_booking_is_terminal():
    h = _auth()
    b = _booking(h)
    client.post(f"/bookings/{b['id']}/confirm", headers=ADMIN)
    r = client.post(f"/bookings/{b['id']}/complete", headers=ADMIN)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    r = client.post(f"/bookings/{b['id']}/cancel", headers=h)
    assert r.status_code == 400
    r = client.post(f"/bookings/{b['id']}/cancel", headers=ADMIN)
    assert r.status_code == 400


def test_confirm_only_from_pending():
    h = _auth()
    b = _booking(h)
    assert client.post(f"/bookings/{b['id']}/confirm", headers=ADMIN).status_code == 200
    r = client.post(f"/bookings/{b['id']}/confirm", headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["detail"] == "Booking is not in pending status"


def test_complete_requires_confirmed():
    h = _auth()
    b = _booking(h)
    r = client.post(f"/bookings/{b['id']}/complete", headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["detail"] == "Only confirmed bookings can be marked as completed"


def test_admin_actions_forbidden_for_customer():
    h = _auth()
    b = _booking(h)
    for action, body in (("verify", {"status": "approved"}), ("confirm", None), ("complete", None)):
        r = client.post(f"/bookings/{b['id']}/{action}", headers=h, json=body)
        assert r.status_code == 403, action
    r = client.get(f"/bookings/{b['id']}", headers=h)
    assert r.json()["status"] == "pending"
    assert r.json()["verification_status"] == "pending"


def test_non_owner_cannot_mutate():
    owner, other = _auth(), _auth()
    b = _booking(owner)
    r = client.post(f"/bookings/{b['id']}/cancel", headers=other)
    assert r.status_code == 403
    r = _upload(other, b["id"])
    assert r.status_code == 403
    r = client.get(f"/bookings/{b['id']}", headers=owner)
    assert r.json()["status"] == "pending"
    assert r.json()["id_proofs"] == []


def test_admin_can_cancel_any_booking():
    b = _booking(_auth())
    r = client.post(f"/bookings/{b['id']}/cancel", headers=ADMIN, json={"reason": "overbooked"})
    assert r.status_code == 200
    assert r.json()["cancellation_reason"] == "overbooked"


def test_unknown_booking_is_not_found():
    r = client.post(f"/bookings/{uuid.uuid4()}/confirm", headers=ADMIN)
    assert r.status_code == 404
