import uuid
from datetime import date, timedelta
from decimal import Decimal

from fastapi.testclient import TestClient

from staybook.auth import create_access_token
from staybook.main import app


client = TestClient(app)

ADMIN = {"Authorization": f"Bearer {create_access_token('admin-4', role='admin')}"}
CUSTOMER = {"Authorization": f"Bearer {create_access_token('cust-props', phone='+919800000004')}"}


def _create(city: str, **overrides):
    payload = {
        "name": "Mango Farm",
        "description": "Orchard with a pool",
        "location": "Farm Lane",
        "city": city,
        "state": "Goa",
        "base_price_per_night": "2000",
        "per_head_price": "200",
        "cleaning_fee": "100",
        "service_fee": "50",
        "max_guests": 10,
        "facilities": ["Pool", "WiFi", "Pool", " "],
    }
    payload.update(overrides)
    r = client.post("/properties", headers=ADMIN, json=payload)
    assert r.status_code == 200, r.text
    return r.json()


def _city():
    return f"City-{uuid.uuid4().hex[:8]}"


def _day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def test_create_requires_admin():
    body = {"name": "A", "location": "B", "base_price_per_night": "10"}
    assert client.post("/properties", json=body).status_code == 401
    r = client.post("/properties", headers=CUSTOMER, json=body)
    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"


def test_create_cleans_facilities_and_defaults():
    p = _create(_city())
    assert p["facilities"] == ["Pool", "WiFi"]
    assert p["is_active"] is True
    assert p["images"] == []
    assert Decimal(p["base_price_per_night"]) == Decimal("2000")


def test_negative_price_rejected():
    r = client.post("/properties", headers=ADMIN, json={"name": "A", "location": "B", "base_price_per_night": "-1"})
    assert r.status_code == 422


def test_list_filters():
    city = _city()
    cheap = _create(city, name="Cheap Hut", base_price_per_night="500", max_guests=2, facilities=["Parking"])
    pricey = _create(city, name="Grand Villa", base_price_per_night="9000", max_guests=20)

    r = client.get("/properties", params={"city": city})
    assert r.status_code == 200
    assert {p["id"] for p in r.json()["data"]} == {cheap["id"], pricey["id"]}

    r = client.get("/properties", params={"city": city, "max_price": 1000})
    assert [p["id"] for p in r.json()["data"]] == [cheap["id"]]

    r = client.get("/properties", params={"city": city, "max_guests": 5})
    assert [p["id"] for p in r.json()["data"]] == [pricey["id"]]

    r = client.get("/properties", params=[("city", city), ("facilities", "pool"), ("facilities", "wifi")])
    assert [p["id"] for p in r.json()["data"]] == [pricey["id"]]

    r = client.get("/properties", params={"city": city, "search": "grand"})
    assert [p["id"] for p in r.json()["data"]] == [pricey["id"]]


def test_list_pagination():
    city = _city()
    for i in range(3):
        _create(city, name=f"Unit {i}")
    r = client.get("/properties", params={"city": city, "limit": 2, "page": 2})
    body = r.json()
    assert body["total"] == 3
    assert body["pages"] == 2
    assert body["count"] == 1


def test_facility_filter_paginates_exact_matches():
    city = _city()
    for i in range(3):
        _create(city, name=f"Pool House {i}", facilities=["Pool"])
    # Substring of a wanted label must not count as a match
    _create(city, name="Pool Table Bar", facilities=["Pool Table"])
    r = client.get("/properties", params={"city": city, "facilities": "pool", "limit": 2, "page": 2})
    body = r.json()
    assert body["total"] == 3
    assert body["pages"] == 2
    assert body["count"] == 1
    assert body["data"][0]["facilities"] == ["Pool"]


def test_inactive_hidden_from_public():
    city = _city()
    p = _create(city)
    assert client.delete(f"/properties/{p['id']}", headers=ADMIN).status_code == 200
    assert client.get(f"/properties/{p['id']}").status_code == 404
    r = client.get(f"/properties/{p['id']}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    assert client.get("/properties", params={"city": city}).json()["total"] == 0
    r = client.get("/properties", headers=ADMIN, params={"city": city, "include_inactive": True})
    assert r.json()["total"] == 1


def test_update_property():
    p = _create(_city())
    r = client.patch(f"/properties/{p['id']}", headers=ADMIN, json={"max_guests": 4, "cleaning_fee": "250.50"})
    assert r.status_code == 200, r.text
    assert r.json()["max_guests"] == 4
    assert Decimal(r.json()["cleaning_fee"]) == Decimal("250.50")
    r = client.patch(f"/properties/{p['id']}", headers=ADMIN, json={"name": None})
    assert r.status_code == 400
    assert r.json()["field"] == "name"
    r = client.patch(f"/properties/{p['id']}", headers=CUSTOMER, json={"max_guests": 40})
    assert r.status_code == 403


def test_media_upload_and_remove(blob_store):
    p = _create(_city())
    files = [
        ("files", ("front.jpg", b"\xff\xd8\xff" + b"0" * 16, "image/jpeg")),
        ("files", ("tour.mp4", b"\x00\x00\x00\x18ftypmp4", "video/mp4")),
    ]
    r = client.post(f"/properties/{p['id']}/media", headers=ADMIN, files=files)
    assert r.status_code == 200, r.text
    body = r.json()
    assert len(body["images"]) == 1 and len(body["videos"]) == 1
    assert body["images"][0].endswith(".jpg")
    assert any(k.startswith(f"properties/{p['id']}/") for k in blob_store.objects)

    r = client.request("DELETE", f"/properties/{p['id']}/media", headers=ADMIN, json={"url": body["images"][0]})
    assert r.status_code == 200
    assert r.json()["images"] == []
    r = client.request("DELETE", f"/properties/{p['id']}/media", headers=ADMIN, json={"url": "memory://nope"})
    assert r.status_code == 404


def test_media_rejects_documents():
    p = _create(_city())
    r = client.post(f"/properties/{p['id']}/media", headers=ADMIN, files=[("files", ("a.txt", b"hello", "text/plain"))])
    assert r.status_code == 400
    assert r.json()["detail"] == "Only image or video files are allowed"


def test_blackouts_crud():
    p = _create(_city())
    r = client.post(f"/properties/{p['id']}/blackouts", headers=ADMIN, json={"dates": [_day(3), _day(2), _day(3)], "reason": "festival"})
    assert r.status_code == 200, r.text
    assert [b["date"] for b in r.json()] == [_day(2), _day(3)]

    r = client.get(f"/properties/{p['id']}/blackouts", headers=ADMIN)
    assert len(r.json()) == 2
    r = client.request("DELETE", f"/properties/{p['id']}/blackouts", headers=ADMIN, json={"dates": [_day(2)]})
    assert r.json()["removed"] == 1
    r = client.get(f"/properties/{p['id']}/blackouts", headers=ADMIN)
    assert [b["date"] for b in r.json()] == [_day(3)]


def test_availability():
    p = _create(_city())
    r = client.get(f"/properties/{p['id']}/availability", params={"check_in": _day(8), "check_out": _day(8), "guests": 2})
    assert r.status_code == 200
    assert r.json() == {"available": True, "reason": None}

    r = client.post("/bookings", headers=CUSTOMER, json={"property_id": p["id"], "check_in": _day(8), "check_out": _day(8), "num_guests": 2})
    assert r.status_code == 200, r.text
    r = client.get(f"/properties/{p['id']}/availability", params={"check_in": _day(8), "check_out": _day(8)})
    assert r.json()["available"] is False
    assert r.json()["reason"] == "Property is already booked for these dates"

    r = client.get(f"/properties/{p['id']}/availability", params={"check_in": _day(9), "check_out": _day(9), "guests": 11})
    assert r.json()["reason"] == "Maximum 10 guests allowed"


def test_quote():
    p = _create(_city())
    r = client.post(f"/properties/{p['id']}/quote", json={"check_in": _day(4), "check_out": _day(4), "num_guests": 4})
    assert r.status_code == 200, r.text
    q = r.json()
    assert q["currency"] == "INR"
    assert Decimal(q["total_amount"]) == Decimal("2950")
    assert Decimal(q["advance_amount"]) == Decimal("1475")

    r = client.post(f"/properties/{p['id']}/quote", json={"check_in": _day(4), "check_out": _day(4), "num_guests": 2, "food_required": True})
    assert Decimal(r.json()["food_charges"]) == Decimal("1000")
