from decimal import Decimal


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_sweet_round_trip(client, admin_headers):
    r = client.post("/sweets", json={"name": "Ladoo", "price": 15, "stock": 120}, headers=admin_headers)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    sweet_id = body["data"]["sweet"]["id"]

    r = client.get(f"/sweets/{sweet_id}")
    assert r.status_code == 200
    sweet = r.json()["data"]["sweet"]
    assert sweet["name"] == "Ladoo"
    assert Decimal(sweet["price"]) == Decimal("15")
    assert sweet["stock"] == 120

    r = client.put(f"/sweets/{sweet_id}", json={"stock": 100}, headers=admin_headers)
    assert r.status_code == 200

    after = client.get(f"/sweets/{sweet_id}").json()["data"]["sweet"]
    assert after["stock"] == 100
    assert after["name"] == "Ladoo"
    assert Decimal(after["price"]) == Decimal("15")


def test_order_flow(client, staff_headers, make_sweet):
    a = make_sweet("Gulab Jamun", 25, 100)
    b = make_sweet("Kaju Katli", 50, 50)

    r = client.post(
        "/orders",
        json={"customerName": "Asha", "items": [{"sweetId": a["id"], "quantity": 2}, {"sweetId": b["id"], "quantity": 1}]},
        headers=staff_headers,
    )
    assert r.status_code == 201
    order = r.json()["data"]["order"]
    assert Decimal(order["totalPrice"]) == Decimal("100")
    assert [i["sweetId"] for i in order["items"]] == [a["id"], b["id"]]
    assert [Decimal(i["price"]) for i in order["items"]] == [Decimal("50"), Decimal("50")]

    assert client.get(f"/sweets/{a['id']}").json()["data"]["sweet"]["stock"] == 98
    assert client.get(f"/sweets/{b['id']}").json()["data"]["sweet"]["stock"] == 49


def test_validation_error_shape(client, admin_headers):
    r = client.post("/sweets", json={"name": "Bad", "price": 0, "stock": -1}, headers=admin_headers)
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    paths = {d["path"] for d in body["details"]}
    assert {"price", "stock"} <= paths
    assert all(d["message"] for d in body["details"])


def test_not_found_shape(client):
    r = client.get("/sweets/4242")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Sweet not found"}


def test_price_that_rounds_to_zero_is_rejected(client, admin_headers, make_sweet):
    r = client.post("/sweets", json={"name": "Tiny", "price": 0.004, "stock": 1}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Validation failed"
    assert r.json()["details"][0]["path"] == "price"

    sweet = make_sweet("Crumb", 1, 1)
    r = client.put(f"/sweets/{sweet['id']}", json={"price": "0.001"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["details"][0]["path"] == "price"
    assert Decimal(client.get(f"/sweets/{sweet['id']}").json()["data"]["sweet"]["price"]) == Decimal("1")


def test_update_rejects_blank_name(client, admin_headers, make_sweet):
    sweet = make_sweet("Chikki", 12, 5)
    r = client.put(f"/sweets/{sweet['id']}", json={"name": "   "}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["details"][0]["path"] == "name"
    assert client.get(f"/sweets/{sweet['id']}").json()["data"]["sweet"]["name"] == "Chikki"

    r = client.put(f"/sweets/{sweet['id']}", json={"name": "  Til Chikki  "}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["sweet"]["name"] == "Til Chikki"


def test_timestamps_carry_utc_offset(client, make_sweet):
    sweet = make_sweet("Kheer Kadam", 30, 5)
    fetched = client.get(f"/sweets/{sweet['id']}").json()["data"]["sweet"]
    assert fetched["createdAt"].endswith(("Z", "+00:00"))
    assert fetched["updatedAt"].endswith(("Z", "+00:00"))
