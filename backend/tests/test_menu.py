def test_public_menu_shows_available_items_only(client, make_menu_item):
    make_menu_item(name="Tea", price="5.00")
    make_menu_item(name="Lobster", price="40.00", is_available=False)
    res = client.get("/api/menu")
    assert res.status_code == 200
    assert [(m["name"], m["price"]) for m in res.json()] == [("Tea", 5.0)]


def test_organizer_sees_unavailable_items(organizer_client, make_menu_item):
    make_menu_item(name="Tea", price="5.00")
    make_menu_item(name="Lobster", price="40.00", is_available=False)
    names = [m["name"] for m in organizer_client.get("/api/menu").json()]
    assert names == ["Lobster", "Tea"]


def test_create_menu_item(organizer_client):
    res = organizer_client.post(
        "/api/menu",
        json={"name": "Noodles", "description": "Hand pulled", "price": 12.5, "imageUrl": "/img/noodles.jpg"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 12.5
    assert body["isAvailable"] is True
    assert body["imageUrl"] == "/img/noodles.jpg"


def test_menu_writes_need_an_organizer(client, guest_client, make_menu_item):
    item = make_menu_item()
    for c in (client, guest_client):
        assert c.post("/api/menu", json={"name": "X", "price": 1}).status_code == 401
        assert c.put("/api/menu", json={"id": item.id, "price": 1}).status_code == 401


def test_negative_price_rejected(organizer_client):
    res = organizer_client.post("/api/menu", json={"name": "Free money", "price": -1})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"


def test_partial_update(organizer_client, make_menu_item):
    item = make_menu_item(name="Tea", price="5.00", description="Jasmine")
    res = organizer_client.put("/api/menu", json={"id": item.id, "price": 6, "isAvailable": False})
    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 6.0
    assert body["isAvailable"] is False
    assert body["name"] == "Tea"
    assert body["description"] == "Jasmine"


def test_update_missing_item(organizer_client):
    res = organizer_client.put("/api/menu", json={"id": 404, "name": "Ghost"})
    assert res.status_code == 404
    assert res.json() == {"error": "Menu item not found", "code": "NOT_FOUND"}


def test_price_change_applies_to_next_recompute(organizer_client, guest_client, guest, make_rsvp, make_menu_item, db):
    make_rsvp(guest)
    tea = make_menu_item(name="Tea", price="5.00")
    order = guest_client.post("/api/orders", json={"items": [{"menuItemId": tea.id, "quantity": 2}]}).json()
    assert order["totalAmount"] == 10.0

    organizer_client.put("/api/menu", json={"id": tea.id, "price": 7})
    line = guest_client.get("/api/orders").json()[0]["orderItems"][0]
    res = guest_client.put(f"/api/orders/{order['id']}/items/{line['id']}", json={"quantity": 2})
    assert res.json()["totalAmount"] == 14.0
