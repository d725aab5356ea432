from decimal import Decimal

import pytest
from conftest import login

from app.models import Order, OrderItem, OrderStatus
from app.services.orders import compute_total


@pytest.fixture
def menu(make_menu_item):
    return make_menu_item(name="Roast duck", price="10.00"), make_menu_item(name="Tea", price="5.00")


@pytest.fixture
def attending_guest(guest, make_rsvp):
    make_rsvp(guest)
    return guest


def place_order(c, lines, **extra):
    body = {"items": [{"menuItemId": m.id, "quantity": q} for m, q in lines]}
    body.update(extra)
    return c.post("/api/orders", json=body)


def test_order_requires_rsvp(guest_client, guest, menu, make_rsvp):
    duck, _ = menu
    res = place_order(guest_client, [(duck, 1)])
    assert res.status_code == 400
    assert res.json() == {"error": "Must RSVP before placing order", "code": "RSVP_REQUIRED"}

    make_rsvp(guest)
    res = place_order(guest_client, [(duck, 1)])
    assert res.status_code == 200
    assert res.json()["status"] == "pending"


def test_order_requires_session(client, menu):
    res = place_order(client, [(menu[0], 1)])
    assert res.status_code == 401


def test_totals_follow_every_item_mutation(guest_client, db, attending_guest, menu):
    duck, tea = menu
    res = place_order(guest_client, [(duck, 2), (tea, 1)])
    assert res.status_code == 200
    order_id = res.json()["id"]
    assert res.json()["totalAmount"] == 25.0

    items = db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id).all()
    first, second = items[0].id, items[1].id

    res = guest_client.put(f"/api/orders/{order_id}/items/{first}", json={"quantity": 3})
    assert res.status_code == 200
    assert res.json()["totalAmount"] == 35.0
    assert res.json()["item"]["quantity"] == 3

    res = guest_client.delete(f"/api/orders/{order_id}/items/{second}")
    assert res.status_code == 200
    assert res.json()["totalAmount"] == 30.0
    assert res.json()["orderDeleted"] is False

    order = db.get(Order, order_id)
    db.refresh(order)
    assert order.total_amount == Decimal("30.00")
    assert compute_total(db, order_id) == Decimal("30.00")

    res = guest_client.delete(f"/api/orders/{order_id}/items/{first}")
    assert res.status_code == 200
    assert res.json()["orderDeleted"] is True
    db.expire_all()
    assert db.get(Order, order_id) is None


def test_client_total_is_ignored(guest_client, attending_guest, menu):
    duck, _ = menu
    res = place_order(guest_client, [(duck, 1)], totalAmount=0.01)
    assert res.status_code == 200
    assert res.json()["totalAmount"] == 10.0


def test_order_rejects_empty_and_unavailable_items(guest_client, attending_guest, make_menu_item):
    res = guest_client.post("/api/orders", json={"items": []})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    sold_out = make_menu_item(name="Lobster", price="40.00", is_available=False)
    res = place_order(guest_client, [(sold_out, 1)])
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    res = guest_client.post("/api/orders", json={"items": [{"menuItemId": 12345, "quantity": 1}]})
    assert res.status_code == 400


def test_quantity_must_be_positive(guest_client, attending_guest, menu):
    res = place_order(guest_client, [(menu[0], 0)])
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"


def test_item_mutation_on_non_pending_order(guest_client, db, attending_guest, menu):
    order_id = place_order(guest_client, [(menu[0], 1)]).json()["id"]
    item = db.query(OrderItem).filter(OrderItem.order_id == order_id).one()
    order = db.get(Order, order_id)
    order.status = OrderStatus.preparing
    db.commit()

    res = guest_client.put(f"/api/orders/{order_id}/items/{item.id}", json={"quantity": 2})
    assert res.status_code == 400
    assert res.json() == {"error": "Can only modify pending orders", "code": "ORDER_NOT_MODIFIABLE"}

    res = guest_client.delete(f"/api/orders/{order_id}/items/{item.id}")
    assert res.json()["code"] == "ORDER_NOT_MODIFIABLE"


def test_item_mutation_ownership_and_missing_rows(make_client, db, attending_guest, make_user, make_rsvp, menu):
    owner = make_client()
    login(owner, attending_guest.email)
    order_id = place_order(owner, [(menu[0], 1)]).json()["id"]
    item = db.query(OrderItem).filter(OrderItem.order_id == order_id).one()

    intruder_user = make_user(name="Mallory", email="mallory@example.com")
    make_rsvp(intruder_user)
    intruder = make_client()
    login(intruder, intruder_user.email)

    res = intruder.put(f"/api/orders/{order_id}/items/{item.id}", json={"quantity": 5})
    assert res.status_code == 403
    res = intruder.delete(f"/api/orders/{order_id}/items/{item.id}")
    assert res.status_code == 403

    assert owner.put(f"/api/orders/9999/items/{item.id}", json={"quantity": 2}).status_code == 404
    assert owner.put(f"/api/orders/{order_id}/items/9999", json={"quantity": 2}).status_code == 404
    assert owner.delete(f"/api/orders/{order_id}/items/9999").status_code == 404


def test_list_orders_scoped_by_caller(make_client, attending_guest, make_user, make_rsvp, organizer, menu):
    duck, tea = menu
    alice = make_client()
    login(alice, attending_guest.email)
    place_order(alice, [(duck, 1), (tea, 2)])

    bob_user = make_user(name="Bob", email="bob@example.com")
    make_rsvp(bob_user)
    bob = make_client()
    login(bob, bob_user.email)
    place_order(bob, [(tea, 1)])

    own = alice.get("/api/orders").json()
    assert len(own) == 1
    assert [line["name"] for line in own[0]["orderItems"]] == ["Roast duck", "Tea"]
    assert own[0]["orderItems"][0]["price"] == 10.0

    boss = make_client()
    login(boss, organizer.email)
    everyone = boss.get("/api/orders").json()
    assert [o["purchaserName"] for o in everyone] == ["Alice", "Bob"]
    assert everyone[1]["purchaserEmail"] == "bob@example.com"


def test_list_orders_anonymous_is_401(client):
    assert client.get("/api/orders").status_code == 401


def test_restaurant_key_lists_all_orders(client, guest_client, attending_guest, menu, restaurant_key):
    place_order(guest_client, [(menu[0], 1)])
    res = client.get("/api/orders", params={"restaurantKey": restaurant_key})
    assert res.status_code == 200
    assert len(res.json()) == 1

    assert client.get("/api/orders", params={"restaurantKey": "wrong"}).status_code == 401


def test_restaurant_key_disabled_when_unset(client):
    # Empty config must not let an empty key through
    assert client.get("/api/orders", params={"restaurantKey": ""}).status_code == 401


def test_status_update_access(make_client, guest_client, organizer_client, attending_guest, menu, restaurant_key):
    order_id = place_order(guest_client, [(menu[0], 1)]).json()["id"]

    res = guest_client.put("/api/orders", json={"id": order_id, "status": "preparing"})
    assert res.status_code == 401

    res = organizer_client.put("/api/orders", json={"id": order_id, "status": "preparing"})
    assert res.status_code == 200
    assert res.json()["status"] == "preparing"

    staff = make_client()
    res = staff.put(
        "/api/orders",
        json={"id": order_id, "status": "ready", "restaurantKey": restaurant_key},
    )
    assert res.status_code == 200
    assert res.json()["status"] == "ready"

    res = staff.put(
        "/api/orders",
        params={"restaurantKey": restaurant_key},
        json={"id": order_id, "status": "pending"},
    )
    assert res.status_code == 200
    assert res.json()["status"] == "pending"

    res = staff.put("/api/orders", json={"id": order_id, "status": "ready", "restaurantKey": "nope"})
    assert res.status_code == 401


def test_status_update_validation(organizer_client, guest_client, attending_guest, menu):
    order_id = place_order(guest_client, [(menu[0], 1)]).json()["id"]
    res = organizer_client.put("/api/orders", json={"id": order_id, "status": "eaten"})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    res = organizer_client.put("/api/orders", json={"id": 9999, "status": "ready"})
    assert res.status_code == 404


def test_summary_counts_non_cancelled_orders(organizer_client, guest_client, db, attending_guest, menu, restaurant_key, client):
    duck, tea = menu
    place_order(guest_client, [(duck, 2), (tea, 1)])
    cancelled_id = place_order(guest_client, [(duck, 5)]).json()["id"]
    organizer_client.put("/api/orders", json={"id": cancelled_id, "status": "cancelled"})

    res = organizer_client.get("/api/orders/summary")
    assert res.status_code == 200
    assert res.json() == [
        {"menuItemId": duck.id, "name": "Roast duck", "quantity": 2},
        {"menuItemId": tea.id, "name": "Tea", "quantity": 1},
    ]

    assert client.get("/api/orders/summary", params={"restaurantKey": restaurant_key}).status_code == 200
    assert guest_client.get("/api/orders/summary").status_code == 401


def test_quantity_has_an_upper_bound(guest_client, db, attending_guest, menu):
    duck, _ = menu
    res = place_order(guest_client, [(duck, 1001)])
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    order_id = place_order(guest_client, [(duck, 1000)]).json()["id"]
    item = db.query(OrderItem).filter(OrderItem.order_id == order_id).one()
    res = guest_client.put(f"/api/orders/{order_id}/items/{item.id}", json={"quantity": 2_147_483_648})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"
