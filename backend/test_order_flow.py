"""Order placement: stock consistency, all-or-nothing, price snapshot, idempotency."""
import threading

import pytest

from pharmacy_api.core.exceptions import InsufficientStock
from pharmacy_api.db.session import SessionLocal
from pharmacy_api.models import Order, OrderItem
from pharmacy_api.schemas.order import OrderItemIn
from pharmacy_api.services import order_service

ADDRESS = "221B Baker Street, London"


def place(client, headers, items, key=None):
    extra = {"Idempotency-Key": key} if key else {}
    return client.post(
        "/api/orders",
        json={"items": items, "delivery_address": ADDRESS, "payment_method": "cash"},
        headers={**headers, **extra},
    )


def count_orders(db):
    db.expire_all()
    return db.query(Order).count()


def test_order_decrements_stock_and_totals(client, user, user_headers, make_drug, stock_of):
    drug = make_drug(stock=10)

    response = place(client, user_headers, [{"drug_id": drug.id, "quantity": 3}])

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Order created successfully"
    order = body["order"]
    assert order["status"] == "pending"
    assert order["user_id"] == user.id
    assert order["total_amount"] == pytest.approx(47.97)
    assert order["items"][0]["price_at_purchase"] == pytest.approx(15.99)
    assert stock_of(drug.id) == 7


def test_order_for_unknown_drug(client, user_headers, db):
    response = place(client, user_headers, [{"drug_id": 999, "quantity": 1}])
    assert response.status_code == 404
    assert response.json()["error"] == "Drug with ID 999 not found"
    assert count_orders(db) == 0


def test_failed_order_changes_nothing(client, user_headers, make_drug, stock_of, db):
    plenty = make_drug("Paracetamol 500mg", stock=10)
    scarce = make_drug("Amoxicillin 500mg", price="45.50", stock=1)

    response = place(client, user_headers, [
        {"drug_id": plenty.id, "quantity": 2},
        {"drug_id": scarce.id, "quantity": 2},
    ])

    assert response.status_code == 400
    assert response.json()["error"] == f"Insufficient stock for drug ID {scarce.id}"
    assert stock_of(plenty.id) == 10
    assert stock_of(scarce.id) == 1
    assert count_orders(db) == 0
    assert db.query(OrderItem).count() == 0


def test_empty_order_rejected(client, user_headers):
    response = place(client, user_headers, [])
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_short_address_rejected(client, user_headers, make_drug):
    drug = make_drug()
    response = client.post(
        "/api/orders",
        json={"items": [{"drug_id": drug.id, "quantity": 1}], "delivery_address": "  ab ", "payment_method": "card"},
        headers=user_headers,
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "delivery_address"


def test_duplicate_lines_are_merged(client, user_headers, make_drug, stock_of):
    drug = make_drug(stock=5)

    response = place(client, user_headers, [
        {"drug_id": drug.id, "quantity": 2},
        {"drug_id": drug.id, "quantity": 2},
    ])

    assert response.status_code == 201
    items = response.json()["order"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 4
    assert stock_of(drug.id) == 1


def test_merged_lines_checked_against_stock(client, user_headers, make_drug, stock_of):
    drug = make_drug(stock=3)
    response = place(client, user_headers, [
        {"drug_id": drug.id, "quantity": 2},
        {"drug_id": drug.id, "quantity": 2},
    ])
    assert response.status_code == 400
    assert stock_of(drug.id) == 3


def test_price_snapshot_survives_price_change(client, user_headers, admin_headers, make_drug):
    drug = make_drug(price="10.00")
    order_id = place(client, user_headers, [{"drug_id": drug.id, "quantity": 2}]).json()["order"]["id"]

    assert client.put(f"/api/admin/drugs/{drug.id}", json={"price": 99.0}, headers=admin_headers).status_code == 200

    order = client.get(f"/api/orders/{order_id}", headers=user_headers).json()["order"]
    assert order["items"][0]["price_at_purchase"] == pytest.approx(10.0)
    assert order["items"][0]["subtotal"] == pytest.approx(20.0)
    assert order["total_amount"] == pytest.approx(20.0)


def test_idempotent_replay_returns_same_order(client, user_headers, make_drug, stock_of, db):
    drug = make_drug(stock=10)
    items = [{"drug_id": drug.id, "quantity": 3}]

    first = place(client, user_headers, items, key="checkout-7f3a")
    second = place(client, user_headers, items, key="checkout-7f3a")

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert stock_of(drug.id) == 7
    assert count_orders(db) == 1


def test_idempotency_key_is_per_user(client, user_headers, other_headers, make_drug, db):
    drug = make_drug(stock=10)
    items = [{"drug_id": drug.id, "quantity": 1}]

    first = place(client, user_headers, items, key="same-key")
    second = place(client, other_headers, items, key="same-key")

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["order"]["id"] != second.json()["order"]["id"]


def test_checkout_converts_cart(client, user_headers, make_drug, stock_of):
    first = make_drug("Paracetamol 500mg", stock=10)
    second = make_drug("Ibuprofen 400mg", price="18.75", stock=10)
    client.post("/api/cart/add", json={"drug_id": first.id, "quantity": 2}, headers=user_headers)
    client.post("/api/cart/add", json={"drug_id": second.id, "quantity": 1}, headers=user_headers)

    response = client.post(
        "/api/orders/checkout",
        json={"delivery_address": ADDRESS, "payment_method": "card"},
        headers=user_headers,
    )

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["payment_method"] == "card"
    assert order["total_amount"] == pytest.approx(2 * 15.99 + 18.75)
    assert stock_of(first.id) == 8
    assert stock_of(second.id) == 9
    assert client.get("/api/cart", headers=user_headers).json()["cart"] == []


def test_checkout_keeps_cart_when_stock_short(client, user_headers, make_drug, db):
    drug = make_drug(stock=5)
    client.post("/api/cart/add", json={"drug_id": drug.id, "quantity": 5}, headers=user_headers)
    drug.stock_quantity = 2
    db.commit()

    response = client.post(
        "/api/orders/checkout",
        json={"delivery_address": ADDRESS, "payment_method": "cash"},
        headers=user_headers,
    )

    assert response.status_code == 400
    assert len(client.get("/api/cart", headers=user_headers).json()["cart"]) == 1


def test_checkout_with_empty_cart(client, user_headers):
    response = client.post(
        "/api/orders/checkout",
        json={"delivery_address": ADDRESS, "payment_method": "cash"},
        headers=user_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Cart is empty"


def test_orders_are_private(client, user, user_headers, other_user, other_headers, admin_headers, make_drug):
    drug = make_drug()
    order_id = place(client, user_headers, [{"drug_id": drug.id, "quantity": 1}]).json()["order"]["id"]

    assert client.get(f"/api/orders/{order_id}", headers=other_headers).status_code == 404
    assert client.get(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/orders/user/{user.id}", headers=other_headers).status_code == 403


def test_user_order_history(client, user, user_headers, make_drug):
    first = make_drug("Paracetamol 500mg")
    second = make_drug("Ibuprofen 400mg")
    place(client, user_headers, [{"drug_id": first.id, "quantity": 1}])
    place(client, user_headers, [{"drug_id": first.id, "quantity": 1}, {"drug_id": second.id, "quantity": 1}])

    body = client.get(f"/api/orders/user/{user.id}", headers=user_headers).json()

    assert body["count"] == 2
    # newest first
    assert [o["item_count"] for o in body["orders"]] == [2, 1]
    assert client.get("/api/orders", headers=user_headers).json()["count"] == 2


def test_concurrent_orders_never_oversell(user, make_drug, stock_of):
    """Two orders of 3 against a stock of 5: exactly one wins, stock ends at 2."""
    drug_id = make_drug(stock=5).id
    user_id = user.id
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def buy():
        session = SessionLocal()
        try:
            barrier.wait()
            order_service.create_order(
                session, user_id, [OrderItemIn(drug_id=drug_id, quantity=3)], ADDRESS, "cash",
            )
            result = "ok"
        except InsufficientStock:
            result = "insufficient"
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=buy) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["insufficient", "ok"]
    assert stock_of(drug_id) == 2

    session = SessionLocal()
    try:
        assert session.query(Order).count() == 1
        assert session.query(OrderItem).count() == 1
    finally:
        session.close()


def test_admin_token_cannot_place_orders(client, user, user_headers, admin, admin_headers, make_drug, stock_of, db):
    assert admin.id == user.id
    drug = make_drug(stock=10)

    placed = place(client, admin_headers, [{"drug_id": drug.id, "quantity": 2}])
    checkout = client.post(
        "/api/orders/checkout",
        json={"delivery_address": ADDRESS, "payment_method": "cash"},
        headers=admin_headers,
    )
    listing = client.get("/api/orders", headers=admin_headers)

    for response in (placed, checkout, listing):
        assert response.status_code == 403
        assert response.json() == {"error": "Customer account required"}
    assert count_orders(db) == 0
    assert stock_of(drug.id) == 10
    assert client.get("/api/orders", headers=user_headers).json()["count"] == 0


def test_admin_reads_customer_orders(client, user, user_headers, admin_headers, make_drug):
    drug = make_drug()
    order_id = place(client, user_headers, [{"drug_id": drug.id, "quantity": 1}]).json()["order"]["id"]

    history = client.get(f"/api/orders/user/{user.id}", headers=admin_headers)
    assert history.status_code == 200
    assert [o["id"] for o in history.json()["orders"]] == [order_id]
    assert history.json()["orders"][0]["customer_email"] == user.email

    detail = client.get(f"/api/orders/{order_id}", headers=admin_headers).json()
    assert set(detail) == {"message", "order"}
    assert detail["order"]["items"][0]["drug_name"] == drug.name
