"""Cart: additive adds, stock checks on write, ownership of cart lines."""
import logging

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from pharmacy_api.db.session import SessionLocal
from pharmacy_api.models.cart import CartItem
from pharmacy_api.services import cart_service


def add(client, headers, drug_id, quantity):
    return client.post("/api/cart/add", json={"drug_id": drug_id, "quantity": quantity}, headers=headers)


def test_cart_requires_token(client):
    response = client.get("/api/cart")
    assert response.status_code == 401
    assert response.json() == {"error": "Access denied. No token provided."}


def test_add_is_additive(client, user_headers, make_drug):
    drug = make_drug(stock=10)

    assert add(client, user_headers, drug.id, 2).status_code == 200
    assert add(client, user_headers, drug.id, 3).status_code == 200

    cart = client.get("/api/cart", headers=user_headers).json()
    assert len(cart["cart"]) == 1
    assert cart["cart"][0]["quantity"] == 5
    assert cart["total"] == pytest.approx(5 * 15.99)


def test_add_does_not_touch_stock(client, user_headers, make_drug, stock_of):
    drug = make_drug(stock=10)
    add(client, user_headers, drug.id, 4)
    assert stock_of(drug.id) == 10


def test_add_more_than_stock(client, user_headers, make_drug):
    drug = make_drug(stock=3)

    response = add(client, user_headers, drug.id, 4)
    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient stock"


def test_add_pushing_existing_line_over_stock(client, user_headers, make_drug):
    drug = make_drug(stock=5)
    add(client, user_headers, drug.id, 3)

    response = add(client, user_headers, drug.id, 3)
    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient stock for requested quantity"

    cart = client.get("/api/cart", headers=user_headers).json()
    assert cart["cart"][0]["quantity"] == 3


def test_add_unknown_drug(client, user_headers):
    response = add(client, user_headers, 999, 1)
    assert response.status_code == 404
    assert response.json()["error"] == "Drug not found"


def test_add_rejects_zero_quantity(client, user_headers, make_drug):
    drug = make_drug()
    response = add(client, user_headers, drug.id, 0)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_rejected_update_leaves_quantity(client, user_headers, make_drug):
    drug = make_drug(stock=5)
    add(client, user_headers, drug.id, 2)
    item_id = client.get("/api/cart", headers=user_headers).json()["cart"][0]["id"]

    response = client.put(f"/api/cart/{item_id}", json={"quantity": 6}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient stock"

    cart = client.get("/api/cart", headers=user_headers).json()
    assert cart["cart"][0]["quantity"] == 2


def test_update_quantity(client, user_headers, make_drug):
    drug = make_drug(stock=5)
    add(client, user_headers, drug.id, 1)
    item_id = client.get("/api/cart", headers=user_headers).json()["cart"][0]["id"]

    response = client.put(f"/api/cart/{item_id}", json={"quantity": 5}, headers=user_headers)
    assert response.status_code == 200
    assert client.get("/api/cart", headers=user_headers).json()["cart"][0]["quantity"] == 5


def test_cannot_touch_another_users_cart_line(client, user_headers, other_headers, make_drug):
    drug = make_drug()
    add(client, user_headers, drug.id, 1)
    item_id = client.get("/api/cart", headers=user_headers).json()["cart"][0]["id"]

    assert client.put(f"/api/cart/{item_id}", json={"quantity": 2}, headers=other_headers).status_code == 404
    response = client.delete(f"/api/cart/{item_id}", headers=other_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Cart item not found"
    assert len(client.get("/api/cart", headers=user_headers).json()["cart"]) == 1


def test_remove_and_clear(client, user_headers, make_drug):
    first = make_drug("Paracetamol 500mg")
    second = make_drug("Ibuprofen 400mg", price="18.75")
    add(client, user_headers, first.id, 1)
    add(client, user_headers, second.id, 2)

    cart = client.get("/api/cart", headers=user_headers).json()
    assert cart["total"] == pytest.approx(15.99 + 2 * 18.75)

    assert client.delete(f"/api/cart/{cart['cart'][0]['id']}", headers=user_headers).status_code == 200
    assert len(client.get("/api/cart", headers=user_headers).json()["cart"]) == 1

    assert client.delete("/api/cart", headers=user_headers).status_code == 200
    assert client.get("/api/cart", headers=user_headers).json() == {"cart": [], "total": 0.0}


def test_admin_token_has_no_cart(client, user, user_headers, admin, admin_headers, make_drug):
    # admin and customer ids both start at 1
    assert admin.id == user.id
    drug = make_drug(stock=10)

    for response in (
        add(client, admin_headers, drug.id, 2),
        client.get("/api/cart", headers=admin_headers),
        client.put("/api/cart/1", json={"quantity": 1}, headers=admin_headers),
        client.delete("/api/cart/1", headers=admin_headers),
        client.delete("/api/cart", headers=admin_headers),
    ):
        assert response.status_code == 403
        assert response.json() == {"error": "Customer account required"}

    assert client.get("/api/cart", headers=user_headers).json()["cart"] == []


def test_lost_insert_race_becomes_increment(db, user, make_drug):
    """Another request inserts the same (user, drug) line between our read and our commit."""
    user_id, drug_id = user.id, make_drug(stock=10).id
    fired = []

    def competing_add(session):
        if fired:
            return
        fired.append(True)
        other = SessionLocal()
        try:
            other.add(CartItem(user_id=user_id, drug_id=drug_id, quantity=2))
            other.commit()
        finally:
            other.close()

    event.listen(db, "before_commit", competing_add)
    try:
        item = cart_service.add_item(db, user_id, drug_id, 3)
    finally:
        event.remove(db, "before_commit", competing_add)

    assert fired
    assert item.quantity == 5
    assert db.query(CartItem).count() == 1


def test_other_integrity_errors_are_not_retried(db, make_drug, caplog):
    drug = make_drug()

    with caplog.at_level(logging.INFO, logger="pharmacy_api.services.cart_service"):
        with pytest.raises(IntegrityError):
            cart_service.add_item(db, 4242, drug.id, 1)

    assert "retrying" not in caplog.text
    assert db.query(CartItem).count() == 0
