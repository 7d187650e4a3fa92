"""Tests for checkout sequencing."""
from unittest import mock

import pytest

from entities import CART_ACTIVE, CART_CONVERTED, ORDER_PROCESSING
from errors import NotFoundError, OutOfStockError, RepositoryError, ValidationError
from repositories.memory import MemoryCartRepository, MemoryPointsRepository
from services.checkout_service import CheckoutService

USER_ID = "user-1"


@pytest.fixture
def filled_cart(cart_service):
    cart_service.add_to_cart(USER_ID, "prod-a", 2)
    return cart_service.add_to_cart(USER_ID, "prod-b", 1)


def test_successful_checkout(checkout_service, cart_service, store, filled_cart):
    result = checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert result["success"] is True
    assert result["message"] == "Order placed successfully"
    assert result["pointsEarned"] == 50

    order = store.orders[result["orderId"]]
    assert order.cliente_id == USER_ID
    assert order.status == ORDER_PROCESSING
    assert order.valor_total == 40.90
    assert order.pontos_ganhos == 50
    assert order.forma_pagamento == "pix"
    assert order.endereco_entrega["id"] == "addr-1"
    assert order.endereco_entrega["cidade"] == "São Paulo"

    items = sorted(
        (i for i in store.order_items.values() if i.order_id == order.id),
        key=lambda i: i.produto_id
    )
    assert [(i.produto_id, i.quantidade, i.preco_unitario, i.subtotal) for i in items] == [
        ("prod-a", 2, 10.0, 20.0),
        ("prod-b", 1, 5.0, 5.0),
    ]

    assert store.products["prod-a"].estoque == 8
    assert store.products["prod-b"].estoque == 4

    [transaction] = store.points_transactions.values()
    assert transaction.pontos == 50
    assert transaction.tipo == "compra"
    assert transaction.descricao == f"Pontos por compra #{order.id}"
    assert transaction.referencia_id == order.id
    assert store.balances[USER_ID] == 50

    assert store.carts[filled_cart["cartId"]].status == CART_CONVERTED


def test_next_cart_after_checkout_is_new_and_empty(checkout_service, cart_service, filled_cart):
    checkout_service.checkout(USER_ID, "addr-1", "pix")

    view = cart_service.get_cart(USER_ID)

    assert view["cartId"] != filled_cart["cartId"]
    assert view["items"] == []


@pytest.mark.parametrize("address_id, payment_method", [(None, "pix"), ("addr-1", None), ("", "")])
def test_checkout_requires_address_and_payment(checkout_service, filled_cart, address_id, payment_method):
    with pytest.raises(ValidationError, match="Address ID and payment method are required"):
        checkout_service.checkout(USER_ID, address_id, payment_method)


def test_checkout_empty_cart(checkout_service, store):
    with pytest.raises(ValidationError, match="Invalid cart or empty cart"):
        checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert store.orders == {}


def test_checkout_with_someone_elses_address(checkout_service, store, filled_cart):
    with pytest.raises(NotFoundError, match="Delivery address not found"):
        checkout_service.checkout(USER_ID, "addr-2", "pix")

    assert store.orders == {}


def test_stock_shortage_rolls_back_everything(checkout_service, cart_service, store):
    cart_service.add_to_cart(USER_ID, "prod-a", 2)
    cart_service.add_to_cart(USER_ID, "prod-b", 3)
    store.products["prod-b"].estoque = 1

    with pytest.raises(OutOfStockError) as exc:
        checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert exc.value.product_id == "prod-b"
    assert exc.value.to_dict()["code"] == "OUT_OF_STOCK"
    assert store.orders == {}
    assert store.order_items == {}
    assert store.points_transactions == {}
    assert store.products["prod-a"].estoque == 10
    assert store.products["prod-b"].estoque == 1

    view = cart_service.get_cart(USER_ID)
    assert len(view["items"]) == 2


def test_points_balance_failure_is_best_effort(checkout_service, store, filled_cart):
    with mock.patch.object(MemoryPointsRepository, "add_to_balance", side_effect=RuntimeError("rpc down")):
        result = checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert result["success"] is True
    assert result["orderId"] in store.orders
    assert len(store.points_transactions) == 1
    assert store.balances.get(USER_ID, 0) == 0
    assert store.carts[filled_cart["cartId"]].status == CART_CONVERTED


def test_points_ledger_failure_is_best_effort(checkout_service, store, filled_cart):
    with mock.patch.object(MemoryPointsRepository, "add_transaction", side_effect=RuntimeError("ledger down")):
        result = checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert result["success"] is True
    assert store.points_transactions == {}
    assert store.balances[USER_ID] == 50


def test_strict_points_failure_compensates(repos, cart_service, store, filled_cart):
    strict = CheckoutService(repos, cart_service, strict_points=True, strict_cart=False)

    with mock.patch.object(MemoryPointsRepository, "add_to_balance", side_effect=RuntimeError("rpc down")):
        with pytest.raises(RepositoryError, match="rpc down"):
            strict.checkout(USER_ID, "addr-1", "pix")

    assert store.orders == {}
    assert store.order_items == {}
    assert store.points_transactions == {}
    assert store.products["prod-a"].estoque == 10
    assert store.products["prod-b"].estoque == 5
    assert store.carts[filled_cart["cartId"]].status == CART_ACTIVE


def test_cart_conversion_failure_is_best_effort(checkout_service, store, filled_cart):
    with mock.patch.object(MemoryCartRepository, "set_status", side_effect=RuntimeError("carts locked")):
        result = checkout_service.checkout(USER_ID, "addr-1", "pix")

    assert result["success"] is True
    assert result["orderId"] in store.orders
    assert store.balances[USER_ID] == 50
    assert store.products["prod-a"].estoque == 8
    assert store.carts[filled_cart["cartId"]].status == CART_ACTIVE


def test_strict_cart_conversion_failure_undoes_points(repos, cart_service, store, filled_cart):
    strict = CheckoutService(repos, cart_service, strict_points=False, strict_cart=True)

    with mock.patch.object(MemoryCartRepository, "set_status", side_effect=RuntimeError("carts locked")):
        with pytest.raises(RepositoryError) as exc:
            strict.checkout(USER_ID, "addr-1", "pix")

    assert exc.value.to_dict()["code"] == "SERVER_ERROR"
    assert store.orders == {}
    assert store.points_transactions == {}
    assert store.balances[USER_ID] == 0
    assert store.products["prod-a"].estoque == 10
    assert store.carts[filled_cart["cartId"]].status == CART_ACTIVE
