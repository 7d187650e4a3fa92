"""Tests for the SQLAlchemy repositories on SQLite."""
from unittest import mock

import pytest
from sqlalchemy.exc import IntegrityError

import models
from entities import CART_ACTIVE, CART_CONVERTED, Order, OrderItem, PointsTransaction
from repositories.sql import SqlOrderRepository, sql_repositories
from services.cart_service import CartService
from services.checkout_service import CheckoutService
from errors import OutOfStockError, RepositoryError

USER_ID = "user-1"


@pytest.fixture
def sql_repos(db):
    db.add(models.Store(id="loja-1", nome="Loja Central"))
    db.add_all([
        models.Product(id="prod-a", nome="Produto A", preco=10.0, estoque=10, loja_id="loja-1", avaliacao=4.5),
        models.Product(id="prod-b", nome="Produto B", preco=5.0, estoque=5, loja_id="loja-1"),
        models.Product(id="prod-c", nome="Produto C", preco=20.0, estoque=3, loja_id="loja-1", avaliacao=4.9),
    ])
    db.add(models.UserAddress(
        id="addr-1", user_id=USER_ID, nome="Casa", cep="01310-100", logradouro="Avenida Paulista",
        numero="1000", bairro="Bela Vista", cidade="São Paulo", estado="SP",
    ))
    db.commit()
    return sql_repositories(db)


def test_create_active_returns_existing_cart(sql_repos):
    first = sql_repos.carts.create_active(USER_ID)
    second = sql_repos.carts.create_active(USER_ID)

    assert first.id == second.id
    assert sql_repos.carts.find_active(USER_ID).id == first.id


def test_converted_cart_allows_new_active_cart(sql_repos):
    first = sql_repos.carts.create_active(USER_ID)
    sql_repos.carts.set_status(first.id, CART_CONVERTED)

    second = sql_repos.carts.create_active(USER_ID)

    assert second.id != first.id
    assert sql_repos.carts.get(first.id).status == CART_CONVERTED


def test_cart_items_round_trip(sql_repos):
    cart = sql_repos.carts.create_active(USER_ID)
    item = sql_repos.carts.add_item(cart.id, "prod-a", 2, 10.0)

    sql_repos.carts.update_item_quantity(item.id, 3)

    assert sql_repos.carts.find_item(cart.id, "prod-a").quantity == 3
    assert sql_repos.carts.clear_items(cart.id) == 1
    assert sql_repos.carts.list_items(cart.id) == []


def test_decrement_stock_is_conditional(sql_repos):
    assert sql_repos.products.decrement_stock("prod-c", 2) is True
    assert sql_repos.products.decrement_stock("prod-c", 2) is False
    assert sql_repos.products.get("prod-c").estoque == 1

    sql_repos.products.increment_stock("prod-c", 2)
    assert sql_repos.products.get("prod-c").estoque == 3


def test_list_popular_puts_unrated_last(sql_repos):
    assert [p.id for p in sql_repos.products.list_popular(10)] == ["prod-c", "prod-a", "prod-b"]


def test_address_is_scoped_to_owner(sql_repos):
    assert sql_repos.addresses.get_for_user("addr-1", USER_ID).cidade == "São Paulo"
    assert sql_repos.addresses.get_for_user("addr-1", "user-2") is None


def test_points_balance_creates_profile(sql_repos, db):
    sql_repos.points.add_to_balance(USER_ID, 50)
    sql_repos.points.add_to_balance(USER_ID, -20)

    assert sql_repos.points.get_balance(USER_ID) == 30
    assert db.get(models.Profile, USER_ID).saldo_pontos == 30


def test_points_transaction_delete(sql_repos, db):
    transaction = sql_repos.points.add_transaction(PointsTransaction(
        user_id=USER_ID, pontos=10, tipo="compra", descricao="Pontos por compra #x"
    ))
    assert transaction.id

    sql_repos.points.delete_transaction(transaction.id)

    assert db.query(models.PointsTransaction).count() == 0


def test_order_with_items(sql_repos):
    order = sql_repos.orders.create(Order(
        cliente_id=USER_ID, endereco_entrega={"id": "addr-1"}, forma_pagamento="pix",
        valor_total=25.9, pontos_ganhos=20,
    ))

    assert order.id
    assert sql_repos.orders.get(order.id).endereco_entrega == {"id": "addr-1"}

    sql_repos.orders.delete(order.id)
    assert sql_repos.orders.get(order.id) is None


def test_favorites_unique_per_user_and_product(sql_repos):
    sql_repos.favorites.add(USER_ID, "prod-a")

    assert sql_repos.favorites.find(USER_ID, "prod-a") is not None
    sql_repos.favorites.remove(USER_ID, "prod-a")
    assert sql_repos.favorites.find(USER_ID, "prod-a") is None


def test_checkout_end_to_end(sql_repos, db):
    cart_service = CartService(sql_repos)
    checkout = CheckoutService(sql_repos, cart_service)
    cart_service.add_to_cart(USER_ID, "prod-a", 2)
    cart_id = cart_service.add_to_cart(USER_ID, "prod-b", 1)["cartId"]

    result = checkout.checkout(USER_ID, "addr-1", "pix")

    order = sql_repos.orders.get(result["orderId"])
    assert order.valor_total == 40.9
    assert order.pontos_ganhos == 50
    assert len(sql_repos.orders.list_items(order.id)) == 2
    assert sql_repos.products.get("prod-a").estoque == 8
    assert sql_repos.points.get_balance(USER_ID) == 50
    assert sql_repos.carts.get(cart_id).status == CART_CONVERTED
    assert cart_service.get_cart(USER_ID)["cartId"] != cart_id


def test_checkout_out_of_stock_leaves_no_order(sql_repos, db):
    cart_service = CartService(sql_repos)
    checkout = CheckoutService(sql_repos, cart_service)
    cart_service.add_to_cart(USER_ID, "prod-a", 2)
    cart_service.add_to_cart(USER_ID, "prod-c", 3)
    sql_repos.products.decrement_stock("prod-c", 2)

    with pytest.raises(OutOfStockError):
        checkout.checkout(USER_ID, "addr-1", "pix")

    assert db.query(models.Order).count() == 0
    assert db.query(models.OrderItem).count() == 0
    assert sql_repos.products.get("prod-a").estoque == 10
    assert sql_repos.products.get("prod-c").estoque == 1


def test_failed_write_leaves_session_usable(sql_repos):
    with pytest.raises(IntegrityError):
        sql_repos.orders.add_items([
            OrderItem(order_id="order-x", produto_id=None, quantidade=1, preco_unitario=1.0, subtotal=1.0)
        ])

    assert sql_repos.products.decrement_stock("prod-a", 1) is True
    assert sql_repos.products.get("prod-a").estoque == 9


def test_checkout_compensates_after_failed_commit(sql_repos, db):
    cart_service = CartService(sql_repos)
    checkout = CheckoutService(sql_repos, cart_service)
    cart_id = cart_service.add_to_cart(USER_ID, "prod-a", 2)["cartId"]
    add_items = SqlOrderRepository.add_items

    def add_items_missing_subtotal(self, items):
        for item in items:
            item.subtotal = None
        return add_items(self, items)

    with mock.patch.object(SqlOrderRepository, "add_items", add_items_missing_subtotal):
        with pytest.raises(RepositoryError):
            checkout.checkout(USER_ID, "addr-1", "pix")

    assert db.query(models.Order).count() == 0
    assert db.query(models.OrderItem).count() == 0
    assert sql_repos.products.get("prod-a").estoque == 10
    assert sql_repos.carts.get(cart_id).status == CART_ACTIVE
