"""In-memory implementations of the repository ports.

All repositories share one ``InMemoryStore`` so that a test (or a local demo
without Postgres) sees consistent state across carts, orders and stock.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from entities import (
    CART_ACTIVE, Address, Cart, CartItem, Favorite, Order, OrderItem, PointsTransaction, Product,
    Review, Store,
)
from repositories.ports import Repositories


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryStore:
    """Minimal table storage for tests and demos."""

    def __init__(self) -> None:
        self.lock = threading.RLock()

        self.stores: Dict[str, Store] = {}
        self.products: Dict[str, Product] = {}
        self.reviews: Dict[str, Review] = {}
        self.carts: Dict[str, Cart] = {}
        self.cart_items: Dict[str, CartItem] = {}
        self.addresses: Dict[str, Address] = {}
        self.orders: Dict[str, Order] = {}
        self.order_items: Dict[str, OrderItem] = {}
        self.points_transactions: Dict[str, PointsTransaction] = {}
        self.balances: Dict[str, int] = {}
        self.favorites: Dict[str, Favorite] = {}

    # Seed helpers
    def add_store(self, nome: str, store_id: Optional[str] = None, logo_url: Optional[str] = None) -> Store:
        store = Store(id=store_id or _new_id(), nome=nome, logo_url=logo_url)
        self.stores[store.id] = store
        return store

    def add_product(self, nome: str, preco: float, estoque: int, loja_id: str,
                    product_id: Optional[str] = None, **fields) -> Product:
        fields.setdefault("created_at", datetime.now(timezone.utc))
        product = Product(id=product_id or _new_id(), nome=nome, preco=preco, estoque=estoque,
                          loja_id=loja_id, **fields)
        self.products[product.id] = product
        return product

    def add_review(self, produto_id: str, cliente_id: str, nota: int, comentario: Optional[str] = None) -> Review:
        review = Review(id=_new_id(), produto_id=produto_id, cliente_id=cliente_id, nota=nota,
                        comentario=comentario, created_at=datetime.now(timezone.utc))
        self.reviews[review.id] = review
        return review

    def add_address(self, user_id: str, address_id: Optional[str] = None, **fields) -> Address:
        defaults = dict(nome="Casa", cep="01310-100", logradouro="Avenida Paulista", numero="1000",
                        bairro="Bela Vista", cidade="São Paulo", estado="SP")
        defaults.update(fields)
        address = Address(id=address_id or _new_id(), user_id=user_id, **defaults)
        self.addresses[address.id] = address
        return address

    def repositories(self) -> Repositories:
        return Repositories(
            carts=MemoryCartRepository(self),
            products=MemoryProductRepository(self),
            stores=MemoryStoreRepository(self),
            addresses=MemoryAddressRepository(self),
            orders=MemoryOrderRepository(self),
            points=MemoryPointsRepository(self),
            favorites=MemoryFavoriteRepository(self),
        )


class MemoryCartRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def find_active(self, user_id: str) -> Optional[Cart]:
        for cart in self.store.carts.values():
            if cart.user_id == user_id and cart.status == CART_ACTIVE:
                return replace(cart)
        return None

    def create_active(self, user_id: str) -> Cart:
        with self.store.lock:
            existing = self.find_active(user_id)
            if existing is not None:
                return existing
            cart = Cart(id=_new_id(), user_id=user_id, status=CART_ACTIVE)
            self.store.carts[cart.id] = cart
            return replace(cart)

    def get(self, cart_id: str) -> Optional[Cart]:
        cart = self.store.carts.get(cart_id)
        return replace(cart) if cart else None

    def set_status(self, cart_id: str, status: str) -> None:
        cart = self.store.carts.get(cart_id)
        if cart is not None:
            cart.status = status

    def list_items(self, cart_id: str) -> List[CartItem]:
        return [replace(item) for item in self.store.cart_items.values() if item.cart_id == cart_id]

    def get_item(self, item_id: str) -> Optional[CartItem]:
        item = self.store.cart_items.get(item_id)
        return replace(item) if item else None

    def find_item(self, cart_id: str, product_id: str) -> Optional[CartItem]:
        for item in self.store.cart_items.values():
            if item.cart_id == cart_id and item.product_id == product_id:
                return replace(item)
        return None

    def add_item(self, cart_id: str, product_id: str, quantity: int, price_at_add: float) -> CartItem:
        item = CartItem(id=_new_id(), cart_id=cart_id, product_id=product_id, quantity=quantity,
                        price_at_add=price_at_add)
        self.store.cart_items[item.id] = item
        return replace(item)

    def update_item_quantity(self, item_id: str, quantity: int) -> None:
        item = self.store.cart_items.get(item_id)
        if item is not None:
            item.quantity = quantity

    def delete_item(self, item_id: str) -> None:
        self.store.cart_items.pop(item_id, None)

    def clear_items(self, cart_id: str) -> int:
        doomed = [item_id for item_id, item in self.store.cart_items.items() if item.cart_id == cart_id]
        for item_id in doomed:
            del self.store.cart_items[item_id]
        return len(doomed)


class MemoryProductRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def get(self, product_id: str) -> Optional[Product]:
        product = self.store.products.get(product_id)
        return replace(product) if product else None

    def get_many(self, product_ids: Iterable[str]) -> List[Product]:
        return [replace(self.store.products[pid]) for pid in set(product_ids) if pid in self.store.products]

    def list_recent(self, limit: int) -> List[Product]:
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        ordered = sorted(self.store.products.values(), key=lambda p: p.created_at or epoch, reverse=True)
        return [replace(p) for p in ordered[:limit]]

    def list_popular(self, limit: int) -> List[Product]:
        rated = sorted(
            self.store.products.values(),
            key=lambda p: (p.avaliacao is not None, p.avaliacao or 0.0),
            reverse=True,
        )
        return [replace(p) for p in rated[:limit]]

    def list_reviews(self, product_id: str) -> List[Review]:
        return [replace(r) for r in self.store.reviews.values() if r.produto_id == product_id]

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        with self.store.lock:
            product = self.store.products.get(product_id)
            if product is None or product.estoque < quantity:
                return False
            product.estoque -= quantity
            return True

    def increment_stock(self, product_id: str, quantity: int) -> None:
        with self.store.lock:
            product = self.store.products.get(product_id)
            if product is not None:
                product.estoque += quantity


class MemoryStoreRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def get(self, store_id: str) -> Optional[Store]:
        found = self.store.stores.get(store_id)
        return replace(found) if found else None

    def get_many(self, store_ids: Iterable[str]) -> List[Store]:
        return [replace(self.store.stores[sid]) for sid in set(store_ids) if sid in self.store.stores]


class MemoryAddressRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def get_for_user(self, address_id: str, user_id: str) -> Optional[Address]:
        address = self.store.addresses.get(address_id)
        if address is None or address.user_id != user_id:
            return None
        return replace(address)


class MemoryOrderRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def create(self, order: Order) -> Order:
        saved = replace(order, id=_new_id(), created_at=datetime.now(timezone.utc))
        self.store.orders[saved.id] = saved
        return replace(saved)

    def get(self, order_id: str) -> Optional[Order]:
        order = self.store.orders.get(order_id)
        return replace(order) if order else None

    def delete(self, order_id: str) -> None:
        self.store.orders.pop(order_id, None)

    def add_items(self, items: List[OrderItem]) -> List[OrderItem]:
        for item in items:
            item.id = _new_id()
            self.store.order_items[item.id] = replace(item)
        return items

    def list_items(self, order_id: str) -> List[OrderItem]:
        return [replace(i) for i in self.store.order_items.values() if i.order_id == order_id]

    def delete_items(self, order_id: str) -> None:
        doomed = [i.id for i in self.store.order_items.values() if i.order_id == order_id]
        for item_id in doomed:
            del self.store.order_items[item_id]


class MemoryPointsRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def add_transaction(self, transaction: PointsTransaction) -> PointsTransaction:
        transaction.id = _new_id()
        self.store.points_transactions[transaction.id] = replace(transaction)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        self.store.points_transactions.pop(transaction_id, None)

    def add_to_balance(self, user_id: str, points: int) -> None:
        with self.store.lock:
            self.store.balances[user_id] = self.store.balances.get(user_id, 0) + points

    def get_balance(self, user_id: str) -> int:
        return self.store.balances.get(user_id, 0)


class MemoryFavoriteRepository:

    def __init__(self, store: InMemoryStore):
        self.store = store

    def find(self, user_id: str, product_id: str) -> Optional[Favorite]:
        for favorite in self.store.favorites.values():
            if favorite.user_id == user_id and favorite.produto_id == product_id:
                return replace(favorite)
        return None

    def add(self, user_id: str, product_id: str) -> Favorite:
        favorite = Favorite(id=_new_id(), user_id=user_id, produto_id=product_id,
                            data_adicionado=datetime.now(timezone.utc))
        self.store.favorites[favorite.id] = favorite
        return replace(favorite)

    def remove(self, user_id: str, product_id: str) -> None:
        doomed = [f.id for f in self.store.favorites.values()
                  if f.user_id == user_id and f.produto_id == product_id]
        for favorite_id in doomed:
            del self.store.favorites[favorite_id]
