"""Repository interfaces consumed by the marketplace services.

Each protocol covers one table (or one group of tables owned by the same
entity). Services only see these interfaces, so the SQLAlchemy
implementations in ``repositories.sql`` and the in-memory ones in
``repositories.memory`` are interchangeable.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from entities import (
    Address, Cart, CartItem, Favorite, Order, OrderItem, PointsTransaction, Product, Review, Store,
)


class CartRepository(Protocol):

    def find_active(self, user_id: str) -> Optional[Cart]: ...

    def create_active(self, user_id: str) -> Cart:
        """Insert an active cart, returning the existing one if another request won the race."""
        ...

    def get(self, cart_id: str) -> Optional[Cart]: ...

    def set_status(self, cart_id: str, status: str) -> None: ...

    def list_items(self, cart_id: str) -> List[CartItem]: ...

    def get_item(self, item_id: str) -> Optional[CartItem]: ...

    def find_item(self, cart_id: str, product_id: str) -> Optional[CartItem]: ...

    def add_item(self, cart_id: str, product_id: str, quantity: int, price_at_add: float) -> CartItem: ...

    def update_item_quantity(self, item_id: str, quantity: int) -> None: ...

    def delete_item(self, item_id: str) -> None: ...

    def clear_items(self, cart_id: str) -> int: ...


class ProductRepository(Protocol):

    def get(self, product_id: str) -> Optional[Product]: ...

    def get_many(self, product_ids: Iterable[str]) -> List[Product]: ...

    def list_recent(self, limit: int) -> List[Product]: ...

    def list_popular(self, limit: int) -> List[Product]: ...

    def list_reviews(self, product_id: str) -> List[Review]: ...

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Decrement ``estoque`` only if at least ``quantity`` remains; report whether it did."""
        ...

    def increment_stock(self, product_id: str, quantity: int) -> None: ...


class StoreRepository(Protocol):

    def get(self, store_id: str) -> Optional[Store]: ...

    def get_many(self, store_ids: Iterable[str]) -> List[Store]: ...


class AddressRepository(Protocol):

    def get_for_user(self, address_id: str, user_id: str) -> Optional[Address]: ...


class OrderRepository(Protocol):

    def create(self, order: Order) -> Order: ...

    def get(self, order_id: str) -> Optional[Order]: ...

    def delete(self, order_id: str) -> None: ...

    def add_items(self, items: List[OrderItem]) -> List[OrderItem]: ...

    def list_items(self, order_id: str) -> List[OrderItem]: ...

    def delete_items(self, order_id: str) -> None: ...


class PointsRepository(Protocol):

    def add_transaction(self, transaction: PointsTransaction) -> PointsTransaction: ...

    def delete_transaction(self, transaction_id: str) -> None: ...

    def add_to_balance(self, user_id: str, points: int) -> None:
        """Equivalent of the ``update_user_points`` procedure; negative values subtract."""
        ...

    def get_balance(self, user_id: str) -> int: ...


class FavoriteRepository(Protocol):

    def find(self, user_id: str, product_id: str) -> Optional[Favorite]: ...

    def add(self, user_id: str, product_id: str) -> Favorite: ...

    def remove(self, user_id: str, product_id: str) -> None: ...


@dataclass
class Repositories:
    """Bundle handed to the services by the dependency layer."""

    carts: CartRepository
    products: ProductRepository
    stores: StoreRepository
    addresses: AddressRepository
    orders: OrderRepository
    points: PointsRepository
    favorites: FavoriteRepository
