"""SQLAlchemy implementations of the repository ports.

Every write commits immediately, mirroring the one-statement-per-call
behaviour of the backend's REST tables. Multi-step consistency is the
responsibility of the checkout saga, not of these repositories.
"""
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
from entities import (
    CART_ACTIVE, Address, Cart, CartItem, Favorite, Order, OrderItem, PointsTransaction, Product,
    Review, Store,
)
from repositories.ports import Repositories

logger = logging.getLogger(__name__)


def _product(row: models.Product) -> Product:
    return Product(
        id=row.id,
        nome=row.nome,
        preco=row.preco,
        estoque=row.estoque,
        loja_id=row.loja_id,
        categoria=row.categoria,
        imagem_url=row.imagem_url,
        descricao=row.descricao,
        avaliacao=row.avaliacao,
        created_at=row.created_at,
    )


def _cart_item(row: models.CartItem) -> CartItem:
    return CartItem(
        id=row.id,
        cart_id=row.cart_id,
        product_id=row.product_id,
        quantity=row.quantity,
        price_at_add=row.price_at_add,
    )


def _order(row: models.Order) -> Order:
    return Order(
        id=row.id,
        cliente_id=row.cliente_id,
        endereco_entrega=row.endereco_entrega,
        forma_pagamento=row.forma_pagamento,
        status=row.status,
        valor_total=row.valor_total,
        pontos_ganhos=row.pontos_ganhos,
        created_at=row.created_at,
    )


class SqlRepository:
    """Base for repositories sharing one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _write(self) -> Iterator[None]:
        """
        Commit the statements issued inside the block.

        On a database error the session is rolled back before re-raising,
        so the next write (e.g. a saga compensation) starts clean.
        """
        try:
            yield
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class SqlCartRepository(SqlRepository):

    def find_active(self, user_id: str) -> Optional[Cart]:
        row = (
            self.db.query(models.Cart)
            .filter(models.Cart.user_id == user_id, models.Cart.status == CART_ACTIVE)
            .first()
        )
        return Cart(id=row.id, user_id=row.user_id, status=row.status) if row else None

    def create_active(self, user_id: str) -> Cart:
        row = models.Cart(user_id=user_id, status=CART_ACTIVE)
        try:
            with self._write():
                self.db.add(row)
        except IntegrityError:
            # Partial unique index: a concurrent request created the cart first
            logger.info("Active cart created concurrently, reusing it", extra={"user_id": user_id})
            existing = self.find_active(user_id)
            if existing is None:
                raise
            return existing
        return Cart(id=row.id, user_id=row.user_id, status=row.status)

    def get(self, cart_id: str) -> Optional[Cart]:
        row = self.db.get(models.Cart, cart_id)
        return Cart(id=row.id, user_id=row.user_id, status=row.status) if row else None

    def set_status(self, cart_id: str, status: str) -> None:
        with self._write():
            self.db.execute(update(models.Cart).where(models.Cart.id == cart_id).values(status=status))

    def list_items(self, cart_id: str) -> List[CartItem]:
        rows = (
            self.db.query(models.CartItem)
            .filter(models.CartItem.cart_id == cart_id)
            .order_by(models.CartItem.created_at)
            .all()
        )
        return [_cart_item(row) for row in rows]

    def get_item(self, item_id: str) -> Optional[CartItem]:
        row = self.db.get(models.CartItem, item_id)
        return _cart_item(row) if row else None

    def find_item(self, cart_id: str, product_id: str) -> Optional[CartItem]:
        row = (
            self.db.query(models.CartItem)
            .filter(models.CartItem.cart_id == cart_id, models.CartItem.product_id == product_id)
            .first()
        )
        return _cart_item(row) if row else None

    def add_item(self, cart_id: str, product_id: str, quantity: int, price_at_add: float) -> CartItem:
        row = models.CartItem(
            cart_id=cart_id, product_id=product_id, quantity=quantity, price_at_add=price_at_add
        )
        with self._write():
            self.db.add(row)
        return _cart_item(row)

    def update_item_quantity(self, item_id: str, quantity: int) -> None:
        with self._write():
            self.db.execute(
                update(models.CartItem).where(models.CartItem.id == item_id).values(quantity=quantity)
            )

    def delete_item(self, item_id: str) -> None:
        with self._write():
            self.db.query(models.CartItem).filter(models.CartItem.id == item_id).delete()

    def clear_items(self, cart_id: str) -> int:
        with self._write():
            deleted = self.db.query(models.CartItem).filter(models.CartItem.cart_id == cart_id).delete()
        return deleted


class SqlProductRepository(SqlRepository):

    def get(self, product_id: str) -> Optional[Product]:
        row = self.db.get(models.Product, product_id)
        return _product(row) if row else None

    def get_many(self, product_ids: Iterable[str]) -> List[Product]:
        ids = list(set(product_ids))
        if not ids:
            return []
        rows = self.db.query(models.Product).filter(models.Product.id.in_(ids)).all()
        return [_product(row) for row in rows]

    def list_recent(self, limit: int) -> List[Product]:
        rows = (
            self.db.query(models.Product)
            .order_by(models.Product.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_product(row) for row in rows]

    def list_popular(self, limit: int) -> List[Product]:
        rows = (
            self.db.query(models.Product)
            .order_by(models.Product.avaliacao.desc().nulls_last())
            .limit(limit)
            .all()
        )
        return [_product(row) for row in rows]

    def list_reviews(self, product_id: str) -> List[Review]:
        rows = (
            self.db.query(models.ProductReview)
            .filter(models.ProductReview.produto_id == product_id)
            .order_by(models.ProductReview.created_at.desc())
            .all()
        )
        return [
            Review(
                id=row.id,
                produto_id=row.produto_id,
                cliente_id=row.cliente_id,
                nota=row.nota,
                comentario=row.comentario,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        with self._write():
            result = self.db.execute(
                update(models.Product)
                .where(models.Product.id == product_id, models.Product.estoque >= quantity)
                .values(estoque=models.Product.estoque - quantity)
            )
        return result.rowcount == 1

    def increment_stock(self, product_id: str, quantity: int) -> None:
        with self._write():
            self.db.execute(
                update(models.Product)
                .where(models.Product.id == product_id)
                .values(estoque=models.Product.estoque + quantity)
            )


class SqlStoreRepository(SqlRepository):

    @staticmethod
    def _store(row: models.Store) -> Store:
        return Store(id=row.id, nome=row.nome, logo_url=row.logo_url, descricao=row.descricao)

    def get(self, store_id: str) -> Optional[Store]:
        row = self.db.get(models.Store, store_id)
        return self._store(row) if row else None

    def get_many(self, store_ids: Iterable[str]) -> List[Store]:
        ids = list(set(store_ids))
        if not ids:
            return []
        rows = self.db.query(models.Store).filter(models.Store.id.in_(ids)).all()
        return [self._store(row) for row in rows]


class SqlAddressRepository(SqlRepository):

    def get_for_user(self, address_id: str, user_id: str) -> Optional[Address]:
        row = (
            self.db.query(models.UserAddress)
            .filter(models.UserAddress.id == address_id, models.UserAddress.user_id == user_id)
            .first()
        )
        if row is None:
            return None
        return Address(
            id=row.id,
            user_id=row.user_id,
            nome=row.nome,
            cep=row.cep,
            logradouro=row.logradouro,
            numero=row.numero,
            bairro=row.bairro,
            cidade=row.cidade,
            estado=row.estado,
            complemento=row.complemento,
            principal=row.principal,
        )


class SqlOrderRepository(SqlRepository):

    def create(self, order: Order) -> Order:
        row = models.Order(
            cliente_id=order.cliente_id,
            endereco_entrega=order.endereco_entrega,
            forma_pagamento=order.forma_pagamento,
            status=order.status,
            valor_total=order.valor_total,
            pontos_ganhos=order.pontos_ganhos,
        )
        with self._write():
            self.db.add(row)
        return _order(row)

    def get(self, order_id: str) -> Optional[Order]:
        row = self.db.get(models.Order, order_id)
        return _order(row) if row else None

    def delete(self, order_id: str) -> None:
        with self._write():
            self.db.query(models.Order).filter(models.Order.id == order_id).delete()

    def add_items(self, items: List[OrderItem]) -> List[OrderItem]:
        rows = [
            models.OrderItem(
                order_id=item.order_id,
                produto_id=item.produto_id,
                quantidade=item.quantidade,
                preco_unitario=item.preco_unitario,
                subtotal=item.subtotal,
            )
            for item in items
        ]
        with self._write():
            self.db.add_all(rows)
        for item, row in zip(items, rows):
            item.id = row.id
        return items

    def list_items(self, order_id: str) -> List[OrderItem]:
        rows = self.db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).all()
        return [
            OrderItem(
                id=row.id,
                order_id=row.order_id,
                produto_id=row.produto_id,
                quantidade=row.quantidade,
                preco_unitario=row.preco_unitario,
                subtotal=row.subtotal,
            )
            for row in rows
        ]

    def delete_items(self, order_id: str) -> None:
        with self._write():
            self.db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).delete()


class SqlPointsRepository(SqlRepository):

    def add_transaction(self, transaction: PointsTransaction) -> PointsTransaction:
        row = models.PointsTransaction(
            user_id=transaction.user_id,
            pontos=transaction.pontos,
            tipo=transaction.tipo,
            descricao=transaction.descricao,
            referencia_id=transaction.referencia_id,
        )
        with self._write():
            self.db.add(row)
        transaction.id = row.id
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        with self._write():
            self.db.query(models.PointsTransaction).filter(
                models.PointsTransaction.id == transaction_id
            ).delete()

    def add_to_balance(self, user_id: str, points: int) -> None:
        with self._write():
            result = self.db.execute(
                update(models.Profile)
                .where(models.Profile.id == user_id)
                .values(saldo_pontos=models.Profile.saldo_pontos + points)
            )
            if result.rowcount == 0:
                self.db.add(models.Profile(id=user_id, saldo_pontos=points))

    def get_balance(self, user_id: str) -> int:
        row = self.db.get(models.Profile, user_id)
        return row.saldo_pontos if row else 0


class SqlFavoriteRepository(SqlRepository):

    def find(self, user_id: str, product_id: str) -> Optional[Favorite]:
        row = (
            self.db.query(models.Favorite)
            .filter(models.Favorite.user_id == user_id, models.Favorite.produto_id == product_id)
            .first()
        )
        if row is None:
            return None
        return Favorite(
            id=row.id, user_id=row.user_id, produto_id=row.produto_id,
            data_adicionado=row.data_adicionado,
        )

    def add(self, user_id: str, product_id: str) -> Favorite:
        row = models.Favorite(user_id=user_id, produto_id=product_id)
        with self._write():
            self.db.add(row)
        return Favorite(
            id=row.id, user_id=row.user_id, produto_id=row.produto_id,
            data_adicionado=row.data_adicionado,
        )

    def remove(self, user_id: str, product_id: str) -> None:
        with self._write():
            self.db.query(models.Favorite).filter(
                models.Favorite.user_id == user_id, models.Favorite.produto_id == product_id
            ).delete()


def sql_repositories(db: Session) -> Repositories:
    """Build the repository bundle over one database session."""
    return Repositories(
        carts=SqlCartRepository(db),
        products=SqlProductRepository(db),
        stores=SqlStoreRepository(db),
        addresses=SqlAddressRepository(db),
        orders=SqlOrderRepository(db),
        points=SqlPointsRepository(db),
        favorites=SqlFavoriteRepository(db),
    )
