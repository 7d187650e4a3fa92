"""Database models for the marketplace tables."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text,
    UniqueConstraint, text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Store(Base):
    """Vendor storefront."""
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=new_id)
    nome = Column(String, nullable=False)
    descricao = Column(Text)
    logo_url = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Product(Base):
    """Catalog product."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    nome = Column(String, nullable=False, index=True)
    descricao = Column(Text)
    preco = Column(Float, nullable=False)
    estoque = Column(Integer, nullable=False, default=0)
    categoria = Column(String)
    imagem_url = Column(String)
    avaliacao = Column(Float)
    loja_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class ProductReview(Base):
    """Customer review of a product."""
    __tablename__ = "product_reviews"

    id = Column(String(36), primary_key=True, default=new_id)
    produto_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    cliente_id = Column(String(36), nullable=False)
    nota = Column(Integer, nullable=False)
    comentario = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Cart(Base):
    """Shopping cart; at most one active cart per user."""
    __tablename__ = "carts"
    __table_args__ = (
        Index(
            "uq_carts_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class CartItem(Base):
    """Cart line item."""
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="uq_cart_items_product"),)

    id = Column(String(36), primary_key=True, default=new_id)
    cart_id = Column(String(36), ForeignKey("carts.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price_at_add = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class UserAddress(Base):
    """Delivery address owned by a user."""
    __tablename__ = "user_addresses"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    nome = Column(String, nullable=False)
    cep = Column(String, nullable=False)
    logradouro = Column(String, nullable=False)
    numero = Column(String, nullable=False)
    complemento = Column(String)
    bairro = Column(String, nullable=False)
    cidade = Column(String, nullable=False)
    estado = Column(String, nullable=False)
    principal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Order(Base):
    """Placed order."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    cliente_id = Column(String(36), nullable=False, index=True)
    endereco_entrega = Column(JSON, nullable=False)
    forma_pagamento = Column(String, nullable=False)
    status = Column(String, nullable=False)
    valor_total = Column(Float, nullable=False)
    pontos_ganhos = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class OrderItem(Base):
    """Snapshot of a cart line at purchase time."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    produto_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantidade = Column(Integer, nullable=False)
    preco_unitario = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class PointsTransaction(Base):
    """Append-only reward points ledger."""
    __tablename__ = "points_transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    pontos = Column(Integer, nullable=False)
    tipo = Column(String, nullable=False)
    descricao = Column(String, nullable=False)
    referencia_id = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Profile(Base):
    """User profile holding the aggregate points balance."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    nome = Column(String)
    saldo_pontos = Column(Integer, nullable=False, default=0)


class Favorite(Base):
    """Product bookmarked by a user."""
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "produto_id", name="uq_favorites_user_product"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    produto_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    data_adicionado = Column(DateTime(timezone=True), default=utcnow)
