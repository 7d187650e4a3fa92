"""Pytest fixtures for the marketplace-management service."""
import os

# Must be set before config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("PYROSCOPE_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import models
from repositories.memory import InMemoryStore
from services.cart_service import CartService
from services.checkout_service import CheckoutService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()

    store.add_store("Loja Central", store_id="loja-1", logo_url="https://cdn.example.com/loja-1.png")

    store.add_product("Produto A", preco=10.00, estoque=10, loja_id="loja-1", product_id="prod-a",
                      categoria="Pisos", avaliacao=4.5)
    store.add_product("Produto B", preco=5.00, estoque=5, loja_id="loja-1", product_id="prod-b",
                      categoria="Rejuntes", avaliacao=3.0)
    store.add_product("Produto C", preco=20.00, estoque=3, loja_id="loja-1", product_id="prod-c",
                      categoria="Acessórios")

    store.add_address(USER_ID, address_id="addr-1")
    store.add_address(OTHER_USER_ID, address_id="addr-2")

    return store


@pytest.fixture
def repos(store):
    return store.repositories()


@pytest.fixture
def cart_service(repos) -> CartService:
    return CartService(repos)


@pytest.fixture
def checkout_service(repos, cart_service) -> CheckoutService:
    return CheckoutService(repos, cart_service, strict_points=False, strict_cart=False)


@pytest.fixture
def db():
    """Fresh in-memory SQLite database with every table created."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    models.Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
