"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
import logging

from config import DATABASE_URL, SEED_DATABASE
from models import Base, Product, Profile, Store, UserAddress

logger = logging.getLogger(__name__)


def build_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine; pool settings only apply to server databases."""
    if url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory database: every session must share the one connection
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,
        pool_timeout=30,
    )


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = engine, seed: bool = SEED_DATABASE) -> None:
    """Create missing tables and optionally seed a demo catalog."""
    Base.metadata.create_all(bind=bind)

    if not seed:
        return

    db = Session(bind=bind)
    try:
        if db.query(Product).count() == 0:
            seed_demo_data(db)
            logger.info("Seeded database with demo catalog")
    finally:
        db.close()


def seed_demo_data(db: Session) -> None:
    """Insert a small catalog, one profile and one address for local runs."""
    loja = Store(id="00000000-0000-0000-0000-000000000001", nome="Casa & Construção", logo_url=None)
    db.add(loja)
    db.add_all([
        Product(nome="Piso Porcelanato 60x60", preco=89.90, estoque=120, categoria="Pisos",
                avaliacao=4.7, loja_id=loja.id),
        Product(nome="Argamassa AC-II 20kg", preco=32.50, estoque=300, categoria="Argamassas",
                avaliacao=4.2, loja_id=loja.id),
        Product(nome="Rejunte Flexível 1kg", preco=18.90, estoque=250, categoria="Rejuntes",
                avaliacao=4.5, loja_id=loja.id),
        Product(nome="Revestimento Cerâmico 30x60", preco=54.00, estoque=80, categoria="Revestimentos",
                avaliacao=4.8, loja_id=loja.id),
        Product(nome="Espaçador 3mm (100un)", preco=9.90, estoque=500, categoria="Acessórios",
                avaliacao=3.9, loja_id=loja.id),
    ])
    demo_user = "00000000-0000-0000-0000-0000000000aa"
    db.add(Profile(id=demo_user, nome="Cliente Demo", saldo_pontos=0))
    db.add(UserAddress(
        user_id=demo_user, nome="Casa", cep="01310-100", logradouro="Avenida Paulista",
        numero="1000", bairro="Bela Vista", cidade="São Paulo", estado="SP", principal=True,
    ))
    db.commit()
