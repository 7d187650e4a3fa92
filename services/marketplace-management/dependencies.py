"""Dependency injection for services."""
import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from repositories.ports import Repositories
from repositories.sql import sql_repositories
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.checkout_service import CheckoutService
from services.favorites_service import FavoritesService
from services.identity_service import IdentityServiceClient


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get HTTP client from app state."""
    return request.app.state.http_client


def get_identity_client(
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> IdentityServiceClient:
    """Get identity service client."""
    return IdentityServiceClient(http_client)


def get_repositories(db: Session = Depends(get_db)) -> Repositories:
    """Get the repository bundle bound to the request's session."""
    return sql_repositories(db)


def get_cart_service(repositories: Repositories = Depends(get_repositories)) -> CartService:
    """Get cart service instance."""
    return CartService(repositories)


def get_checkout_service(
    repositories: Repositories = Depends(get_repositories),
    cart_service: CartService = Depends(get_cart_service)
) -> CheckoutService:
    """Get checkout service instance."""
    return CheckoutService(repositories, cart_service)


def get_catalog_service(repositories: Repositories = Depends(get_repositories)) -> CatalogService:
    """Get catalog service instance."""
    return CatalogService(repositories)


def get_favorites_service(repositories: Repositories = Depends(get_repositories)) -> FavoritesService:
    """Get favorites service instance."""
    return FavoritesService(repositories)
