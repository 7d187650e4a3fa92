"""Tests for catalog queries and favorites."""
from datetime import datetime, timedelta, timezone

import pytest

from errors import NotFoundError, ValidationError
from services.catalog_service import CatalogService
from services.favorites_service import FavoritesService

USER_ID = "user-1"


@pytest.fixture
def catalog(repos):
    return CatalogService(repos)


@pytest.fixture
def favorites(repos):
    return FavoritesService(repos)


def test_recent_products_newest_first(catalog, store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for offset, product_id in enumerate(["prod-c", "prod-a", "prod-b"]):
        store.products[product_id].created_at = base + timedelta(days=offset)

    result = catalog.get_recent_products()

    assert [p["id"] for p in result["products"]] == ["prod-b", "prod-a", "prod-c"]


def test_recent_products_limited_to_ten(catalog, store):
    for n in range(12):
        store.add_product(f"Extra {n}", preco=1.0, estoque=1, loja_id="loja-1")

    assert len(catalog.get_recent_products()["products"]) == 10


def test_popular_products_by_rating_unrated_last(catalog):
    result = catalog.get_popular_products()

    assert [p["id"] for p in result["products"]] == ["prod-a", "prod-b", "prod-c"]


def test_product_details_with_reviews_and_store(catalog, store):
    store.add_review("prod-a", "user-9", 5, "Excelente")
    store.add_review("prod-b", "user-9", 2)

    result = catalog.get_product_details("prod-a")

    assert result["product"]["id"] == "prod-a"
    assert result["product"]["nome"] == "Produto A"
    assert [r["nota"] for r in result["product"]["product_reviews"]] == [5]
    assert result["store"]["id"] == "loja-1"
    assert result["store"]["nome"] == "Loja Central"


def test_product_details_missing_store_is_null(catalog, store):
    del store.stores["loja-1"]

    result = catalog.get_product_details("prod-a")

    assert result["store"] is None
    assert result["product"]["product_reviews"] == []


def test_product_details_store_error_is_null(catalog):
    def boom(store_id):
        raise RuntimeError("stores table unavailable")

    catalog.stores.get = boom

    assert catalog.get_product_details("prod-a")["store"] is None


def test_product_details_requires_id(catalog):
    with pytest.raises(ValidationError, match="Product ID is required"):
        catalog.get_product_details(None)


def test_product_details_unknown_product(catalog):
    with pytest.raises(NotFoundError, match="Product not found"):
        catalog.get_product_details("missing")


def test_add_to_favorites(favorites, store):
    result = favorites.add_to_favorites(USER_ID, "prod-a")

    assert result == {"success": True, "message": "Added to favorites successfully"}
    [favorite] = store.favorites.values()
    assert favorite.user_id == USER_ID
    assert favorite.produto_id == "prod-a"
    assert favorite.data_adicionado is not None


def test_add_to_favorites_twice(favorites, store):
    favorites.add_to_favorites(USER_ID, "prod-a")

    assert favorites.add_to_favorites(USER_ID, "prod-a") == {"message": "Product is already in favorites"}
    assert len(store.favorites) == 1


def test_remove_from_favorites(favorites, store):
    favorites.add_to_favorites(USER_ID, "prod-a")
    favorites.add_to_favorites("user-2", "prod-a")

    result = favorites.remove_from_favorites(USER_ID, "prod-a")

    assert result == {"success": True, "message": "Removed from favorites successfully"}
    assert [f.user_id for f in store.favorites.values()] == ["user-2"]


@pytest.mark.parametrize("method", ["add_to_favorites", "remove_from_favorites"])
def test_favorites_require_product_id(favorites, method):
    with pytest.raises(ValidationError, match="Product ID is required"):
        getattr(favorites, method)(USER_ID, "")
