"""Product catalog queries."""
import logging
from typing import Any, Dict, Optional

from config import POPULAR_PRODUCTS_LIMIT, RECENT_PRODUCTS_LIMIT
from errors import NotFoundError, ValidationError
from repositories.ports import Repositories

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only product listings and product details."""

    def __init__(self, repositories: Repositories):
        self.products = repositories.products
        self.stores = repositories.stores

    def get_recent_products(self, limit: int = RECENT_PRODUCTS_LIMIT) -> Dict[str, Any]:
        """Newest products first."""
        return {"products": [p.to_dict() for p in self.products.list_recent(limit)]}

    def get_popular_products(self, limit: int = POPULAR_PRODUCTS_LIMIT) -> Dict[str, Any]:
        """Best rated products first; unrated products sort last."""
        return {"products": [p.to_dict() for p in self.products.list_popular(limit)]}

    def get_product_details(self, product_id: Optional[str]) -> Dict[str, Any]:
        """
        Get a product with its reviews and store.

        Args:
            product_id: Product identifier

        Returns:
            ``{product, store}``; ``store`` is None when it cannot be loaded

        Raises:
            ValidationError: If product_id is missing
            NotFoundError: If the product does not exist
        """
        if not product_id:
            raise ValidationError("Product ID is required")

        product = self.products.get(product_id)
        if product is None:
            raise NotFoundError("Product not found")

        details = product.to_dict()
        details["product_reviews"] = [r.to_dict() for r in self.products.list_reviews(product_id)]

        store = None
        try:
            found = self.stores.get(product.loja_id)
        except Exception as e:
            logger.warning("Error fetching store information", extra={
                "product_id": product_id,
                "store_id": product.loja_id,
                "error": str(e)
            })
        else:
            if found is None:
                logger.warning("Store not found for product", extra={
                    "product_id": product_id,
                    "store_id": product.loja_id
                })
            else:
                store = found.to_dict()

        return {"product": details, "store": store}
