"""User favorites."""
import logging
from typing import Any, Dict, Optional

from errors import ValidationError
from repositories.ports import Repositories

logger = logging.getLogger(__name__)


class FavoritesService:
    """Service for the user's favorite products."""

    def __init__(self, repositories: Repositories):
        """
        Initialize favorites service.

        Args:
            repositories: Repository bundle
        """
        self.favorites = repositories.favorites

    def add_to_favorites(self, user_id: str, product_id: Optional[str]) -> Dict[str, Any]:
        """
        Mark a product as a favorite of the user.

        Args:
            user_id: User identifier
            product_id: Product identifier

        Returns:
            Confirmation message, or a notice when the product is already a favorite

        Raises:
            ValidationError: If the product id is missing
        """
        if not product_id:
            raise ValidationError("Product ID is required")

        if self.favorites.find(user_id, product_id) is not None:
            return {"message": "Product is already in favorites"}

        self.favorites.add(user_id, product_id)
        logger.info("Added product to favorites", extra={"user_id": user_id, "product_id": product_id})
        return {"success": True, "message": "Added to favorites successfully"}

    def remove_from_favorites(self, user_id: str, product_id: Optional[str]) -> Dict[str, Any]:
        """
        Remove a product from the user's favorites.

        Args:
            user_id: User identifier
            product_id: Product identifier

        Returns:
            Confirmation message

        Raises:
            ValidationError: If the product id is missing
        """
        if not product_id:
            raise ValidationError("Product ID is required")

        self.favorites.remove(user_id, product_id)
        logger.info("Removed product from favorites", extra={"user_id": user_id, "product_id": product_id})
        return {"success": True, "message": "Removed from favorites successfully"}
