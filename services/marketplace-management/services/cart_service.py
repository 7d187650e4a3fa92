"""Cart management service."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from opentelemetry import trace

from config import POINTS_PER_CURRENCY_UNIT, SHIPPING_FLAT_RATE
from entities import CART_ACTIVE, CartItem
from errors import ForbiddenError, NotFoundError, OutOfStockError, ValidationError
from monitoring import cart_mutations_counter
from repositories.ports import Repositories

logger = logging.getLogger(__name__)


def money(value: float) -> float:
    """Round a currency amount to cents."""
    return round(value, 2)


def points_for(subtotal: float, rate: int = POINTS_PER_CURRENCY_UNIT) -> int:
    """Reward points for a line subtotal, rounding half up."""
    raw = Decimal(str(subtotal)) * Decimal(rate)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def require_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer")
    return quantity


class CartService:
    """Resolves, mutates and aggregates a user's active cart."""

    def __init__(
        self,
        repositories: Repositories,
        shipping: float = SHIPPING_FLAT_RATE,
        points_rate: int = POINTS_PER_CURRENCY_UNIT
    ):
        """
        Initialize cart service.

        Args:
            repositories: Repository bundle
            shipping: Flat shipping fee added to every cart
            points_rate: Reward points per currency unit spent
        """
        self.carts = repositories.carts
        self.products = repositories.products
        self.stores = repositories.stores
        self.shipping = shipping
        self.points_rate = points_rate
        self.tracer = trace.get_tracer(__name__)

    def get_or_create_cart(self, user_id: str) -> str:
        """
        Return the id of the user's active cart, creating it on first use.

        Args:
            user_id: User identifier

        Returns:
            Active cart id
        """
        cart = self.carts.find_active(user_id)
        if cart is not None:
            return cart.id

        cart = self.carts.create_active(user_id)
        logger.info("Created active cart", extra={"user_id": user_id, "cart_id": cart.id})
        return cart.id

    def get_cart(self, user_id: str) -> Dict[str, Any]:
        """
        Get the user's cart view.

        Args:
            user_id: User identifier

        Returns:
            ``{cartId, items, stores, summary}``
        """
        cart_id = self.get_or_create_cart(user_id)
        return self.build_cart_view(cart_id)

    def build_cart_view(self, cart_id: str) -> Dict[str, Any]:
        """
        Join cart lines with product details and compute totals.

        Each line is billed at its ``price_at_add``, never the current
        catalog price.
        """
        with self.tracer.start_as_current_span("cart.aggregate") as span:
            span.set_attribute("cart.id", cart_id)

            cart_items = self.carts.list_items(cart_id)
            products = {p.id: p for p in self.products.get_many(i.product_id for i in cart_items)}

            items: List[Dict[str, Any]] = []
            subtotal = 0.0
            total_points = 0

            for item in cart_items:
                product = products.get(item.product_id)
                if product is None:
                    logger.warning("Cart item references a missing product", extra={
                        "cart_id": cart_id,
                        "cart_item_id": item.id,
                        "product_id": item.product_id
                    })
                    continue

                item_subtotal = money(item.quantity * item.price_at_add)
                item_points = points_for(item_subtotal, self.points_rate)
                subtotal += item_subtotal
                total_points += item_points

                items.append({
                    "id": item.id,
                    "produtoId": product.id,
                    "quantidade": item.quantity,
                    "preco": item.price_at_add,
                    "subtotal": item_subtotal,
                    "pontos": item_points,
                    "produto": product.cart_summary()
                })

            subtotal = money(subtotal)
            span.set_attribute("cart.items", len(items))

            return {
                "cartId": cart_id,
                "items": items,
                "stores": self._stores_for(cart_id, items),
                "summary": {
                    "subtotal": subtotal,
                    "totalPoints": total_points,
                    "shipping": self.shipping,
                    "total": money(subtotal + self.shipping)
                }
            }

    def _stores_for(self, cart_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Distinct stores of the cart's products; best effort."""
        store_ids = {item["produto"]["loja_id"] for item in items}
        if not store_ids:
            return []
        try:
            return [store.summary() for store in self.stores.get_many(store_ids)]
        except Exception as e:
            logger.warning("Error fetching store details", extra={
                "cart_id": cart_id,
                "error": str(e)
            })
            return []

    def add_to_cart(self, user_id: str, product_id: Optional[str], quantity: Any = 1) -> Dict[str, Any]:
        """
        Add a product to the user's cart, merging with an existing line.

        Args:
            user_id: User identifier
            product_id: Product identifier
            quantity: Quantity to add

        Returns:
            Updated cart view with ``message``

        Raises:
            ValidationError: If the product id or quantity is invalid
            NotFoundError: If the product does not exist
            OutOfStockError: If stock cannot cover the requested or merged quantity
        """
        if not product_id:
            raise ValidationError("Product ID is required")
        quantity = require_quantity(quantity)

        product = self.products.get(product_id)
        if product is None:
            raise NotFoundError("Product not found")

        if product.estoque < quantity:
            raise OutOfStockError(
                "Not enough stock available",
                product_id=product_id, available=product.estoque, requested=quantity
            )

        cart_id = self.get_or_create_cart(user_id)

        existing = self.carts.find_item(cart_id, product_id)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            if new_quantity > product.estoque:
                raise OutOfStockError(
                    "Not enough stock available for requested quantity",
                    product_id=product_id, available=product.estoque, requested=new_quantity
                )
            self.carts.update_item_quantity(existing.id, new_quantity)
        else:
            self.carts.add_item(cart_id, product_id, quantity, product.preco)

        cart_mutations_counter.add(1, {"action": "add_to_cart"})
        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "cart_id": cart_id,
            "product_id": product_id,
            "quantity": quantity,
            "merged": existing is not None
        })

        return {**self.build_cart_view(cart_id), "message": "Item added to cart successfully"}

    def update_quantity(self, user_id: str, cart_item_id: Optional[str], quantity: Any) -> Dict[str, Any]:
        """
        Set the quantity of a cart line owned by the user.

        Raises:
            ValidationError: If the item id or quantity is missing or invalid
            NotFoundError: If the item or its product does not exist
            ForbiddenError: If the item belongs to another user's cart
            OutOfStockError: If stock cannot cover the quantity
        """
        if not cart_item_id or quantity is None:
            raise ValidationError("Cart item ID and quantity are required")
        quantity = require_quantity(quantity)

        item = self._owned_item(user_id, cart_item_id)

        product = self.products.get(item.product_id)
        if product is None:
            raise NotFoundError("Product not found")

        if quantity > product.estoque:
            raise OutOfStockError(
                "Not enough stock available",
                product_id=product.id, available=product.estoque, requested=quantity
            )

        self.carts.update_item_quantity(item.id, quantity)

        cart_mutations_counter.add(1, {"action": "update_quantity"})
        logger.info("Updated cart item quantity", extra={
            "user_id": user_id,
            "cart_item_id": item.id,
            "quantity": quantity
        })

        return {**self.build_cart_view(item.cart_id), "message": "Cart updated successfully"}

    def remove_from_cart(self, user_id: str, cart_item_id: Optional[str]) -> Dict[str, Any]:
        """Delete a cart line owned by the user."""
        if not cart_item_id:
            raise ValidationError("Cart item ID is required")

        item = self._owned_item(user_id, cart_item_id)
        self.carts.delete_item(item.id)

        cart_mutations_counter.add(1, {"action": "remove_from_cart"})
        logger.info("Removed item from cart", extra={
            "user_id": user_id,
            "cart_item_id": item.id
        })

        return {**self.build_cart_view(item.cart_id), "message": "Item removed from cart successfully"}

    def clear_cart(self, user_id: str) -> Dict[str, Any]:
        """Delete every line of the user's active cart."""
        cart = self.carts.find_active(user_id)
        if cart is None:
            raise NotFoundError("No active cart found")

        deleted = self.carts.clear_items(cart.id)

        cart_mutations_counter.add(1, {"action": "clear_cart"})
        logger.info("Cleared cart", extra={
            "user_id": user_id,
            "cart_id": cart.id,
            "deleted_items": deleted
        })

        return {"message": "Cart cleared successfully"}

    def _owned_item(self, user_id: str, cart_item_id: str) -> CartItem:
        """Load a cart item and check it sits in the caller's active cart."""
        item = self.carts.get_item(cart_item_id)
        if item is None:
            raise NotFoundError("Cart item not found")

        cart = self.carts.get(item.cart_id)
        if cart is None or cart.user_id != user_id:
            logger.warning("Cart item access denied", extra={
                "user_id": user_id,
                "cart_item_id": cart_item_id
            })
            raise ForbiddenError("Unauthorized access to cart item")

        if cart.status != CART_ACTIVE:
            raise NotFoundError("Cart item not found")

        return item
