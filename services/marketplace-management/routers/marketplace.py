"""Marketplace action API router.

One endpoint serves every action: ``POST {action, ...payload}``. GET always
returns the caller's cart.
"""
import logging
from typing import Any, Callable, Dict, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from opentelemetry import trace

from auth import get_current_user
from dependencies import (
    get_cart_service, get_catalog_service, get_checkout_service, get_favorites_service,
)
from errors import ErrorKind, MarketplaceError, ValidationError
from schemas import (
    DEFAULT_ACTION, ActionRequest, AddToCartPayload, CartItemPayload, CheckoutPayload,
    ProductPayload, UpdateQuantityPayload, parse_payload,
)
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.checkout_service import CheckoutService
from services.favorites_service import FavoritesService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["marketplace"])

FUNCTION_PATH = "/functions/v1/marketplace-management"

Handler = Callable[[str, Dict[str, Any]], Dict[str, Any]]


class ActionDispatcher:
    """Maps action names to service calls."""

    def __init__(
        self,
        cart_service: CartService,
        checkout_service: CheckoutService,
        catalog_service: CatalogService,
        favorites_service: FavoritesService
    ):
        self.cart = cart_service
        self.checkout = checkout_service
        self.catalog = catalog_service
        self.favorites = favorites_service
        self.handlers: Dict[str, Handler] = {
            "get_cart": self._get_cart,
            "add_to_cart": self._add_to_cart,
            "update_quantity": self._update_quantity,
            "remove_from_cart": self._remove_from_cart,
            "clear_cart": self._clear_cart,
            "checkout": self._checkout,
            "get_recent_products": self._get_recent_products,
            "get_popular_products": self._get_popular_products,
            "get_product_details": self._get_product_details,
            "add_to_favorites": self._add_to_favorites,
            "remove_from_favorites": self._remove_from_favorites,
        }

    def dispatch(self, action: str, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one action for the authenticated user.

        Raises:
            ValidationError: If the action is unknown or its payload is malformed
            MarketplaceError: Any logical failure reported by a service
        """
        handler = self.handlers.get(action)
        if handler is None:
            raise ValidationError("Invalid action")
        return handler(user_id, body)

    def _get_cart(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.cart.get_cart(user_id)

    def _add_to_cart(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(AddToCartPayload, body)
        return self.cart.add_to_cart(user_id, payload.productId, payload.quantity)

    def _update_quantity(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(UpdateQuantityPayload, body)
        return self.cart.update_quantity(user_id, payload.cartItemId, payload.quantity)

    def _remove_from_cart(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(CartItemPayload, body)
        return self.cart.remove_from_cart(user_id, payload.cartItemId)

    def _clear_cart(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.cart.clear_cart(user_id)

    def _checkout(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(CheckoutPayload, body)
        return self.checkout.checkout(user_id, payload.addressId, payload.paymentMethod)

    def _get_recent_products(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.catalog.get_recent_products()

    def _get_popular_products(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.catalog.get_popular_products()

    def _get_product_details(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(ProductPayload, body)
        return self.catalog.get_product_details(payload.productId)

    def _add_to_favorites(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(ProductPayload, body)
        return self.favorites.add_to_favorites(user_id, payload.productId)

    def _remove_from_favorites(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = parse_payload(ProductPayload, body)
        return self.favorites.remove_from_favorites(user_id, payload.productId)


def get_dispatcher(
    cart_service: CartService = Depends(get_cart_service),
    checkout_service: CheckoutService = Depends(get_checkout_service),
    catalog_service: CatalogService = Depends(get_catalog_service),
    favorites_service: FavoritesService = Depends(get_favorites_service)
) -> ActionDispatcher:
    """Get action dispatcher instance."""
    return ActionDispatcher(cart_service, checkout_service, catalog_service, favorites_service)


async def read_action(request: Request) -> Tuple[str, Dict[str, Any]]:
    """
    Extract the action name and payload from a request.

    GET requests and bodies that are not a JSON object fall back to ``get_cart``.
    """
    if request.method == "GET":
        return DEFAULT_ACTION, {}

    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("Error parsing request body", extra={"error": str(e)})
        return DEFAULT_ACTION, {}

    if not isinstance(body, dict):
        logger.warning("Request body is not a JSON object", extra={"body_type": type(body).__name__})
        return DEFAULT_ACTION, {}

    envelope = parse_payload(ActionRequest, body)
    return envelope.action or DEFAULT_ACTION, body


@router.options("/")
@router.options(FUNCTION_PATH)
async def preflight():
    """CORS preflight; headers are added by the CORS middleware."""
    return PlainTextResponse("ok")


@router.api_route("/", methods=["GET", "POST"])
@router.api_route(FUNCTION_PATH, methods=["GET", "POST"])
async def handle_action(
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
    dispatcher: ActionDispatcher = Depends(get_dispatcher)
):
    """Run a marketplace action - requires authentication."""
    user_id = user["id"]
    span = trace.get_current_span()
    span.set_attribute("user.id", user_id)

    try:
        action, body = await read_action(request)
        span.set_attribute("marketplace.action", action)
        return dispatcher.dispatch(action, user_id, body)
    except MarketplaceError as e:
        span.set_attribute("marketplace.error_code", e.kind.value)
        logger.warning("Action failed", extra={
            "user_id": user_id,
            "error": e.message,
            "code": e.kind.value
        })
        return e.to_dict()
    except Exception as e:
        span.record_exception(e)
        span.set_attribute("marketplace.error_code", ErrorKind.SERVER_ERROR.value)
        logger.error("Action raised an unexpected error", exc_info=e, extra={"user_id": user_id})
        return {"error": str(e), "code": ErrorKind.SERVER_ERROR.value}
