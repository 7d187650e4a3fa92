"""Pydantic schemas for action requests."""
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, StrictInt
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

DEFAULT_ACTION = "get_cart"

FIELD_MESSAGES = {
    "action": "Invalid action",
    "quantity": "Quantity must be a positive integer",
}

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class ActionRequest(BaseModel):
    """Envelope of every POST body: ``{action, ...payload}``."""
    model_config = ConfigDict(extra="allow")

    action: Optional[str] = None


class AddToCartPayload(BaseModel):
    """Schema for add_to_cart."""
    productId: Optional[str] = None
    quantity: Optional[StrictInt] = 1


class UpdateQuantityPayload(BaseModel):
    """Schema for update_quantity."""
    cartItemId: Optional[str] = None
    quantity: Optional[StrictInt] = None


class CartItemPayload(BaseModel):
    """Schema for remove_from_cart."""
    cartItemId: Optional[str] = None


class CheckoutPayload(BaseModel):
    """Schema for checkout."""
    addressId: Optional[str] = None
    paymentMethod: Optional[str] = None


class ProductPayload(BaseModel):
    """Schema for product details and favorites."""
    productId: Optional[str] = None


def parse_payload(model: Type[PayloadT], body: Dict[str, Any]) -> PayloadT:
    """
    Validate an action payload.

    Raises:
        ValidationError: With a client-facing message for the first bad field
    """
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        field = str(e.errors()[0]["loc"][0]) if e.errors() and e.errors()[0]["loc"] else "payload"
        raise ValidationError(FIELD_MESSAGES.get(field, f"Invalid {field}")) from e
