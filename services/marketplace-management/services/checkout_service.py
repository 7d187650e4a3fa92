"""Checkout service: turns the active cart into an order."""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from opentelemetry import trace

from config import CHECKOUT_STRICT_CART, CHECKOUT_STRICT_POINTS
from entities import CART_CONVERTED, POINTS_PURCHASE, Address, Order, OrderItem, PointsTransaction
from errors import MarketplaceError, NotFoundError, OutOfStockError, RepositoryError, ValidationError
from monitoring import checkout_amount_histogram, checkout_counter, points_granted_counter
from repositories.ports import Repositories
from services.cart_service import CartService
from services.saga import SagaError, SagaOrchestrator, Step

logger = logging.getLogger(__name__)


@dataclass
class CheckoutContext:
    """State shared by the checkout steps."""

    user_id: str
    cart: Dict[str, Any]
    address: Address
    payment_method: str
    order_id: Optional[str] = None
    points_transaction_id: Optional[str] = None
    reserved: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def points(self) -> int:
        return self.cart["summary"]["totalPoints"]


class CreateOrder(Step):

    def __init__(self, ctx: CheckoutContext, repositories: Repositories):
        self.ctx = ctx
        self.orders = repositories.orders

    def name(self) -> str:
        return "CreateOrder"

    def execute(self) -> None:
        summary = self.ctx.cart["summary"]
        order = self.orders.create(Order(
            cliente_id=self.ctx.user_id,
            endereco_entrega=self.ctx.address.to_dict(),
            forma_pagamento=self.ctx.payment_method,
            valor_total=summary["total"],
            pontos_ganhos=summary["totalPoints"]
        ))
        self.ctx.order_id = order.id
        trace.get_current_span().set_attribute("order.id", order.id)

    def compensate(self) -> None:
        if self.ctx.order_id:
            self.orders.delete(self.ctx.order_id)


class CreateOrderItems(Step):
    """Reserve stock for every line, then write the order items."""

    def __init__(self, ctx: CheckoutContext, repositories: Repositories):
        self.ctx = ctx
        self.orders = repositories.orders
        self.products = repositories.products

    def name(self) -> str:
        return "CreateOrderItems"

    def execute(self) -> None:
        try:
            for line in self.ctx.cart["items"]:
                product_id, quantity = line["produtoId"], line["quantidade"]
                if not self.products.decrement_stock(product_id, quantity):
                    raise OutOfStockError(
                        "Not enough stock available",
                        product_id=product_id,
                        available=line["produto"]["estoque"],
                        requested=quantity
                    )
                self.ctx.reserved.append((product_id, quantity))

            self.orders.add_items([
                OrderItem(
                    order_id=self.ctx.order_id,
                    produto_id=line["produtoId"],
                    quantidade=line["quantidade"],
                    preco_unitario=line["preco"],
                    subtotal=line["subtotal"]
                )
                for line in self.ctx.cart["items"]
            ])
        except Exception:
            # This step never reaches the completed list, so undo its own work
            self._release()
            raise

    def compensate(self) -> None:
        self.orders.delete_items(self.ctx.order_id)
        self._release()

    def _release(self) -> None:
        while self.ctx.reserved:
            product_id, quantity = self.ctx.reserved.pop()
            self.products.increment_stock(product_id, quantity)


class RecordPointsTransaction(Step):

    def __init__(self, ctx: CheckoutContext, repositories: Repositories, critical: bool = False):
        self.ctx = ctx
        self.points = repositories.points
        self.critical = critical

    def name(self) -> str:
        return "RecordPointsTransaction"

    def execute(self) -> None:
        transaction = self.points.add_transaction(PointsTransaction(
            user_id=self.ctx.user_id,
            pontos=self.ctx.points,
            tipo=POINTS_PURCHASE,
            descricao=f"Pontos por compra #{self.ctx.order_id}",
            referencia_id=self.ctx.order_id
        ))
        self.ctx.points_transaction_id = transaction.id

    def compensate(self) -> None:
        if self.ctx.points_transaction_id:
            self.points.delete_transaction(self.ctx.points_transaction_id)


class UpdatePointsBalance(Step):

    def __init__(self, ctx: CheckoutContext, repositories: Repositories, critical: bool = False):
        self.ctx = ctx
        self.points = repositories.points
        self.critical = critical

    def name(self) -> str:
        return "UpdatePointsBalance"

    def execute(self) -> None:
        self.points.add_to_balance(self.ctx.user_id, self.ctx.points)

    def compensate(self) -> None:
        self.points.add_to_balance(self.ctx.user_id, -self.ctx.points)


class ConvertCart(Step):

    def __init__(self, ctx: CheckoutContext, repositories: Repositories, critical: bool = False):
        self.ctx = ctx
        self.carts = repositories.carts
        self.critical = critical

    def name(self) -> str:
        return "ConvertCart"

    def execute(self) -> None:
        self.carts.set_status(self.ctx.cart["cartId"], CART_CONVERTED)

    def compensate(self) -> None:
        pass


class CheckoutService:
    """Service for placing orders from the active cart."""

    def __init__(
        self,
        repositories: Repositories,
        cart_service: CartService,
        strict_points: bool = CHECKOUT_STRICT_POINTS,
        strict_cart: bool = CHECKOUT_STRICT_CART
    ):
        """
        Initialize checkout service.

        Args:
            repositories: Repository bundle
            cart_service: Cart service used to resolve and price the cart
            strict_points: Treat the points steps as critical
            strict_cart: Treat the cart conversion step as critical
        """
        self.repositories = repositories
        self.cart_service = cart_service
        self.strict_points = strict_points
        self.strict_cart = strict_cart
        self.tracer = trace.get_tracer(__name__)

    def build_steps(self, ctx: CheckoutContext) -> List[Step]:
        repos = self.repositories
        return [
            CreateOrder(ctx, repos),
            CreateOrderItems(ctx, repos),
            RecordPointsTransaction(ctx, repos, critical=self.strict_points),
            UpdatePointsBalance(ctx, repos, critical=self.strict_points),
            ConvertCart(ctx, repos, critical=self.strict_cart),
        ]

    def checkout(
        self,
        user_id: str,
        address_id: Optional[str],
        payment_method: Optional[str]
    ) -> Dict[str, Any]:
        """
        Place an order for the user's active cart.

        Args:
            user_id: User identifier
            address_id: Delivery address owned by the user
            payment_method: Payment method label

        Returns:
            ``{success, orderId, message, pointsEarned}``

        Raises:
            ValidationError: If the payload is incomplete or the cart is empty
            NotFoundError: If the address does not belong to the user
            OutOfStockError: If a line can no longer be reserved
            RepositoryError: If another critical step fails
        """
        if not address_id or not payment_method:
            raise ValidationError("Address ID and payment method are required")

        cart_id = self.cart_service.get_or_create_cart(user_id)
        cart = self.cart_service.build_cart_view(cart_id)
        if not cart["items"]:
            checkout_counter.add(1, {"payment_method": payment_method, "status": "rejected"})
            raise ValidationError("Invalid cart or empty cart")

        address = self.repositories.addresses.get_for_user(address_id, user_id)
        if address is None:
            checkout_counter.add(1, {"payment_method": payment_method, "status": "rejected"})
            raise NotFoundError("Delivery address not found")

        ctx = CheckoutContext(
            user_id=user_id,
            cart=cart,
            address=address,
            payment_method=payment_method
        )
        saga = SagaOrchestrator(saga_id=str(uuid.uuid4()))

        with self.tracer.start_as_current_span("checkout") as span:
            span.set_attribute("user.id", user_id)
            span.set_attribute("cart.id", cart_id)
            span.set_attribute("payment.method", payment_method)

            try:
                soft_failures = saga.execute(self.build_steps(ctx))
            except SagaError as e:
                checkout_counter.add(1, {"payment_method": payment_method, "status": "failed"})
                logger.error("Checkout failed", extra={
                    "user_id": user_id,
                    "cart_id": cart_id,
                    "step": e.step_name,
                    "error": str(e.cause)
                })
                if isinstance(e.cause, MarketplaceError):
                    raise e.cause from e
                raise RepositoryError(f"Error placing order: {e.cause}") from e

        total = cart["summary"]["total"]
        checkout_counter.add(1, {"payment_method": payment_method, "status": "completed"})
        checkout_amount_histogram.record(total, {"payment_method": payment_method})
        if "UpdatePointsBalance" not in soft_failures:
            points_granted_counter.add(ctx.points)

        logger.info("Checkout completed", extra={
            "user_id": user_id,
            "order_id": ctx.order_id,
            "amount": total,
            "points": ctx.points,
            "payment_method": payment_method,
            "item_count": len(cart["items"]),
            "soft_failures": soft_failures
        })

        return {
            "success": True,
            "orderId": ctx.order_id,
            "message": "Order placed successfully",
            "pointsEarned": ctx.points
        }
