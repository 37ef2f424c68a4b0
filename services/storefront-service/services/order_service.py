"""Order management service."""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from exceptions import (
    EmptyCart,
    InsufficientStockOrInactive,
    InvalidAddress,
    InvalidTransition,
    NotFound,
    StorageFailure,
    StorefrontError,
    Unauthenticated,
)
from models import Order, OrderStatus
from monitoring import (
    checkout_rejections_counter,
    order_amount_histogram,
    order_status_transitions_counter,
    orders_placed_counter,
)
from services.address_service import AddressService
from services.cart_service import CartService
from services.inventory_ledger import InventoryLedger
from services.order_assembler import OrderAssembler
from services.order_status import ensure_transition

logger = logging.getLogger(__name__)


def serialize_order(order: Order) -> Dict[str, Any]:
    """Order with items; money as decimal strings, never floats."""
    return {
        "id": order.id,
        "order_no": order.order_no,
        "user_id": order.user_id,
        "total_amount": str(order.total_amount),
        "status": order.status,
        "address": dict(order.address),
        "created_at": order.created_at.isoformat(),
        "updated_at": order.updated_at.isoformat(),
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price": str(item.price)
            }
            for item in order.items
        ]
    }


class OrderService:
    """Converts carts into orders and drives the order lifecycle."""

    def __init__(
        self,
        cart_service: CartService,
        inventory: InventoryLedger,
        assembler: OrderAssembler,
        address_service: AddressService
    ):
        """
        Initialize order service.

        Args:
            cart_service: Cart service instance
            inventory: Inventory ledger
            assembler: Order assembler
            address_service: Address book service
        """
        self.cart_service = cart_service
        self.inventory = inventory
        self.assembler = assembler
        self.address_service = address_service
        self.tracer = trace.get_tracer(__name__)

    def place_order(self, db: Session, user_id: Optional[str], address_id: int) -> Dict[str, Any]:
        """
        Turn the user's whole cart into a PENDING order in one transaction.

        All checks run before anything is written. The order insert, the
        stock decrements and the cart deletion then commit together or are
        rolled back together.

        Args:
            db: Database session
            user_id: Authenticated user identifier
            address_id: Chosen shipping address

        Returns:
            Serialized order

        Raises:
            Unauthenticated: If no user identity is given
            InvalidAddress: If the address is missing or not the user's
            EmptyCart: If the cart has no lines
            InsufficientStockOrInactive: Naming the first line that cannot be fulfilled
            StorageFailure: If the transaction cannot complete
        """
        if not user_id:
            checkout_rejections_counter.add(1, {"reason": "unauthenticated"})
            raise Unauthenticated()

        span = trace.get_current_span()
        span.set_attribute("user.id", user_id)
        span.set_attribute("address.id", address_id)

        try:
            order = self._place_order(db, user_id, address_id)
        except StorefrontError as e:
            db.rollback()
            checkout_rejections_counter.add(1, {"reason": e.code.lower()})
            logger.warning("Checkout rejected", extra={
                "user_id": user_id,
                "address_id": address_id,
                "code": e.code,
                "reason": e.message
            })
            raise
        except SQLAlchemyError as e:
            db.rollback()
            checkout_rejections_counter.add(1, {"reason": "storage_failure"})
            logger.error("Failed to create order", extra={
                "user_id": user_id,
                "address_id": address_id,
                "error": str(e)
            })
            raise StorageFailure() from e
        except Exception as e:
            db.rollback()
            logger.error("Unexpected error while creating order", extra={
                "user_id": user_id,
                "address_id": address_id,
                "error": str(e)
            })
            raise

        self.cart_service.invalidate_count(user_id)

        orders_placed_counter.add(1)
        order_amount_histogram.record(float(order.total_amount))

        logger.info("Order placed", extra={
            "user_id": user_id,
            "order_id": order.id,
            "order_no": order.order_no,
            "amount": str(order.total_amount),
            "item_count": len(order.items)
        })

        return serialize_order(order)

    def _place_order(self, db: Session, user_id: str, address_id: int) -> Order:
        address = self.address_service.get_owned(db, user_id, address_id)
        if address is None:
            raise InvalidAddress()

        lines = self.cart_service.read_cart(db, user_id)
        if not lines:
            raise EmptyCart()

        # Judged on the rows read with the cart; decrement re-checks in SQL
        for line in lines:
            if not self.inventory.is_sellable(line.product, line.quantity):
                raise InsufficientStockOrInactive(line.product.name)

        order = self.assembler.assemble(user_id, lines, address)

        with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)
            db_span.set_attribute("order.total_amount", str(order.total_amount))

            db.add(order)
            db.flush()

            for line in lines:
                self.inventory.decrement(
                    db,
                    line.product.id,
                    line.quantity,
                    product_name=line.product.name
                )

            self.cart_service.clear_cart(db, user_id)

            db.commit()
            db_span.set_attribute("order.id", order.id)

        return order

    def get_user_orders(self, db: Session, user_id: str) -> List[Dict[str, Any]]:
        """
        Get all orders for a user, newest first.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            List of serialized orders
        """
        with self.tracer.start_as_current_span("db.query.get_user_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            orders = (
                db.query(Order)
                .options(selectinload(Order.items))
                .filter(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

            return [serialize_order(order) for order in orders]

    def get_user_order(self, db: Session, user_id: str, order_id: int) -> Dict[str, Any]:
        """
        Get one of the user's orders.

        Raises:
            NotFound: If the order does not exist or belongs to another user
        """
        order = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id, Order.user_id == user_id)
            .first()
        )
        if order is None:
            raise NotFound("Order")
        return serialize_order(order)

    def list_orders(self, db: Session, status: Optional[OrderStatus] = None) -> List[Dict[str, Any]]:
        """All orders, optionally filtered by status (administrative view)."""
        query = db.query(Order).options(selectinload(Order.items))
        if status is not None:
            query = query.filter(Order.status == OrderStatus(status).value)
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        return [serialize_order(order) for order in orders]

    def transition_status(
        self,
        db: Session,
        order_id: int,
        target: OrderStatus,
        allowed: Optional[Iterable[Tuple[OrderStatus, OrderStatus]]] = None
    ) -> Dict[str, Any]:
        """
        Move an order along the status state machine.

        The UPDATE is conditional on the status read here, so of two
        concurrent requests for the same edge only one takes effect.

        Args:
            db: Database session
            order_id: Order identifier
            target: Requested status
            allowed: Optional subset of edges the caller may apply

        Returns:
            Serialized order

        Raises:
            NotFound: If the order does not exist
            InvalidTransition: If the edge is not permitted
            StorageFailure: If the update cannot be committed
        """
        target = OrderStatus(target)
        order = db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFound("Order")

        current = OrderStatus(order.status)
        ensure_transition(current, target, allowed)

        try:
            result = db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current.value)
                .values(status=target.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise InvalidTransition(current.value, target.value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to update order status", extra={
                "order_id": order_id,
                "target": target.value,
                "error": str(e)
            })
            raise StorageFailure() from e

        db.refresh(order)

        order_status_transitions_counter.add(1, {
            "from": current.value,
            "to": target.value
        })
        logger.info("Order status changed", extra={
            "order_id": order_id,
            "order_no": order.order_no,
            "from": current.value,
            "to": target.value
        })

        return serialize_order(order)
