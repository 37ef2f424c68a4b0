"""Simulated payment: flips a pending order to paid."""
import asyncio
import logging
from typing import Any, Dict

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import InvalidTransition, NotFound, StorageFailure
from models import Order, OrderStatus
from monitoring import payments_counter, order_status_transitions_counter
from services.order_service import serialize_order
from services.order_status import ensure_transition

logger = logging.getLogger(__name__)


class PaymentSimulator:
    """
    Stand-in for a payment gateway.

    Performs only the PENDING -> PAID transition and never touches stock,
    which was already reserved when the order was placed.
    """

    def __init__(self, delay_seconds: float = 1.0):
        """
        Initialize payment simulator.

        Args:
            delay_seconds: Simulated gateway latency
        """
        self.delay_seconds = delay_seconds
        self.tracer = trace.get_tracer(__name__)

    async def pay(self, db: Session, user_id: str, order_id: int) -> Dict[str, Any]:
        """
        Pay one of the user's pending orders.

        Args:
            db: Database session
            user_id: Authenticated user identifier
            order_id: Order identifier

        Returns:
            Serialized order in PAID state

        Raises:
            NotFound: If the order does not exist or belongs to another user
            InvalidTransition: If the order is not PENDING (already paid, cancelled...)
            StorageFailure: If the update cannot be committed
        """
        span = trace.get_current_span()
        span.set_attribute("order.id", order_id)
        span.set_attribute("user.id", user_id)

        order = db.query(Order).filter(
            Order.id == order_id,
            Order.user_id == user_id
        ).first()
        if order is None:
            payments_counter.add(1, {"status": "not_found"})
            raise NotFound("Order")

        try:
            ensure_transition(order.status, OrderStatus.PAID)
        except InvalidTransition:
            payments_counter.add(1, {"status": "rejected"})
            logger.warning("Payment rejected", extra={
                "user_id": user_id,
                "order_id": order_id,
                "status": order.status
            })
            raise

        # Release the read transaction while the gateway is simulated
        db.rollback()

        with self.tracer.start_as_current_span("payment.simulate") as pay_span:
            pay_span.set_attribute("payment.delay_seconds", self.delay_seconds)
            await asyncio.sleep(self.delay_seconds)

        try:
            result = db.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.user_id == user_id,
                    Order.status == OrderStatus.PENDING.value
                )
                .values(status=OrderStatus.PAID.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Another request paid or cancelled it meanwhile
                db.rollback()
                db.refresh(order)
                payments_counter.add(1, {"status": "rejected"})
                raise InvalidTransition(order.status, OrderStatus.PAID.value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            payments_counter.add(1, {"status": "failed"})
            logger.error("Failed to record payment", extra={
                "user_id": user_id,
                "order_id": order_id,
                "error": str(e)
            })
            raise StorageFailure() from e

        db.refresh(order)

        payments_counter.add(1, {"status": "paid"})
        order_status_transitions_counter.add(1, {
            "from": OrderStatus.PENDING.value,
            "to": OrderStatus.PAID.value
        })
        logger.info("Payment simulated", extra={
            "user_id": user_id,
            "order_id": order_id,
            "order_no": order.order_no,
            "amount": str(order.total_amount)
        })

        return serialize_order(order)
