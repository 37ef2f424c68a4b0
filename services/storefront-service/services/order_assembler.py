"""Builds order aggregates from cart snapshots."""
import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from config import MAX_ITEM_QUANTITY
from exceptions import InsufficientStockOrInactive
from models import Address, Order, OrderItem, OrderStatus
from services.address_service import ADDRESS_FIELDS
from services.cart_service import CartLine

CENT = Decimal("0.01")


def generate_order_no(now: Optional[datetime] = None) -> str:
    """
    Generate a human-facing order number: ``ORD`` + UTC date + 6 random digits.

    Example: ``ORD20240315042917``.

    Only the last six digits vary within a day, so for n orders placed on
    the same day the chance of any collision is roughly n^2 / 2,000,000
    (about 0.5% at 100 orders, near certainty past a few thousand). A
    collision hits the unique constraint on ``orders.order_no`` and fails the
    whole checkout, which the caller may retry.
    """
    now = now or datetime.now(timezone.utc)
    return f"ORD{now:%Y%m%d}{random.randint(0, 999999):06d}"


class OrderAssembler:
    """Pure transformation of a validated cart snapshot into an order."""

    @staticmethod
    def compute_total(lines: Sequence[CartLine]) -> Decimal:
        """Exact decimal sum of price x quantity over all lines."""
        total = sum(
            (Decimal(line.product.price) * line.quantity for line in lines),
            Decimal("0")
        )
        return total.quantize(CENT)

    @staticmethod
    def snapshot_address(address: Address) -> Dict[str, Any]:
        """Copy the address fields into a plain dict detached from the row."""
        return {field: getattr(address, field) for field in ADDRESS_FIELDS}

    def assemble(self, user_id: str, lines: Sequence[CartLine], address: Address) -> Order:
        """
        Build a transient PENDING order with its items.

        Args:
            user_id: Owner of the order
            lines: Validated cart snapshot
            address: Chosen shipping address

        Returns:
            Order not yet added to any session

        Raises:
            InsufficientStockOrInactive: If a line exceeds the per-item cap
        """
        items = []
        for line in lines:
            if line.quantity > MAX_ITEM_QUANTITY:
                raise InsufficientStockOrInactive(
                    line.product.name,
                    reason=f"exceeds the limit of {MAX_ITEM_QUANTITY} per order"
                )
            items.append(OrderItem(
                product_id=line.product.id,
                product_name=line.product.name,
                quantity=line.quantity,
                price=Decimal(line.product.price).quantize(CENT)
            ))

        return Order(
            order_no=generate_order_no(),
            user_id=user_id,
            total_amount=self.compute_total(lines),
            status=OrderStatus.PENDING.value,
            address=self.snapshot_address(address),
            items=items
        )
