"""Back-office API router: order lifecycle and stock edits."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth import require_admin
from database import get_db
from dependencies import get_inventory_ledger, get_order_service
from models import OrderStatus
from schemas import (
    OrderResponse,
    OrdersListResponse,
    ProductResponse,
    StatusUpdateRequest,
    StockUpdateRequest,
)
from services.inventory_ledger import InventoryLedger
from services.order_service import OrderService
from services.order_status import ADMIN_TRANSITIONS

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=OrdersListResponse)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service)
):
    """List every order, optionally filtered by status."""
    return {"orders": order_service.list_orders(db, status)}


@router.patch("/orders/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service)
):
    """
    Ship, complete or cancel an order.

    PENDING -> PAID is not available here; it happens through /payment.
    """
    return order_service.transition_status(
        db, order_id, request.status, allowed=ADMIN_TRANSITIONS
    )


@router.put("/products/{product_id}/stock", response_model=ProductResponse)
async def set_product_stock(
    product_id: int,
    request: StockUpdateRequest,
    db: Session = Depends(get_db),
    inventory: InventoryLedger = Depends(get_inventory_ledger)
):
    """Overwrite a product's stock level."""
    return inventory.set_stock(db, product_id, request.stock)
