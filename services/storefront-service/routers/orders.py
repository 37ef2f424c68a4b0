"""Orders API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import get_current_user_id
from database import get_db
from dependencies import get_order_service
from schemas import CreateOrderRequest, OrderResponse, OrdersListResponse
from services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Place an order for the whole cart - requires authentication."""
    return order_service.place_order(db, user_id, request.address_id)


@router.get("", response_model=OrdersListResponse)
async def get_orders(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get user's orders - requires authentication."""
    return {"orders": order_service.get_user_orders(db, user_id)}


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one of the user's orders - requires authentication."""
    return order_service.get_user_order(db, user_id, order_id)
