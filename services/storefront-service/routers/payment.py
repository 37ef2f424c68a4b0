"""Simulated payment API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import get_current_user_id
from database import get_db
from dependencies import get_payment_simulator
from schemas import OrderResponse, PaymentRequest
from services.payment_simulator import PaymentSimulator

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("", response_model=OrderResponse)
async def pay(
    request: PaymentRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    simulator: PaymentSimulator = Depends(get_payment_simulator)
):
    """
    Pay a pending order - requires authentication.

    No real gateway is involved: the order is marked PAID after a short delay.
    """
    return await simulator.pay(db, user_id, request.order_id)
