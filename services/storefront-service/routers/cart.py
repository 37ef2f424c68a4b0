"""Cart API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import get_current_user_id
from database import get_db
from dependencies import get_cart_service
from schemas import (
    AddToCartRequest,
    CartCountResponse,
    CartItemMutationResponse,
    CartResponse,
    MessageResponse,
    UpdateCartRequest,
)
from services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.post("", response_model=CartItemMutationResponse)
async def add_to_cart(
    request: AddToCartRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart - requires authentication."""
    result = cart_service.add_to_cart(
        db=db,
        user_id=user_id,
        product_id=request.product_id,
        quantity=request.quantity
    )
    return {"message": "Item added to cart", **result}


@router.get("", response_model=CartResponse)
async def get_cart(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get user's cart - requires authentication."""
    return cart_service.get_cart(db, user_id)


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Number of cart lines, for the header badge."""
    return {"count": cart_service.get_cart_count(db, user_id)}


@router.patch("/{cart_item_id}", response_model=CartItemMutationResponse)
async def update_cart_item(
    cart_item_id: int,
    request: UpdateCartRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    result = cart_service.update_quantity(db, user_id, cart_item_id, request.quantity)
    return {"message": "Cart updated", **result}


@router.delete("/{cart_item_id}", response_model=MessageResponse)
async def remove_cart_item(
    cart_item_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    cart_service.remove_item(db, user_id, cart_item_id)
    return {"message": "Item removed from cart"}
