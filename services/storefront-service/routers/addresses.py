"""Address book API router."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import get_current_user_id
from database import get_db
from dependencies import get_address_service
from schemas import AddressRequest, AddressResponse, MessageResponse
from services.address_service import AddressService, serialize_address

router = APIRouter(prefix="/user/addresses", tags=["addresses"])


@router.get("", response_model=List[AddressResponse])
async def list_addresses(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    address_service: AddressService = Depends(get_address_service)
):
    """List the caller's addresses, default first."""
    return [serialize_address(a) for a in address_service.list_addresses(db, user_id)]


@router.post("", response_model=AddressResponse, status_code=201)
async def create_address(
    request: AddressRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    address_service: AddressService = Depends(get_address_service)
):
    address = address_service.create_address(db, user_id, request.model_dump())
    return serialize_address(address)


@router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: int,
    request: AddressRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    address_service: AddressService = Depends(get_address_service)
):
    address = address_service.update_address(db, user_id, address_id, request.model_dump())
    return serialize_address(address)


@router.delete("/{address_id}", response_model=MessageResponse)
async def delete_address(
    address_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    address_service: AddressService = Depends(get_address_service)
):
    address_service.delete_address(db, user_id, address_id)
    return {"message": "Address deleted"}
