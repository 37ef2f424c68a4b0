"""Dependency injection for services."""
import redis
from fastapi import Depends, Request

from services.address_service import AddressService
from services.cart_service import CartService
from services.inventory_ledger import InventoryLedger
from services.order_assembler import OrderAssembler
from services.order_service import OrderService
from services.payment_simulator import PaymentSimulator


def get_redis(request: Request) -> redis.Redis:
    """Get Redis client from app state."""
    return request.app.state.redis_client


def get_cart_service(redis_client: redis.Redis = Depends(get_redis)) -> CartService:
    """Get cart service instance."""
    return CartService(redis_client)


def get_address_service() -> AddressService:
    return AddressService()


def get_inventory_ledger() -> InventoryLedger:
    return InventoryLedger()


def get_order_service(
    cart_service: CartService = Depends(get_cart_service),
    inventory: InventoryLedger = Depends(get_inventory_ledger),
    address_service: AddressService = Depends(get_address_service)
) -> OrderService:
    """Get order service instance."""
    return OrderService(cart_service, inventory, OrderAssembler(), address_service)


def get_payment_simulator(request: Request) -> PaymentSimulator:
    """Get payment simulator configured on the app."""
    return PaymentSimulator(request.app.state.payment_delay_seconds)
