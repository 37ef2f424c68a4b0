"""
Domain errors raised by the storefront services.

Routers never build error responses themselves: these exceptions propagate to
the handlers registered in ``main.py``, which map each kind to an HTTP status.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors"""
    status_code = 500

    def __init__(self, message: str, code: str = "STOREFRONT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class Unauthenticated(StorefrontError):
    """No valid caller identity"""
    status_code = 401

    def __init__(self, message: str = "Please sign in"):
        super().__init__(message=message, code="UNAUTHENTICATED")


class InvalidAddress(StorefrontError):
    """Address missing or owned by somebody else"""
    status_code = 400

    def __init__(self, message: str = "Shipping address not found"):
        super().__init__(message=message, code="INVALID_ADDRESS")


class EmptyCart(StorefrontError):
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message=message, code="EMPTY_CART")


class InsufficientStockOrInactive(StorefrontError):
    """A cart line cannot be fulfilled; names the offending product"""
    status_code = 409

    def __init__(self, product_name: str, reason: str = "is out of stock or no longer available"):
        self.product_name = product_name
        self.reason = reason
        super().__init__(
            message=f'"{product_name}" {reason}',
            code="INSUFFICIENT_STOCK"
        )


class InsufficientStock(InsufficientStockOrInactive):
    """Raised by the inventory ledger when a decrement would go below zero"""

    def __init__(self, product_id: int, quantity: int, product_name: Optional[str] = None):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            product_name=product_name or f"Product {product_id}",
            reason=f"does not have {quantity} units in stock"
        )


class InvalidTransition(StorefrontError):
    """Order status change outside the state machine"""
    status_code = 409

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message=message or f"Cannot change order status from {current} to {target}",
            code="INVALID_TRANSITION"
        )


class NotFound(StorefrontError):
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(message=f"{resource} not found", code="NOT_FOUND")


class StorageFailure(StorefrontError):
    """The database transaction could not complete; details stay in the logs"""
    status_code = 503

    def __init__(self, message: str = "The operation could not be completed, please retry"):
        super().__init__(message=message, code="STORAGE_FAILURE")
