"""Cart management service."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Dict, Any

import redis
from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import CART_CACHE_TTL_SECONDS, MAX_ITEM_QUANTITY
from exceptions import InsufficientStockOrInactive, NotFound, StorageFailure
from models import CartItem, Product
from monitoring import cart_additions_counter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    """One cart line joined with the product row it points to."""
    cart_item_id: int
    product: Product
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.product.price * self.quantity


class CartService:
    """Service for managing shopping carts."""

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize cart service.

        Args:
            redis_client: Redis client for the cart count cache
        """
        self.redis_client = redis_client
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return f"cart:{user_id}"

    def add_to_cart(
        self,
        db: Session,
        user_id: str,
        product_id: int,
        quantity: int
    ) -> Dict[str, Any]:
        """
        Add item to user's cart, merging with an existing line for the product.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            quantity: Quantity to add

        Returns:
            Result with cart item details

        Raises:
            NotFound: If product does not exist or is not for sale
            InsufficientStockOrInactive: If stock is below the requested quantity
        """
        span = trace.get_current_span()
        span.set_attribute("product.id", product_id)
        span.set_attribute("quantity", quantity)

        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(Product.id == product_id).first()

            if product is None or not product.is_active:
                db_span.set_attribute("db.rows_returned", 0 if product is None else 1)
                raise NotFound("Product")
            db_span.set_attribute("db.rows_returned", 1)

        if product.stock < quantity:
            raise InsufficientStockOrInactive(product.name)

        with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)
            db_span.set_attribute("product.id", product_id)

            cart_item = db.query(CartItem).filter(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id
            ).first()

            try:
                if cart_item is None:
                    db_span.set_attribute("db.operation", "INSERT")
                    cart_item = CartItem(
                        user_id=user_id,
                        product_id=product_id,
                        quantity=min(quantity, MAX_ITEM_QUANTITY)
                    )
                    db.add(cart_item)
                else:
                    db_span.set_attribute("db.operation", "UPDATE")
                    cart_item.quantity = min(cart_item.quantity + quantity, MAX_ITEM_QUANTITY)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Failed to add product to cart", extra={
                    "user_id": user_id,
                    "product_id": product_id,
                    "error": str(e)
                })
                raise StorageFailure() from e

            db_span.set_attribute("cart_item.id", cart_item.id)

        self.invalidate_count(user_id)

        cart_additions_counter.add(1, {"product_id": str(product_id)})

        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity,
            "cart_quantity": cart_item.quantity
        })

        return {
            "cart_item_id": cart_item.id,
            "product_name": product.name,
            "quantity": cart_item.quantity
        }

    def read_cart(self, db: Session, user_id: str) -> List[CartLine]:
        """
        Read the user's cart joined with current product rows in one query.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart lines in insertion order, empty if the cart is empty
        """
        with self.tracer.start_as_current_span("db.query.read_cart") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items,products")
            db_span.set_attribute("user.id", user_id)

            rows = (
                db.query(CartItem, Product)
                .join(Product, CartItem.product_id == Product.id)
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(rows))

        return [
            CartLine(cart_item_id=item.id, product=product, quantity=item.quantity)
            for item, product in rows
        ]

    def get_cart(self, db: Session, user_id: str) -> Dict[str, Any]:
        """
        Get user's cart contents.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart contents with items and total as decimal strings
        """
        lines = self.read_cart(db, user_id)

        total = sum((line.subtotal for line in lines), Decimal("0.00"))
        items = [
            {
                "id": line.cart_item_id,
                "product_id": line.product.id,
                "product_name": line.product.name,
                "price": str(line.product.price),
                "stock": line.product.stock,
                "is_active": bool(line.product.is_active),
                "quantity": line.quantity,
                "subtotal": str(line.subtotal)
            }
            for line in lines
        ]

        return {
            "user_id": user_id,
            "items": items,
            "total": str(total)
        }

    def _get_owned_item(self, db: Session, user_id: str, cart_item_id: int) -> CartItem:
        cart_item = db.query(CartItem).filter(
            CartItem.id == cart_item_id,
            CartItem.user_id == user_id
        ).first()
        if cart_item is None:
            raise NotFound("Cart item")
        return cart_item

    def update_quantity(
        self,
        db: Session,
        user_id: str,
        cart_item_id: int,
        quantity: int
    ) -> Dict[str, Any]:
        """
        Set the quantity of one of the user's cart lines.

        Raises:
            NotFound: If the line does not exist or belongs to another user
            InsufficientStockOrInactive: If quantity exceeds current stock
        """
        cart_item = self._get_owned_item(db, user_id, cart_item_id)
        product = cart_item.product
        if quantity > product.stock:
            raise InsufficientStockOrInactive(product.name)

        try:
            cart_item.quantity = quantity
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to update cart item", extra={
                "user_id": user_id,
                "cart_item_id": cart_item_id,
                "error": str(e)
            })
            raise StorageFailure() from e

        return {
            "cart_item_id": cart_item.id,
            "product_name": product.name,
            "quantity": cart_item.quantity
        }

    def remove_item(self, db: Session, user_id: str, cart_item_id: int) -> None:
        """Delete one of the user's cart lines."""
        cart_item = self._get_owned_item(db, user_id, cart_item_id)
        try:
            db.delete(cart_item)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to remove cart item", extra={
                "user_id": user_id,
                "cart_item_id": cart_item_id,
                "error": str(e)
            })
            raise StorageFailure() from e

        self.invalidate_count(user_id)

    def clear_cart(self, db: Session, user_id: str) -> int:
        """
        Delete every cart line of the user inside the caller's transaction.

        Does not commit; the caller owns the transaction.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Number of deleted lines
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            deleted_count = db.query(CartItem).filter(
                CartItem.user_id == user_id
            ).delete(synchronize_session=False)

            db_span.set_attribute("db.rows_affected", deleted_count)

        return deleted_count

    def get_cart_count(self, db: Session, user_id: str) -> int:
        """
        Number of lines in the user's cart, served from Redis when cached.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart line count
        """
        cache_key = self._cache_key(user_id)
        with self.tracer.start_as_current_span("cache.get") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.operation", "GET")
            cache_span.set_attribute("cache.key", cache_key)

            cached = self.redis_client.get(cache_key)
            cache_span.set_attribute("cache.hit", cached is not None)

        if cached is not None:
            return int(cached)

        count = db.query(CartItem).filter(CartItem.user_id == user_id).count()

        with self.tracer.start_as_current_span("cache.set") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.operation", "SET")
            cache_span.set_attribute("cache.key", cache_key)
            cache_span.set_attribute("cache.ttl", CART_CACHE_TTL_SECONDS)

            self.redis_client.set(cache_key, count, ex=CART_CACHE_TTL_SECONDS)

        return count

    def invalidate_count(self, user_id: str) -> None:
        """Drop the cached cart count after the cart changed."""
        cache_key = self._cache_key(user_id)
        with self.tracer.start_as_current_span("cache.delete") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.operation", "DELETE")
            cache_span.set_attribute("cache.key", cache_key)

            self.redis_client.delete(cache_key)
