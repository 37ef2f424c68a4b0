"""Authoritative stock counts per product."""
import logging
from typing import Optional

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import InsufficientStock, NotFound, StorageFailure
from models import Product
from monitoring import stock_adjustments_counter

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Guards product stock against overselling."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def check_available(self, db: Session, product_id: int, quantity: int) -> bool:
        """
        Check whether a product can be sold in the given quantity.

        Args:
            db: Database session
            product_id: Product identifier
            quantity: Requested quantity

        Returns:
            True if the product is active and has enough stock
        """
        with self.tracer.start_as_current_span("db.query.check_stock") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(Product.id == product_id).first()
            if product is None:
                db_span.set_attribute("db.rows_returned", 0)
                return False

            db_span.set_attribute("db.rows_returned", 1)
            return self.is_sellable(product, quantity)

    @staticmethod
    def is_sellable(product: Product, quantity: int) -> bool:
        """Whether an already loaded product row can cover the quantity."""
        return bool(product.is_active) and product.stock >= quantity

    def decrement(
        self,
        db: Session,
        product_id: int,
        quantity: int,
        product_name: Optional[str] = None
    ) -> None:
        """
        Reduce stock in a single conditional UPDATE within the caller's transaction.

        The row only changes if the result stays at or above zero, so two
        concurrent decrements can never both take the last units. Product
        instances already loaded in the session keep their old stock until
        the transaction ends.

        Args:
            db: Database session
            product_id: Product identifier
            quantity: Units to take
            product_name: Name used in the error message

        Raises:
            InsufficientStock: If the product lacks the units (or is gone)
        """
        with self.tracer.start_as_current_span("db.query.decrement_stock") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)
            db_span.set_attribute("quantity", quantity)

            result = db.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False)
            )

            db_span.set_attribute("db.rows_affected", result.rowcount)

            if result.rowcount != 1:
                logger.warning("Stock decrement rejected", extra={
                    "product_id": product_id,
                    "quantity": quantity
                })
                raise InsufficientStock(product_id, quantity, product_name)

    def set_stock(self, db: Session, product_id: int, stock: int) -> Product:
        """
        Set an absolute stock level (administrative edit) and commit.

        Args:
            db: Database session
            product_id: Product identifier
            stock: New stock level, must be >= 0

        Returns:
            Updated product

        Raises:
            ValueError: If stock is negative
            NotFound: If the product does not exist
            StorageFailure: If the update cannot be committed
        """
        if stock < 0:
            raise ValueError("Stock cannot be negative")

        product = db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFound("Product")

        old_stock = product.stock
        try:
            product.stock = stock
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to set product stock", extra={
                "product_id": product_id,
                "stock": stock,
                "error": str(e)
            })
            raise StorageFailure() from e

        db.refresh(product)
        stock_adjustments_counter.add(1, {"product_id": str(product_id)})
        logger.info("Product stock set", extra={
            "product_id": product_id,
            "stock_before": old_stock,
            "stock_after": stock
        })
        return product
