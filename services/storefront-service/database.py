"""Database connection and session management."""
from decimal import Decimal
from typing import Generator
import logging

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from models import Base, Category, Product

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the engine and session factory for one database.

    Created once at startup, shared by all requests and disposed at shutdown.
    """

    def __init__(self, url: str):
        """
        Initialize engine and session factory.

        Args:
            url: SQLAlchemy database URL
        """
        self.url = url
        self.engine = self._create_engine(url)
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

    @staticmethod
    def _create_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False, "timeout": 30}
            )
            _use_immediate_transactions(engine)
            return engine

        return create_engine(
            url,
            pool_size=10,  # Moderate pool size for concurrent checkouts
            max_overflow=20,  # Overflow for burst traffic
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=3600,  # Recycle connections after 1 hour
            pool_timeout=30,  # Wait max 30 seconds for a connection
            echo_pool=False
        )

    def session(self) -> Session:
        """Open a new session; the caller closes it."""
        return self.session_factory()

    def init(self, seed: bool = True) -> None:
        """Create tables and optionally seed the catalog."""
        Base.metadata.create_all(bind=self.engine)
        if seed:
            seed_catalog(self)

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


def _use_immediate_transactions(engine: Engine) -> None:
    """
    Make SQLite take the write lock when a transaction begins.

    Without this, two checkouts can both read stock under a shared lock and
    then fail to upgrade, instead of running one after the other.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own BEGIN handling so ours is the only one
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def seed_catalog(database: Database) -> None:
    """Seed categories and products if the catalog is empty."""
    db = database.session()
    try:
        if db.query(Product).count() == 0:
            electronics = Category(name="Electronics", slug="electronics")
            furniture = Category(name="Furniture", slug="furniture")
            books = Category(name="Books", slug="books")
            products = [
                Product(name="Laptop", price=Decimal("999.99"), stock=50, category=electronics),
                Product(name="Smartphone", price=Decimal("599.99"), stock=100, category=electronics),
                Product(name="Headphones", price=Decimal("99.99"), stock=200, category=electronics),
                Product(name="Monitor", price=Decimal("299.99"), stock=75, category=electronics),
                Product(name="Keyboard", price=Decimal("79.99"), stock=150, category=electronics),
                Product(name="Desk Chair", price=Decimal("199.99"), stock=30, category=furniture),
                Product(name="Standing Desk", price=Decimal("449.00"), stock=10, category=furniture),
                Product(name="Python Cookbook", price=Decimal("45.50"), stock=40, category=books),
            ]
            db.add_all(products)
            db.commit()
            logger.info("Seeded database with sample products", extra={
                "product_count": len(products)
            })
    finally:
        db.close()
