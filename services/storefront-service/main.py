"""Main application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import redis
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor

from config import (
    API_VERSION,
    DATABASE_URL,
    PAYMENT_SIMULATION_DELAY_SECONDS,
    REDIS_URL,
    SEED_DATABASE,
)
from database import Database
from exceptions import StorefrontError
from monitoring import init_profiling
from logging_config import setup_logging
from routers import addresses, admin, cart, orders, payment, products, auth as auth_router

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    redis_client: Optional[redis.Redis] = None,
    payment_delay_seconds: float = PAYMENT_SIMULATION_DELAY_SECONDS,
    seed: bool = SEED_DATABASE
) -> FastAPI:
    """
    Build the application.

    Storage and cache clients may be injected (tests, scripts); anything not
    given is created from configuration during startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Handles startup and shutdown events.
        """
        logger.info("Starting application...")

        owns_database = database is None
        owns_redis = redis_client is None

        db = database or Database(DATABASE_URL)
        db.init(seed=seed)
        SQLAlchemyInstrumentor().instrument(engine=db.engine)
        app.state.database = db
        logger.info("Database initialized")

        client = redis_client or redis.from_url(REDIS_URL, decode_responses=True)
        RedisInstrumentor().instrument(redis_client=client)
        app.state.redis_client = client
        logger.info("Redis client initialized")

        init_profiling()

        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application...")
        if owns_redis:
            client.close()
        if owns_database:
            db.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Storefront Order Service",
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.payment_delay_seconds = payment_delay_seconds

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        """Render domain errors as structured failures."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "code": exc.code, "message": exc.message}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception", extra={
            "path": request.url.path,
            "error": str(exc)
        })
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(auth_router.router)
    app.include_router(products.router)
    app.include_router(cart.router)
    app.include_router(addresses.router)
    app.include_router(orders.router)
    app.include_router(payment.router)
    app.include_router(admin.router)

    FastAPIInstrumentor.instrument_app(app)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
