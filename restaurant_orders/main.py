"""
FastAPI Application Entry Point

Restaurant Orders - order lifecycle, pricing and reviews.

Endpoints:
    - POST/GET/PATCH/DELETE /api/orders: Order lifecycle
    - GET /api/restaurants/{id}/orders: Restaurant listings
    - POST /api/restaurants/{id}/orders/report: Queue Excel report
    - GET /api/owners/{id}/orders: Owner listings (optionally paged)
    - GET /api/clients/{id}/orders: Client listings
    - /api/reviews, /api/restaurants/{id}/reviews|rating: Reviews
    - GET /health: System health check
"""

import asyncio
import sys
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from restaurant_orders.core.config import get_settings, setup_logging
from restaurant_orders.core.exceptions import OrderingError
from restaurant_orders.core.security import Principal, get_principal
from restaurant_orders.database import get_db, get_engine, init_db
from restaurant_orders.schemas import (
    ErrorResponse,
    HealthResponse,
    OrderCreate,
    OrderPage,
    OrderResponse,
    OrderUpdate,
    ReportQueuedResponse,
    RestaurantRatingResponse,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
)
from restaurant_orders.services import (
    get_catalog_reader,
    get_order_engine,
    get_query_facade,
    get_review_ledger,
)
from restaurant_orders.services.orders import OrderEngine, OrderQueryFacade
from restaurant_orders.services.reviews import ReviewLedger
from restaurant_orders.tasks import export_orders_report

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    logger.info(f"Catalog Reader: {get_catalog_reader().provider_name}")

    if not settings.is_development:
        problems = settings.validate_production_config()
        if problems:
            logger.warning(f"Configuration problems: {problems}")

    logger.info("Application ready")

    yield

    logger.info("Shutting down...")
    await get_engine().dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant order lifecycle and pricing engine: carts priced from the "
        "live catalog, a guarded status workflow, scoped listings and reviews."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify database and broker connectivity."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if db_status == redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    principal: Principal = Depends(get_principal),
    engine: OrderEngine = Depends(get_order_engine),
) -> OrderResponse:
    """Price the cart from the live catalog and place a PENDING order."""
    return await engine.add_order(principal, order_data)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    engine: OrderEngine = Depends(get_order_engine),
) -> OrderResponse:
    return await engine.find_order_by_id(principal, order_id)


@app.patch(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Change Status / Comments",
)
async def update_order(
    order_id: int,
    update: OrderUpdate,
    principal: Principal = Depends(get_principal),
    engine: OrderEngine = Depends(get_order_engine),
) -> OrderResponse:
    return await engine.update_order(principal, order_id, update)


@app.delete(
    "/api/orders/{order_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def delete_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    engine: OrderEngine = Depends(get_order_engine),
) -> Response:
    """Remove a PENDING or CANCELLED order."""
    await engine.delete_order(principal, order_id)
    return Response(status_code=204)


@app.get(
    "/api/restaurants/{restaurant_id}/orders",
    response_model=list[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Listings"],
)
async def list_restaurant_orders(
    restaurant_id: int,
    status: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    principal: Principal = Depends(get_principal),
    facade: OrderQueryFacade = Depends(get_query_facade),
) -> list[OrderResponse]:
    """Orders of one restaurant, optionally by status and [start, end)."""
    return await facade.list_restaurant_orders(
        principal,
        restaurant_id,
        status=status.upper() if status else None,
        start=start,
        end=end,
    )


@app.post(
    "/api/restaurants/{restaurant_id}/orders/report",
    response_model=ReportQueuedResponse,
    status_code=202,
    responses=ERROR_RESPONSES,
    tags=["Listings"],
    summary="Queue Excel Report",
)
async def queue_restaurant_report(
    restaurant_id: int,
    start: datetime = Query(...),
    end: datetime = Query(...),
    principal: Principal = Depends(get_principal),
    facade: OrderQueryFacade = Depends(get_query_facade),
) -> ReportQueuedResponse:
    """Export the restaurant's orders in [start, end) from a Celery worker."""
    orders = await facade.list_restaurant_orders(
        principal, restaurant_id, start=start, end=end
    )

    task = export_orders_report.delay(
        restaurant_id,
        [order.model_dump(mode="json") for order in orders],
    )
    logger.info(f"Report for restaurant #{restaurant_id} queued as task {task.id}")

    return ReportQueuedResponse(
        success=True,
        message=f"Report of {len(orders)} orders queued",
        task_id=str(task.id),
        orders=len(orders),
    )


@app.get(
    "/api/owners/{owner_id}/orders",
    response_model=Union[OrderPage, list[OrderResponse]],
    responses=ERROR_RESPONSES,
    tags=["Listings"],
)
async def list_owner_orders(
    owner_id: int,
    page: Optional[int] = Query(None),
    page_size: Optional[int] = Query(None),
    principal: Principal = Depends(get_principal),
    facade: OrderQueryFacade = Depends(get_query_facade),
) -> Union[OrderPage, list[OrderResponse]]:
    """All orders across the owner's restaurants; paged when page or page_size is set."""
    return await facade.list_owner_orders(principal, owner_id, page=page, page_size=page_size)


@app.get(
    "/api/clients/{client_id}/orders",
    response_model=list[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Listings"],
)
async def list_client_orders(
    client_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    principal: Principal = Depends(get_principal),
    facade: OrderQueryFacade = Depends(get_query_facade),
) -> list[OrderResponse]:
    return await facade.list_client_orders(principal, client_id, start=start, end=end)


# =============================================================================
# REVIEW ENDPOINTS
# =============================================================================

@app.post(
    "/api/reviews",
    response_model=ReviewResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def create_review(
    review: ReviewCreate,
    principal: Principal = Depends(get_principal),
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> ReviewResponse:
    return await ledger.add_review(principal, review)


@app.get(
    "/api/reviews/{review_id}",
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def get_review(
    review_id: int,
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> ReviewResponse:
    return await ledger.get_review_by_id(review_id)


@app.patch(
    "/api/reviews/{review_id}",
    response_model=ReviewResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def update_review(
    review_id: int,
    update: ReviewUpdate,
    principal: Principal = Depends(get_principal),
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> ReviewResponse:
    return await ledger.update_review(principal, review_id, update)


@app.delete(
    "/api/reviews/{review_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def delete_review(
    review_id: int,
    principal: Principal = Depends(get_principal),
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> Response:
    await ledger.delete_review(principal, review_id)
    return Response(status_code=204)


@app.get(
    "/api/restaurants/{restaurant_id}/reviews",
    response_model=list[ReviewResponse],
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def list_restaurant_reviews(
    restaurant_id: int,
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> list[ReviewResponse]:
    return await ledger.get_all_restaurant_reviews(restaurant_id)


@app.get(
    "/api/restaurants/{restaurant_id}/rating",
    response_model=RestaurantRatingResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def get_restaurant_rating(
    restaurant_id: int,
    ledger: ReviewLedger = Depends(get_review_ledger),
) -> RestaurantRatingResponse:
    return await ledger.get_restaurant_rating(restaurant_id)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    """Render domain errors as ErrorResponse."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    body: dict[str, Any] = ErrorResponse(**exc.to_dict()).model_dump(mode="json")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "INTERNAL_ERROR",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
