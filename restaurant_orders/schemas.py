"""
Pydantic Schemas for Request/Response Validation

Requests are thin: the engine re-validates everything that matters
(quantities, scores, ownership) so direct callers get the same errors as
HTTP callers. Responses are projections; they never hold ORM objects.

Money fields are Decimal (serialized as fixed-point strings) and every
timestamp is normalized to UTC.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_orders.core.clock import to_utc
from restaurant_orders.models import MAX_LINE_QUANTITY, OrderStatus


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderLineCreate(BaseModel):
    """Single cart line: which product and how many."""
    product_id: int = Field(..., examples=[12])
    quantity: int = Field(..., le=MAX_LINE_QUANTITY, examples=[2])


class OrderCreate(BaseModel):
    """Request schema for placing a new order."""
    restaurant_id: int = Field(..., examples=[1])
    client_id: int = Field(..., examples=[42])
    lines: List[OrderLineCreate] = Field(default_factory=list)
    comments: Optional[str] = Field(None, max_length=500, examples=["No onions"])


class OrderUpdate(BaseModel):
    """
    Partial update of an order.

    Only fields present in the payload are applied, so an explicit
    `"comments": null` clears the comments while omitting it keeps them.
    """
    status: Optional[OrderStatus] = Field(None, examples=["ACCEPTED"])
    comments: Optional[str] = Field(None, max_length=500)
    expected_version: Optional[int] = Field(
        None,
        description="Version the caller last saw; mismatches fail with CONFLICT",
    )


class ReviewCreate(BaseModel):
    restaurant_id: int = Field(..., examples=[1])
    score: int = Field(..., examples=[4])
    comments: Optional[str] = Field(None, max_length=1000)


class ReviewUpdate(BaseModel):
    score: Optional[int] = Field(None, examples=[5])
    comments: Optional[str] = Field(None, max_length=1000)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal


class OrderResponse(BaseModel):
    """Projection of an order and its lines."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    restaurant_id: int
    restaurant_name: str
    status: OrderStatus
    total: Decimal
    comments: Optional[str]
    lines: List[OrderLineResponse]
    created_at: datetime
    updated_at: datetime
    version: int

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return to_utc(v)


class OrderPage(BaseModel):
    """One page of an owner's orders plus the overall count."""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    user_id: int
    score: int
    comments: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v)


class RestaurantRatingResponse(BaseModel):
    """Review aggregate computed on demand."""
    restaurant_id: int
    review_count: int
    average_score: Optional[Decimal]


class ReportQueuedResponse(BaseModel):
    success: bool
    message: str
    task_id: Optional[str]
    orders: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    retryable: bool = False
    metadata: dict = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
