"""
Ordering Errors

Structured, recoverable failures raised by the order engine and the
review ledger. Every error carries a machine-readable code, a message,
optional metadata and the HTTP status the API layer reports it with.

Taxonomy:
    - NotFound: order, product, restaurant or review absent
    - ValidationError: malformed quantities, scores, empty carts,
      inactive or foreign catalog entries
    - InvalidTransition: illegal status change
    - OrderNotDeletable: deletion outside PENDING / CANCELLED
    - Forbidden: actor lacks rights over the target
    - DuplicateReview: second review for the same restaurant and user
    - Conflict: concurrent write race lost
    - Unavailable: storage failure that survived the internal retry
"""

from typing import Any, Optional


class OrderingError(Exception):
    """Base class for all business and storage failures."""

    code = "ORDERING_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, metadata: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "detail": self.message,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFound(OrderingError):
    code = "NOT_FOUND"
    status_code = 404


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        super().__init__(f"Order #{order_id} not found", {"order_id": order_id})


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Product #{product_id} not found", {"product_id": product_id})


class RestaurantNotFound(NotFound):
    code = "RESTAURANT_NOT_FOUND"

    def __init__(self, restaurant_id: int):
        super().__init__(
            f"Restaurant #{restaurant_id} not found",
            {"restaurant_id": restaurant_id},
        )


class ReviewNotFound(NotFound):
    code = "REVIEW_NOT_FOUND"

    def __init__(self, review_id: int):
        super().__init__(f"Review #{review_id} not found", {"review_id": review_id})


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(OrderingError):
    code = "VALIDATION_ERROR"
    status_code = 422


class ProductInactive(ValidationError):
    code = "PRODUCT_INACTIVE"

    def __init__(self, product_id: int):
        super().__init__(
            f"Product #{product_id} is not available",
            {"product_id": product_id},
        )


class ProductRestaurantMismatch(ValidationError):
    code = "PRODUCT_RESTAURANT_MISMATCH"

    def __init__(self, product_id: int, restaurant_id: int, owner_restaurant_id: int):
        super().__init__(
            f"Product #{product_id} does not belong to restaurant #{restaurant_id}",
            {
                "product_id": product_id,
                "restaurant_id": restaurant_id,
                "product_restaurant_id": owner_restaurant_id,
            },
        )


class RestaurantInactive(ValidationError):
    code = "RESTAURANT_INACTIVE"

    def __init__(self, restaurant_id: int):
        super().__init__(
            f"Restaurant #{restaurant_id} is not accepting orders",
            {"restaurant_id": restaurant_id},
        )


class InvalidScore(ValidationError):
    code = "INVALID_SCORE"

    def __init__(self, score: Any):
        super().__init__(
            f"Score must be an integer between 1 and 5, got {score!r}",
            {"score": score},
        )


# =============================================================================
# STATE / AUTHORIZATION / CONCURRENCY
# =============================================================================

class InvalidTransition(OrderingError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, order_id: Optional[int], current: Any, requested: Any):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            f"Cannot move order from {current_value} to {requested_value}",
            {"order_id": order_id, "current": current_value, "requested": requested_value},
        )


class OrderNotDeletable(OrderingError):
    code = "ORDER_NOT_DELETABLE"
    status_code = 409

    def __init__(self, order_id: int, status: Any):
        status_value = getattr(status, "value", status)
        super().__init__(
            f"Order #{order_id} cannot be deleted while {status_value}",
            {"order_id": order_id, "status": status_value},
        )


class Forbidden(OrderingError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, reason: str = "Insufficient permissions"):
        super().__init__(reason)


class DuplicateReview(OrderingError):
    code = "DUPLICATE_REVIEW"
    status_code = 409

    def __init__(self, restaurant_id: int, user_id: int):
        super().__init__(
            f"User #{user_id} already reviewed restaurant #{restaurant_id}",
            {"restaurant_id": restaurant_id, "user_id": user_id},
        )


class Conflict(OrderingError):
    code = "CONFLICT"
    status_code = 409
    retryable = True

    def __init__(self, message: str = "Resource was modified concurrently", metadata: Optional[dict] = None):
        super().__init__(message, metadata)


class Unavailable(OrderingError):
    code = "UNAVAILABLE"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable, try again later"):
        super().__init__(message)
