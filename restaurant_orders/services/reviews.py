"""
Review Ledger

One score (1-5) and comment per (restaurant, user). Only the author may
edit or remove a review. The restaurant rating is aggregated on demand
from the ledger rather than stored, so it can never go stale.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_orders.core.clock import utcnow
from restaurant_orders.core.exceptions import (
    DuplicateReview,
    Forbidden,
    InvalidScore,
    RestaurantNotFound,
    ReviewNotFound,
)
from restaurant_orders.core.security import Principal
from restaurant_orders.models import Review
from restaurant_orders.schemas import (
    RestaurantRatingResponse,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
)
from restaurant_orders.services.directory.base import BaseRestaurantDirectory
from restaurant_orders.services.orders.pricing import round2
from restaurant_orders.services.storage import run_in_transaction

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


def validate_score(score: Any) -> int:
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidScore(score)
    return score


class ReviewLedger:
    """
    Restaurant reviews store.

    Args:
        session_factory: Produces one AsyncSession per operation
        directory: Confirms restaurants exist
        clock: Returns the current UTC time
        retry_delay: Pause before the single transient-error retry
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: BaseRestaurantDirectory,
        clock: Callable[[], datetime] = utcnow,
        retry_delay: float = 0.0,
    ):
        self._session_factory = session_factory
        self._directory = directory
        self._clock = clock
        self._retry_delay = retry_delay

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self._session_factory,
            work,
            retry_delay=self._retry_delay,
            operation=operation,
        )

    async def _require_restaurant(self, restaurant_id: int) -> None:
        if await self._directory.get_restaurant(restaurant_id) is None:
            raise RestaurantNotFound(restaurant_id)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add_review(self, principal: Principal, request: ReviewCreate) -> ReviewResponse:
        """
        Record the principal's review of a restaurant.

        Raises:
            Forbidden: Principal is not a client
            InvalidScore: Score outside [1, 5]
            RestaurantNotFound
            DuplicateReview: The user already reviewed this restaurant
        """
        logger.info(f"Adding review of restaurant #{request.restaurant_id} by user #{principal.user_id}")

        if not principal.is_client:
            raise Forbidden("Only clients can review restaurants")
        validate_score(request.score)
        await self._require_restaurant(request.restaurant_id)

        async def _persist(session: AsyncSession) -> ReviewResponse:
            existing = await session.execute(
                select(Review.id).where(
                    Review.restaurant_id == request.restaurant_id,
                    Review.user_id == principal.user_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise DuplicateReview(request.restaurant_id, principal.user_id)

            review = Review(
                restaurant_id=request.restaurant_id,
                user_id=principal.user_id,
                score=request.score,
                comments=request.comments,
                created_at=self._clock(),
            )
            session.add(review)
            try:
                await session.flush()
            except IntegrityError as e:
                # Lost a race with a concurrent insert of the same pair
                raise DuplicateReview(request.restaurant_id, principal.user_id) from e
            return ReviewResponse.model_validate(review)

        response = await self._run(_persist, "add review")
        logger.info(f"Review #{response.id} created")
        return response

    async def update_review(
        self,
        principal: Principal,
        review_id: int,
        update: ReviewUpdate,
    ) -> ReviewResponse:
        """
        Edit score and/or comments of the principal's own review.

        Raises:
            ReviewNotFound, Forbidden, InvalidScore
        """
        fields = update.model_fields_set
        if update.score is not None:
            validate_score(update.score)

        async def _apply(session: AsyncSession) -> ReviewResponse:
            review = await self._load_owned(session, principal, review_id)

            if update.score is not None:
                review.score = update.score
            if "comments" in fields:
                review.comments = update.comments
            review.updated_at = self._clock()

            await session.flush()
            return ReviewResponse.model_validate(review)

        response = await self._run(_apply, f"update review #{review_id}")
        logger.info(f"Review #{review_id} updated")
        return response

    async def delete_review(self, principal: Principal, review_id: int) -> None:
        async def _delete(session: AsyncSession) -> None:
            review = await self._load_owned(session, principal, review_id)
            await session.delete(review)
            await session.flush()

        await self._run(_delete, f"delete review #{review_id}")
        logger.warning(f"Review #{review_id} deleted by user #{principal.user_id}")

    # =========================================================================
    # READS
    # =========================================================================

    async def get_review_by_id(self, review_id: int) -> ReviewResponse:
        async def _read(session: AsyncSession) -> ReviewResponse:
            return ReviewResponse.model_validate(await self._load(session, review_id))

        return await self._run(_read, f"get review #{review_id}")

    async def get_all_restaurant_reviews(self, restaurant_id: int) -> list[ReviewResponse]:
        """Reviews of a restaurant, most recent first."""
        await self._require_restaurant(restaurant_id)

        async def _read(session: AsyncSession) -> list[ReviewResponse]:
            result = await session.execute(
                select(Review)
                .where(Review.restaurant_id == restaurant_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
            )
            return [ReviewResponse.model_validate(r) for r in result.scalars().all()]

        return await self._run(_read, f"reviews of restaurant #{restaurant_id}")

    async def get_restaurant_rating(self, restaurant_id: int) -> RestaurantRatingResponse:
        """Review count and average score (2 decimals, None without reviews)."""
        await self._require_restaurant(restaurant_id)

        async def _read(session: AsyncSession) -> RestaurantRatingResponse:
            result = await session.execute(
                select(func.count(Review.id), func.avg(Review.score))
                .where(Review.restaurant_id == restaurant_id)
            )
            count, average = result.one()
            return RestaurantRatingResponse(
                restaurant_id=restaurant_id,
                review_count=count or 0,
                average_score=self._average(average),
            )

        return await self._run(_read, f"rating of restaurant #{restaurant_id}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _average(value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        # AVG is float on SQLite and numeric on PostgreSQL
        return round2(Decimal(str(value)))

    @staticmethod
    async def _load(session: AsyncSession, review_id: int) -> Review:
        result = await session.execute(select(Review).where(Review.id == review_id))
        review = result.scalar_one_or_none()
        if review is None:
            raise ReviewNotFound(review_id)
        return review

    async def _load_owned(self, session: AsyncSession, principal: Principal, review_id: int) -> Review:
        review = await self._load(session, review_id)
        if review.user_id != principal.user_id:
            logger.warning(f"User #{principal.user_id} denied change of review #{review_id}")
            raise Forbidden("Only the author can change this review")
        return review
