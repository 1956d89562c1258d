"""
Restaurant Directory Abstract Base Class

Read contract for restaurant existence, activity and ownership. The
engine and the review ledger use it for authorization decisions and to
resolve an owner's restaurants for owner-scoped queries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RestaurantInfo:
    """
    Directory view of one restaurant.

    Attributes:
        restaurant_id: Directory identifier
        name: Display name, snapshotted into orders
        owner_user_id: User who owns (and administers) the restaurant
        is_active: Whether the restaurant accepts orders
    """
    restaurant_id: int
    name: str
    owner_user_id: int
    is_active: bool


class BaseRestaurantDirectory(ABC):
    """Abstract base class for restaurant directories."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get_restaurant(self, restaurant_id: int) -> Optional[RestaurantInfo]:
        """
        Look up a restaurant.

        Returns:
            RestaurantInfo, or None when it does not exist
        """
        pass

    @abstractmethod
    async def list_restaurant_ids_by_owner(self, owner_user_id: int) -> list[int]:
        """
        Ids of every restaurant owned by a user, ascending.

        Returns:
            list[int]: Possibly empty list of restaurant ids
        """
        pass
