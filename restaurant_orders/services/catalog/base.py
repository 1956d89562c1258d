"""
Catalog Reader Abstract Base Class

Defines the read contract the order engine relies on for authoritative
product data. Implementations never mutate the catalog.

Use Cases:
    - Pricing order lines at placement time
    - Rejecting inactive products
    - Rejecting products owned by another restaurant
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ProductInfo:
    """
    Catalog view of one product.

    Attributes:
        product_id: Catalog identifier
        name: Display name, snapshotted into order lines
        price: Current unit price (fixed-point)
        is_active: Whether the product can be ordered
        restaurant_id: Owning restaurant
    """
    product_id: int
    name: str
    price: Decimal
    is_active: bool
    restaurant_id: int


class BaseCatalogReader(ABC):
    """
    Abstract base class for catalog readers.

    Example:
        >>> reader = get_catalog_reader()
        >>> product = await reader.get_product(12)
        >>> if product and product.is_active:
        ...     print(product.price)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the reader implementation.

        Returns:
            str: Provider name (e.g., "sql", "cached:sql")
        """
        pass

    @abstractmethod
    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        """
        Look up a product.

        Args:
            product_id: Catalog identifier

        Returns:
            ProductInfo, or None when the product does not exist
        """
        pass
