"""Product catalog port.

The catalog itself (products, variants, media, categories) is managed outside
this service. Pricing and shipping only need a narrow, read-only view of it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    """Sellable facts about one product or product variant."""

    product_id: str
    variant_id: str | None
    sku: str
    name: str
    price: float
    category_id: str | None = None
    weight: float = 0.0
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ProductCatalog(ABC):
    """Abstract catalog lookup interface."""

    @abstractmethod
    def lookup(self, product_id: str, variant_id: str | None = None) -> ProductSnapshot | None:
        """Return the snapshot for a product (or one of its variants), or None."""
        ...
