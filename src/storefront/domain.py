"""Storefront domain: order lifecycle and inventory consistency.

Turns priced carts into committed orders, keeps per-store stock truthful as
orders are created, cancelled, transferred or reconciled, and coordinates
payments and shipments through pluggable gateways and carriers.
"""

import structlog
from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

logger = structlog.get_logger(__name__)

# Domain Composition Root
storefront = Domain(name="storefront")
