"""Product catalog accessors.

Provides get_catalog() / set_catalog() / reset_catalog() so the catalog
backend can be swapped without touching pricing code.
"""

from storefront.catalog.port import ProductCatalog, ProductSnapshot

__all__ = ["ProductCatalog", "ProductSnapshot", "get_catalog", "reset_catalog", "set_catalog"]

_current_catalog: ProductCatalog | None = None


def get_catalog() -> ProductCatalog:
    """Return the active catalog. Defaults to an empty InMemoryCatalog."""
    global _current_catalog
    if _current_catalog is None:
        from storefront.catalog.memory_adapter import InMemoryCatalog

        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog: ProductCatalog) -> None:
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    global _current_catalog
    _current_catalog = None
