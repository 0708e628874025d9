"""In-memory product catalog for development and testing.

Products are registered with their base attributes; variants may override
price, SKU, weight and dimensions. Attributes a variant leaves unset fall back
to the product's.
"""

from storefront.catalog.port import ProductCatalog, ProductSnapshot

_VARIANT_OVERRIDES = ("sku", "name", "price", "weight", "length", "width", "height")


class InMemoryCatalog(ProductCatalog):
    def __init__(self) -> None:
        self.products: dict[str, dict] = {}
        self.variants: dict[tuple[str, str], dict] = {}

    def add_product(
        self,
        product_id: str,
        sku: str,
        name: str,
        price: float,
        category_id: str | None = None,
        weight: float = 0.0,
        length: float = 0.0,
        width: float = 0.0,
        height: float = 0.0,
    ) -> None:
        self.products[str(product_id)] = {
            "sku": sku,
            "name": name,
            "price": price,
            "category_id": category_id,
            "weight": weight,
            "length": length,
            "width": width,
            "height": height,
        }

    def add_variant(self, product_id: str, variant_id: str, **overrides) -> None:
        unknown = set(overrides) - set(_VARIANT_OVERRIDES)
        if unknown:
            raise ValueError(f"Unsupported variant attributes: {sorted(unknown)}")
        self.variants[(str(product_id), str(variant_id))] = overrides

    def lookup(self, product_id: str, variant_id: str | None = None) -> ProductSnapshot | None:
        product = self.products.get(str(product_id))
        if product is None:
            return None

        attributes = dict(product)
        if variant_id:
            overrides = self.variants.get((str(product_id), str(variant_id)))
            if overrides is None:
                return None
            attributes.update({key: value for key, value in overrides.items() if value is not None})

        return ProductSnapshot(
            product_id=str(product_id),
            variant_id=str(variant_id) if variant_id else None,
            **attributes,
        )
