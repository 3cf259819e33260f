"""
Catalog loader for TryOnTracker.

Loads and validates product catalog JSON files exported from the storefront
API. Product properties use camelCase to match the storefront's JSON format.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from tryon_tracker.logger import get_logger
from tryon_tracker.config import SIZE_KEYS
from tryon_tracker.size_recommender import SizeChart

logger = get_logger("CatalogLoader")

PRODUCT_CATEGORIES = ("tshirt", "hoodie")


class CatalogLoadError(Exception):
    """Raised when catalog loading or validation fails."""
    pass


@dataclass
class Product:
    """
    A product that can be tried on.

    Attributes:
        id: Unique identifier.
        name: Display name.
        description: Product description.
        price: Unit price.
        sizes: Size labels offered.
        colors: Color values offered (e.g. "#1f2937").
        image_url: Flat garment image used for the 2D overlay.
        model_url: Optional 3D garment model for an external renderer.
        category: "tshirt" or "hoodie".
        size_chart: Reference measurements per size.
        in_stock: Whether the product can be added to a cart.
    """

    id: str
    name: str
    description: str = ""
    price: float = 0.0
    sizes: list[str] = field(default_factory=lambda: list(SIZE_KEYS))
    colors: list[str] = field(default_factory=list)
    image_url: str = ""
    model_url: Optional[str] = None
    category: str = "tshirt"
    size_chart: SizeChart = field(default_factory=SizeChart.default)
    in_stock: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        """
        Create a Product from a dictionary with camelCase keys.

        Raises:
            CatalogLoadError: If required fields are missing or invalid.
        """
        if "id" not in data:
            raise CatalogLoadError("Product missing required field: id")
        if "name" not in data:
            raise CatalogLoadError(f"Product {data['id']} missing required field: name")

        product_id = str(data["id"])

        chart_data = data.get("sizeChart")
        if chart_data:
            try:
                size_chart = SizeChart.from_dict(chart_data)
            except (ValueError, AttributeError) as e:
                raise CatalogLoadError(f"Product {product_id} has an invalid size chart: {e}")
        else:
            logger.debug(f"Applied default size chart for: {product_id}")
            size_chart = SizeChart.default()

        sizes = [str(s) for s in _list_field(data, "sizes", product_id, SIZE_KEYS)]
        unknown_sizes = [s for s in sizes if s not in SIZE_KEYS]
        if unknown_sizes:
            raise CatalogLoadError(
                f"Product {product_id} has unknown size(s): {', '.join(unknown_sizes)}"
            )

        category = str(data.get("category", "tshirt")).lower()
        if category not in PRODUCT_CATEGORIES:
            logger.warning(f"Unknown category '{category}' for {product_id}, using 'tshirt'")
            category = "tshirt"

        try:
            price = float(data.get("price", 0.0))
        except (TypeError, ValueError):
            raise CatalogLoadError(f"Product {product_id} has an invalid price")

        return cls(
            id=product_id,
            name=str(data["name"]),
            description=str(data.get("description", "")),
            price=price,
            sizes=sizes,
            colors=[str(c) for c in _list_field(data, "colors", product_id, [])],
            image_url=str(data.get("imageUrl", "")),
            model_url=data.get("modelUrl"),
            category=category,
            size_chart=size_chart,
            in_stock=bool(data.get("inStock", True)),
        )


def _list_field(data: dict[str, Any], key: str, product_id: str, default: list) -> list:
    """List-valued product field; null counts as missing."""
    value = data.get(key)
    if value is None:
        return list(default)
    if not isinstance(value, list):
        raise CatalogLoadError(f"Product {product_id} field {key} must be a list")
    return value


@dataclass
class Catalog:
    """Ordered list of products with wrap-around browsing."""

    products: list[Product] = field(default_factory=list)

    def get(self, product_id: str) -> Optional[Product]:
        """Get a product by id."""
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def index_of(self, product_id: str) -> int:
        for i, product in enumerate(self.products):
            if product.id == product_id:
                return i
        return -1

    def next_product(self, product_id: Optional[str]) -> Optional[Product]:
        """Product after product_id, wrapping to the first."""
        if not self.products:
            return None
        index = self.index_of(product_id) if product_id else -1
        if index < 0 or index >= len(self.products) - 1:
            return self.products[0]
        return self.products[index + 1]

    def previous_product(self, product_id: Optional[str]) -> Optional[Product]:
        """Product before product_id, wrapping to the last."""
        if not self.products:
            return None
        index = self.index_of(product_id) if product_id else -1
        if index <= 0:
            return self.products[-1]
        return self.products[index - 1]


def load_catalog(catalog_path: str | Path) -> Catalog:
    """
    Load and validate a product catalog from a JSON file.

    The file holds either a list of products or {"products": [...]}.

    Args:
        catalog_path: Path to the JSON catalog file.

    Returns:
        Validated Catalog instance.

    Raises:
        CatalogLoadError: If file cannot be read or validation fails.
    """
    path = Path(catalog_path)
    logger.info(f"Loading catalog from: {path}")

    if not path.exists():
        raise CatalogLoadError(f"Catalog file not found: {path}")

    if not path.is_file():
        raise CatalogLoadError(f"Catalog path is not a file: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in catalog: {e}")
    except IOError as e:
        raise CatalogLoadError(f"Cannot read catalog file: {e}")

    return parse_catalog(data)


def parse_catalog(data: Any) -> Catalog:
    """
    Parse and validate catalog data.

    Args:
        data: List of product dicts, or a dict with a "products" list.

    Returns:
        Validated Catalog instance.

    Raises:
        CatalogLoadError: If the structure is invalid or ids repeat.
    """
    if isinstance(data, dict):
        data = data.get("products")

    if not isinstance(data, list):
        raise CatalogLoadError("Catalog must be a list of products")

    products = []
    for entry in data:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping invalid catalog entry: {entry!r}")
            continue
        products.append(Product.from_dict(entry))

    ids = [p.id for p in products]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise CatalogLoadError(f"Duplicate product id(s): {', '.join(duplicates)}")

    logger.info(f"Catalog loaded: {len(products)} product(s)")
    return Catalog(products=products)
