import json

import pytest

from tryon_tracker.catalog_loader import (
    Catalog,
    CatalogLoadError,
    Product,
    load_catalog,
    parse_catalog,
)
from tryon_tracker.size_recommender import SizeChart, SizeMeasurement


def product_data(**overrides):
    data = {
        "id": "tee-01",
        "name": "Classic Tee",
        "description": "Cotton crew neck",
        "price": 24.99,
        "sizes": ["S", "M", "L"],
        "colors": ["#1f2937", "#ffffff"],
        "imageUrl": "/images/tee.png",
        "category": "tshirt",
        "inStock": True,
    }
    data.update(overrides)
    return data


def write_catalog(tmp_path, data):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_catalog_list(tmp_path):
    path = write_catalog(tmp_path, [product_data(), product_data(id="hoodie-01", category="hoodie")])

    catalog = load_catalog(path)

    assert [p.id for p in catalog.products] == ["tee-01", "hoodie-01"]
    tee = catalog.get("tee-01")
    assert tee.price == pytest.approx(24.99)
    assert tee.sizes == ["S", "M", "L"]
    assert tee.image_url == "/images/tee.png"
    assert catalog.get("hoodie-01").category == "hoodie"


def test_load_catalog_wrapped_in_products_key(tmp_path):
    path = write_catalog(tmp_path, {"products": [product_data()]})

    assert len(load_catalog(str(path)).products) == 1


def test_missing_size_chart_uses_default():
    product = Product.from_dict(product_data())

    assert product.size_chart == SizeChart.default()


def test_custom_size_chart():
    product = Product.from_dict(product_data(sizeChart={
        "S": {"shoulder": 40, "chest": 92},
        "M": {"shoulder": 43, "chest": 100},
    }))

    assert list(product.size_chart) == ["S", "M"]
    assert product.size_chart["S"] == SizeMeasurement(shoulder=40, chest=92)


def test_unknown_category_falls_back_to_tshirt():
    assert Product.from_dict(product_data(category="jacket")).category == "tshirt"


@pytest.mark.parametrize("data, message", [
    ({"name": "No id"}, "id"),
    ({"id": "x"}, "name"),
    (product_data(sizes=["S", "XXL"]), "XXL"),
    (product_data(price="free"), "price"),
    (product_data(sizes="S"), "sizes"),
    (product_data(colors={"red": "#ff0000"}), "colors"),
    (product_data(sizeChart={"XXL": {"shoulder": 50, "chest": 120}}), "size chart"),
])
def test_invalid_products(data, message):
    with pytest.raises(CatalogLoadError, match=message):
        Product.from_dict(data)


def test_null_sizes_and_colors_use_defaults():
    catalog = parse_catalog([{"id": "a", "name": "A", "sizes": None, "colors": None}])

    product = catalog.get("a")
    assert product.sizes == ["S", "M", "L", "XL"]
    assert product.colors == []


def test_duplicate_ids_rejected():
    with pytest.raises(CatalogLoadError, match="Duplicate"):
        parse_catalog([product_data(), product_data()])


def test_non_list_rejected():
    with pytest.raises(CatalogLoadError):
        parse_catalog({"items": []})


def test_invalid_entries_skipped():
    catalog = parse_catalog([product_data(), "oops"])

    assert len(catalog.products) == 1


def test_missing_file(tmp_path):
    with pytest.raises(CatalogLoadError, match="not found"):
        load_catalog(tmp_path / "missing.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CatalogLoadError, match="Invalid JSON"):
        load_catalog(path)


def test_browsing_wraps_around():
    catalog = parse_catalog([product_data(id="a"), product_data(id="b"), product_data(id="c")])

    assert catalog.next_product("a").id == "b"
    assert catalog.next_product("c").id == "a"
    assert catalog.previous_product("a").id == "c"
    assert catalog.previous_product("c").id == "b"
    assert catalog.next_product(None).id == "a"
    assert catalog.index_of("missing") == -1


def test_empty_catalog_browsing():
    catalog = Catalog()

    assert catalog.next_product("a") is None
    assert catalog.previous_product("a") is None
