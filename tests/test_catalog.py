"""Tests for catalog display rules and invariant checks."""

import pytest

from catalog import (
    PRODUCT_CATEGORIES,
    CATEGORY_SUBCATEGORIES,
    is_zero_stock,
    primary_image,
    product_problems,
    stock_status,
    visibility_label,
)


@pytest.mark.parametrize(
    "product, expected",
    [
        ({"stock": 4, "forceOutOfStock": False}, ("Current Stock: 4", "green")),
        ({"stock": 0, "forceOutOfStock": False}, ("Out of Stock", "red")),
        ({"stock": 9, "forceOutOfStock": True}, ("Out of Stock", "red")),
    ],
)
def test_stock_status(product, expected):
    assert stock_status(product) == expected


def test_visibility_label():
    assert visibility_label({"forceOutOfStock": True}) == "Show Stock"
    assert visibility_label({}) == "Hide Stock"


def test_zero_stock_ignores_booleans_and_strings():
    assert is_zero_stock({"stock": 0})
    assert is_zero_stock({"stock": 0.0})
    assert not is_zero_stock({"stock": False})
    assert not is_zero_stock({"stock": "0"})
    assert not is_zero_stock({})


def test_primary_image():
    assert primary_image({"image": ["a.png", "b.png"]}) == "a.png"
    assert primary_image({"image": []}) is None


def test_sound_product_has_no_problems():
    product = {"price": 100, "offerPrice": 80, "stock": 2, "category": "Camera"}
    assert product_problems(product) == []


def test_problems_are_reported():
    product = {"price": 100, "offerPrice": 120, "stock": -1, "category": "Toaster"}

    problems = product_problems(product)

    assert len(problems) == 3
    assert any("negative stock" in p for p in problems)
    assert any("offer price" in p for p in problems)
    assert any("Toaster" in p for p in problems)


def test_every_category_has_seed_subcategories():
    assert set(CATEGORY_SUBCATEGORIES) == set(PRODUCT_CATEGORIES)
