"""
Product catalog constants and display rules.

Products themselves live in the backend; the console only ever sees them as
plain dicts decoded from the API, e.g.:

    {"_id": "...", "name": "...", "category": "Earphone", "price": 99,
     "offerPrice": 79, "stock": 4, "image": ["https://..."],
     "specs": {"Main Feature": {"Driver": "10mm"}}, "forceOutOfStock": False}
"""

# ======================================================
# 1. CATEGORIES (the intake form's fixed choice list)
# ======================================================

PRODUCT_CATEGORIES = [
    "Earphone",
    "Headphone",
    "Watch",
    "Smartphone",
    "Laptop",
    "Camera",
    "Mouse",
    "Tablet",
    "Keyboard",
    "Monitor",
    "Processor",
    "Accessories",
]

DEFAULT_CATEGORY = "Earphone"

# Starting subcategories for seed_categories.py
CATEGORY_SUBCATEGORIES = {
    "Earphone": ["Wired", "True Wireless", "Neckband"],
    "Headphone": ["Over-Ear", "On-Ear", "Gaming"],
    "Watch": ["Smartwatch", "Fitness Band"],
    "Smartphone": ["Android", "iOS"],
    "Laptop": ["Ultrabook", "Gaming", "Business"],
    "Camera": ["DSLR", "Mirrorless", "Action"],
    "Mouse": ["Wired", "Wireless", "Gaming"],
    "Tablet": ["Android", "iPad"],
    "Keyboard": ["Mechanical", "Membrane", "Wireless"],
    "Monitor": ["Gaming", "Office", "4K"],
    "Processor": ["Desktop", "Mobile"],
    "Accessories": ["Chargers", "Cables", "Cases"],
}


# ======================================================
# 2. HELPERS
# ======================================================

def has_identifier(product) -> bool:
    return bool(product) and bool(product.get("_id"))


def is_zero_stock(product) -> bool:
    """True only for a numeric stock of exactly zero (booleans excluded)."""
    stock = product.get("stock")
    if isinstance(stock, bool) or not isinstance(stock, (int, float)):
        return False
    return stock == 0


def stock_status(product):
    """
    Return (label, colour) for the stock cell.
    Forced-hidden and zero-stock products both show as out of stock.
    """
    if product.get("forceOutOfStock") or is_zero_stock(product):
        return "Out of Stock", "red"
    return f"Current Stock: {product.get('stock')}", "green"


def visibility_label(product) -> str:
    return "Show Stock" if product.get("forceOutOfStock") else "Hide Stock"


def primary_image(product):
    images = product.get("image") or []
    return images[0] if images else None


def _number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def product_problems(product):
    """List invariant violations for a product dict (empty when it is sound)."""
    problems = []

    stock = _number(product.get("stock"))
    if stock is not None and stock < 0:
        problems.append(f"negative stock {product.get('stock')}")

    price = _number(product.get("price"))
    offer = _number(product.get("offerPrice"))
    if price is not None and offer is not None and offer >= price:
        problems.append(f"offer price {offer} is not below price {price}")

    category = product.get("category")
    if category and category not in PRODUCT_CATEGORIES:
        problems.append(f"unknown category {category!r}")

    return problems
