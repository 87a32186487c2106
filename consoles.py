"""
Seller stock consoles.

A console is built per page view: it loads the seller's product list from
the backend, applies one action and hands the result to the template. State
that has to outlive a single request (stock drafts, the armed delete row) is
passed in and read back out by the view, which stores it per seller.
"""

import logging
import re
import threading
from contextlib import contextmanager

from catalog import has_identifier, is_zero_stock, product_problems
from seller_api import ApiError

__all__ = [
    "parse_int",
    "ProductLocks",
    "product_locks",
    "StockConsole",
    "OutOfStockConsole",
]

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Request failed."

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)", re.ASCII)


def parse_int(value):
    """
    Base-10 leading-integer parse over ASCII digits: "12" -> 12, " 7 " -> 7,
    "3.9" -> 3, "12abc" -> 12. Returns None when there is no number
    ("", "abc", None, or digits from another script such as "\u0663").
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


class ProductLocks:
    """One lock per product id, so mutations on a product run one at a time."""

    def __init__(self):
        self._guard = threading.Lock()
        # product id -> [lock, holders and waiters]
        self._locks = {}

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, product_id):
        with self._guard:
            entry = self._locks.setdefault(product_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[product_id]


# shared by every console in the process
product_locks = ProductLocks()


class _SellerConsole:
    def __init__(self, client, notifier, stock_inputs=None, locks=None):
        self.client = client
        self.notifier = notifier
        self.locks = locks if locks is not None else product_locks
        self.products = []
        self.loading = True
        # product id -> pending stock string; kept until overwritten
        self.stock_inputs = dict(stock_inputs or {})

    # ---------- loading ----------

    def load(self, user) -> bool:
        """Fetch the product list once an authenticated user is present."""
        if not getattr(user, "is_authenticated", bool(user)):
            return False
        self.fetch_products()
        return True

    def fetch_products(self):
        try:
            data = self.client.list_seller_products()
            if data.get("success"):
                self.products = self._select(data.get("products") or [])
                self._report_problems()
            else:
                self.notifier.error(data.get("message") or GENERIC_ERROR)
        except ApiError as e:
            self.notifier.error(e.message or GENERIC_ERROR)
        finally:
            self.loading = False

    def _select(self, products):
        return list(products)

    def _report_problems(self):
        for product in self.visible_products():
            problems = product_problems(product)
            if problems:
                logger.warning(
                    f"Product {product['_id']} looks inconsistent: {'; '.join(problems)}"
                )

    def visible_products(self):
        """Products without an identifier are never rendered."""
        return [p for p in self.products if has_identifier(p)]

    # ---------- drafts ----------

    def set_stock_input(self, product_id, value):
        self.stock_inputs[product_id] = value

    def stock_input(self, product_id):
        return self.stock_inputs.get(product_id) or ""

    # ---------- mutations ----------

    def _mutate(self, product_id, call, success_message=None):
        """
        Run one backend mutation under the product's lock.
        Returns the response envelope on success, None otherwise.
        """
        with self.locks.hold(product_id):
            try:
                data = call()
            except ApiError as e:
                self.notifier.error(e.message or GENERIC_ERROR)
                return None

        if not data.get("success"):
            self.notifier.error(data.get("message") or GENERIC_ERROR)
            return None

        self.notifier.success(success_message or data.get("message") or "Saved.")
        return data

    def update_stock(self, product_id, raw_value, refresh=True) -> bool:
        if not product_id:
            return False
        new_stock = parse_int(raw_value)
        if new_stock is None or new_stock < 0:
            return False

        data = self._mutate(
            product_id,
            lambda: self.client.update_stock(product_id, new_stock),
            "Stock updated",
        )
        if data is None:
            return False

        logger.info(f"Stock for {product_id} set to {new_stock}")
        if refresh:
            self.fetch_products()
        return True

    def delete_product(self, product_id, refresh=True) -> bool:
        if not product_id:
            return False

        data = self._mutate(
            product_id,
            lambda: self.client.delete_product(product_id),
            "Product deleted",
        )
        if data is None:
            return False

        logger.info(f"Product {product_id} deleted")
        if refresh:
            self.fetch_products()
        return True


class StockConsole(_SellerConsole):
    """Every listing of the seller, with stock edits, delete and hide/show."""

    # product dict from the most recent successful toggle
    last_toggled = None

    def toggle_stock_visibility(self, product_id) -> bool:
        if not product_id:
            self.notifier.error("Invalid product ID")
            return False

        data = self._mutate(
            product_id,
            lambda: self.client.toggle_stock_visibility(product_id),
        )
        if data is None:
            return False

        updated = data.get("product") or {}
        self.last_toggled = updated or None
        if has_identifier(updated):
            # merge in place; no refetch
            self.products = [
                updated if has_identifier(p) and p["_id"] == updated["_id"] else p
                for p in self.products
            ]
        logger.info(
            f"Product {product_id} forceOutOfStock={updated.get('forceOutOfStock')}"
        )
        return True


class OutOfStockConsole(_SellerConsole):
    """Zero-stock listings only, with a two-step delete."""

    def __init__(self, client, notifier, stock_inputs=None, locks=None,
                 confirm_delete_id=None):
        super().__init__(client, notifier, stock_inputs=stock_inputs, locks=locks)
        # at most one row is armed at a time
        self.confirm_delete_id = confirm_delete_id

    def _select(self, products):
        return [p for p in products if is_zero_stock(p)]

    def request_delete(self, product_id):
        self.confirm_delete_id = product_id or None

    def cancel_delete(self):
        self.confirm_delete_id = None

    def is_armed(self, product_id) -> bool:
        return bool(product_id) and product_id == self.confirm_delete_id

    def confirm_delete(self, product_id, refresh=True) -> bool:
        """Second click: only deletes the row that is currently armed."""
        if not self.is_armed(product_id):
            return False
        return self.delete_product(product_id, refresh=refresh)

    def delete_product(self, product_id, refresh=True) -> bool:
        deleted = super().delete_product(product_id, refresh=refresh)
        if deleted:
            self.confirm_delete_id = None
        return deleted
