"""Shared fixtures for the seller console test suite."""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# app.py reads its config at import time
os.environ["SELLER_DATABASE_URI"] = "sqlite://"
os.environ["PREVIEW_DIR"] = tempfile.mkdtemp(prefix="seller-previews-")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SELLER_EMAIL"] = ""
os.environ["SELLER_PASSWORD"] = ""


class RecordingNotifier:
    """Collects notifications instead of flashing them."""

    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sample_products():
    return [
        {"_id": "p1", "name": "Buds Lite", "category": "Earphone", "price": 50,
         "offerPrice": 40, "stock": 0, "forceOutOfStock": False,
         "image": ["https://cdn.test/p1.png"]},
        {"_id": "p2", "name": "Studio Max", "category": "Headphone", "price": 200,
         "offerPrice": 180, "stock": 7, "forceOutOfStock": False,
         "image": ["https://cdn.test/p2.png"]},
        {"_id": "p3", "name": "Pulse Watch", "category": "Watch", "price": 120,
         "offerPrice": 99, "stock": 3, "forceOutOfStock": True,
         "image": []},
        {"name": "Orphan Row", "category": "Mouse", "price": 10, "stock": 0},
    ]


@pytest.fixture
def fake_api(sample_products):
    """Stand-in for SellerApiClient with happy-path answers."""
    api = MagicMock()
    api.list_seller_products.return_value = {"success": True, "products": sample_products}
    api.update_stock.return_value = {"success": True, "message": "Stock updated"}
    api.delete_product.return_value = {"success": True, "message": "Deleted"}
    api.toggle_stock_visibility.return_value = {
        "success": True,
        "message": "Stock hidden",
        "product": dict(sample_products[0], forceOutOfStock=True),
    }
    api.add_product.return_value = {"success": True, "message": "Product added"}
    api.bulk_upload.return_value = {"success": True, "message": "Imported 3 products"}
    return api


# ---------- Flask ----------


@pytest.fixture
def flask_app(tmp_path):
    from flask_login import FlaskLoginClient

    from app import app, db

    app.config.update(TESTING=True, PREVIEW_DIR=str(tmp_path / "previews"))
    app.test_client_class = FlaskLoginClient

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


def make_user(flask_app, email, password="secret", is_seller=True, api_token="tok-123"):
    from werkzeug.security import generate_password_hash

    from app import db, User

    with flask_app.app_context():
        user = User(
            email=email,
            name="Test Seller",
            password_hash=generate_password_hash(password),
            is_seller=is_seller,
            api_token=api_token,
        )
        db.session.add(user)
        db.session.commit()
        user.id  # load attributes before the session goes away
        db.session.expunge(user)
    return user


@pytest.fixture
def seller(flask_app):
    return make_user(flask_app, "seller@example.com")


@pytest.fixture
def patched_api(flask_app, fake_api, monkeypatch):
    import app as app_module

    monkeypatch.setattr(app_module, "api_client", lambda: fake_api)
    return fake_api


@pytest.fixture
def client(flask_app, seller, patched_api):
    # no `with`: a preserved request context would leak g/current_user into other clients
    yield flask_app.test_client(user=seller)


@pytest.fixture
def anon_client(flask_app):
    yield flask_app.test_client()
