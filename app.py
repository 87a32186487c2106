import logging
import os
from datetime import datetime
from functools import wraps

from dotenv import load_dotenv
from flask import (
    Flask, render_template, request, redirect,
    url_for, flash, jsonify, abort,
    get_flashed_messages, send_from_directory
)
from flask_sqlalchemy import SQLAlchemy
from flask_login import (
    LoginManager, UserMixin, login_user, logout_user,
    login_required, current_user
)
from werkzeug.security import generate_password_hash, check_password_hash

from catalog import PRODUCT_CATEGORIES, primary_image, stock_status, visibility_label
from consoles import OutOfStockConsole, StockConsole
from notifications import FlashNotifier
from product_form import (
    IMAGE_SLOTS, FormValidationError, PreviewStore,
    ProductIntakeForm, upload_catalog_file
)
from seller_api import SellerApiClient, create_session

load_dotenv()

app = Flask(__name__)

# ----------------------------
# CONFIG
# ----------------------------
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "change-this-secret-key")
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
    "SELLER_DATABASE_URI", "sqlite:///seller_console.db"
)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

# Product backend
app.config["SELLER_API_BASE_URL"] = os.getenv("SELLER_API_BASE_URL", "http://localhost:3000")
app.config["SELLER_API_TIMEOUT"] = float(os.getenv("SELLER_API_TIMEOUT", "15"))

# Staged image previews (one sub-directory per seller)
app.config["PREVIEW_DIR"] = os.getenv(
    "PREVIEW_DIR", os.path.join(app.instance_path, "previews")
)

# Bootstrap seller account
app.config["SELLER_EMAIL"] = os.getenv("SELLER_EMAIL", "")
app.config["SELLER_PASSWORD"] = os.getenv("SELLER_PASSWORD", "")
app.config["SELLER_API_TOKEN"] = os.getenv("SELLER_API_TOKEN", "")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

db = SQLAlchemy(app)

login_manager = LoginManager(app)
login_manager.login_view = "login"

# shared connection pool for backend calls
http_session = create_session()

# ----------------------------
# MODELS
# ----------------------------
class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(150), unique=True, nullable=False)
    name = db.Column(db.String(150))
    password_hash = db.Column(db.String(255), nullable=False)
    is_seller = db.Column(db.Boolean, default=False)

    # bearer token presented to the product backend
    api_token = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def get_id(self):
        return str(self.id)

    @property
    def initials(self):
        if self.name:
            parts = self.name.strip().split()
            if len(parts) == 1:
                return parts[0][:2].upper()
            return (parts[0][0] + parts[-1][0]).upper()
        return (self.email[:2] if self.email else "SE").upper()


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    subcategories = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {"name": self.name, "subcategories": list(self.subcategories or [])}


class SellerDraft(db.Model):
    """Per-seller page state: the add-product draft, stock drafts, the armed delete row."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False)

    product_draft = db.Column(db.JSON)
    stock_inputs = db.Column(db.JSON, nullable=False, default=dict)
    confirm_delete_id = db.Column(db.String(100))

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ----------------------------
# LOGIN MANAGER
# ----------------------------
@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


# ----------------------------
# CONTEXT PROCESSOR
# ----------------------------
@app.context_processor
def inject_catalog_helpers():
    """
    Category choices plus the display helpers every seller page uses.
    Subcategories come from the category table and may be empty.
    """
    subcategories = {c.name: list(c.subcategories or []) for c in Category.query.all()}
    return dict(
        categories=PRODUCT_CATEGORIES,
        category_subcategories=subcategories,
        stock_status=stock_status,
        visibility_label=visibility_label,
        primary_image=primary_image,
    )


# ----------------------------
# SELLER DECORATOR & HELPERS
# ----------------------------
def seller_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_seller:
            flash("Seller access only.", "error")
            return redirect(url_for("login"))
        return fn(*args, **kwargs)
    return wrapper


def api_client():
    return SellerApiClient(
        app.config["SELLER_API_BASE_URL"],
        lambda: current_user.api_token,
        timeout=app.config["SELLER_API_TIMEOUT"],
        session=http_session,
    )


def preview_store():
    return PreviewStore(os.path.join(app.config["PREVIEW_DIR"], str(current_user.id)))


def seller_draft():
    """The seller's page state row, created on first use."""
    draft = SellerDraft.query.filter_by(user_id=current_user.id).first()
    if not draft:
        draft = SellerDraft(user_id=current_user.id, stock_inputs={})
        db.session.add(draft)
    return draft


def load_form():
    return ProductIntakeForm.from_state(seller_draft().product_draft, preview_store())


def save_form(form):
    seller_draft().product_draft = form.to_state()
    db.session.commit()


def sweep_previews():
    """Delete staged files that the seller's saved draft no longer points at."""
    draft = SellerDraft.query.filter_by(user_id=current_user.id).first()
    form = ProductIntakeForm.from_state(draft.product_draft if draft else None, preview_store())
    removed = form.previews.sweep(keep=form.previews_in_use())
    if removed:
        app.logger.info("Removed %d orphaned preview(s) for user %s", removed, current_user.id)


def save_console_state(console):
    draft = seller_draft()
    draft.stock_inputs = dict(console.stock_inputs)
    if isinstance(console, OutOfStockConsole):
        draft.confirm_delete_id = console.confirm_delete_id
    db.session.commit()


def wants_json():
    return request.is_json or request.headers.get("X-Requested-With") == "XMLHttpRequest"


def console_reply(ok, redirect_to, **payload):
    """JSON for XHR callers, otherwise back to the console page."""
    if wants_json():
        messages = [
            {"category": category, "message": message}
            for category, message in get_flashed_messages(with_categories=True)
        ]
        return jsonify({"ok": ok, "messages": messages, **payload})
    return redirect(url_for(redirect_to))


# ----------------------------
# AUTH
# ----------------------------
@app.route("/")
def home():
    if current_user.is_authenticated and current_user.is_seller:
        return redirect(url_for("add_product"))
    return redirect(url_for("login"))


@app.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated and current_user.is_seller:
        return redirect(url_for("add_product"))

    if request.method == "POST":
        email = request.form.get("email")
        password = request.form.get("password") or ""

        user = User.query.filter_by(email=email).first()
        if not user or not check_password_hash(user.password_hash, password):
            flash("Invalid email or password", "error")
            return redirect(url_for("login"))

        if not user.is_seller:
            flash("Seller access only.", "error")
            return redirect(url_for("login"))

        login_user(user)
        sweep_previews()
        flash("Logged in successfully.", "success")
        return redirect(url_for("add_product"))

    return render_template("login.html")


@app.route("/logout")
@login_required
def logout():
    # leaving the panel discards the draft and its staged images
    draft = SellerDraft.query.filter_by(user_id=current_user.id).first()
    if draft:
        load_form().close()
        db.session.delete(draft)
        db.session.commit()

    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("login"))


# ----------------------------
# ADD PRODUCT
# ----------------------------
def apply_form_edits(form):
    """Copy the posted text fields, spec groups and images into the draft."""
    form.update_fields(request.form)

    for g, group in enumerate(form.spec_groups):
        title = request.form.get(f"group-{g}-title")
        if title is not None:
            form.set_group_title(g, title)
        for i in range(len(group.specs)):
            for field_name in ("key", "value"):
                value = request.form.get(f"group-{g}-{field_name}-{i}")
                if value is not None:
                    form.set_spec(g, i, field_name, value)

    for index in range(IMAGE_SLOTS):
        upload = request.files.get(f"image{index}")
        if upload and upload.filename:
            try:
                form.attach_image(index, upload)
            except FormValidationError as e:
                flash(str(e), "error")


def run_form_action(form, action):
    name, _, arg = action.partition(":")
    args = [int(a) for a in arg.split(":")] if arg else []

    if name == "submit":
        form.submit(api_client(), FlashNotifier())
    elif name == "reset":
        form.reset()
    elif name == "add_group":
        form.add_spec_group()
    elif name == "add_field":
        form.add_spec_field(*args)
    elif name == "remove_field":
        form.remove_spec_field(*args)
    elif name == "clear_image":
        form.clear_image(*args)
    else:
        abort(400)


@app.route("/seller", methods=["GET", "POST"])
@seller_required
def add_product():
    form = load_form()

    if request.method == "POST":
        apply_form_edits(form)
        try:
            run_form_action(form, request.form.get("action", "submit"))
        except (ValueError, IndexError, TypeError):
            save_form(form)
            abort(400)
        save_form(form)
        return redirect(url_for("add_product"))

    return render_template("seller_add.html", form=form, image_slots=IMAGE_SLOTS)


@app.route("/seller/previews/<name>")
@seller_required
def image_preview(name):
    form = load_form()
    if name not in form.previews_in_use():
        abort(404)
    return send_from_directory(form.previews.directory, name)


@app.route("/seller/bulk-upload", methods=["POST"])
@seller_required
def bulk_upload():
    # independent of the add-product draft
    upload_catalog_file(api_client(), FlashNotifier(), request.files.get("file"))
    return redirect(url_for("add_product"))


@app.route("/seller/categories")
@seller_required
def list_categories():
    categories = Category.query.order_by(Category.name).all()
    return jsonify({"success": True, "categories": [c.to_dict() for c in categories]})


# ----------------------------
# MANAGE STOCK
# ----------------------------
def stock_console():
    return StockConsole(
        api_client(), FlashNotifier(), stock_inputs=seller_draft().stock_inputs
    )


@app.route("/seller/manage-stock")
@seller_required
def manage_stock():
    console = stock_console()
    console.load(current_user)
    return render_template(
        "manage_stock.html", console=console, products=console.visible_products()
    )


@app.route("/seller/manage-stock/<product_id>/stock", methods=["POST"])
@seller_required
def manage_stock_update(product_id):
    console = stock_console()
    console.set_stock_input(product_id, request.form.get("stock", ""))
    save_console_state(console)

    # a redirect reloads the list on GET anyway
    ok = console.update_stock(
        product_id, console.stock_input(product_id), refresh=wants_json()
    )
    return console_reply(ok, "manage_stock", products=console.visible_products())


@app.route("/seller/manage-stock/<product_id>/delete", methods=["POST"])
@seller_required
def manage_stock_delete(product_id):
    console = stock_console()
    ok = console.delete_product(product_id, refresh=wants_json())
    return console_reply(ok, "manage_stock", products=console.visible_products())


@app.route("/seller/manage-stock/<product_id>/toggle", methods=["POST"])
@seller_required
def manage_stock_toggle(product_id):
    console = stock_console()
    ok = console.toggle_stock_visibility(product_id)
    product = console.last_toggled
    extra = {}
    if product:
        label, colour = stock_status(product)
        extra = {
            "status": {"label": label, "colour": colour},
            "button": visibility_label(product),
        }
    return console_reply(ok, "manage_stock", product=product, **extra)


# ----------------------------
# OUT OF STOCK
# ----------------------------
def out_of_stock_console():
    draft = seller_draft()
    return OutOfStockConsole(
        api_client(),
        FlashNotifier(),
        stock_inputs=draft.stock_inputs,
        confirm_delete_id=draft.confirm_delete_id,
    )


@app.route("/seller/out-of-stock")
@seller_required
def out_of_stock():
    console = out_of_stock_console()
    console.load(current_user)
    return render_template(
        "out_of_stock.html", console=console, products=console.visible_products()
    )


@app.route("/seller/out-of-stock/<product_id>/stock", methods=["POST"])
@seller_required
def out_of_stock_update(product_id):
    console = out_of_stock_console()
    console.set_stock_input(product_id, request.form.get("stock", ""))
    ok = console.update_stock(
        product_id, console.stock_input(product_id), refresh=wants_json()
    )
    save_console_state(console)
    return console_reply(ok, "out_of_stock", products=console.visible_products())


@app.route("/seller/out-of-stock/<product_id>/delete", methods=["POST"])
@seller_required
def out_of_stock_arm_delete(product_id):
    console = out_of_stock_console()
    console.request_delete(product_id)
    save_console_state(console)
    return console_reply(True, "out_of_stock", confirm_delete_id=console.confirm_delete_id)


@app.route("/seller/out-of-stock/cancel-delete", methods=["POST"])
@seller_required
def out_of_stock_cancel_delete():
    console = out_of_stock_console()
    console.cancel_delete()
    save_console_state(console)
    return console_reply(True, "out_of_stock", confirm_delete_id=None)


@app.route("/seller/out-of-stock/<product_id>/confirm-delete", methods=["POST"])
@seller_required
def out_of_stock_confirm_delete(product_id):
    console = out_of_stock_console()
    ok = console.confirm_delete(product_id, refresh=wants_json())
    save_console_state(console)
    return console_reply(
        ok,
        "out_of_stock",
        products=console.visible_products(),
        confirm_delete_id=console.confirm_delete_id,
    )


# ----------------------------
# INIT
# ----------------------------
def create_tables_and_seller():
    with app.app_context():
        db.create_all()

        email = app.config["SELLER_EMAIL"]
        if not email or not app.config["SELLER_PASSWORD"]:
            return

        seller = User.query.filter_by(email=email).first()
        if not seller:
            seller = User(
                email=email,
                name="Store Seller",
                password_hash=generate_password_hash(app.config["SELLER_PASSWORD"]),
                is_seller=True,
                api_token=app.config["SELLER_API_TOKEN"] or None,
            )
            db.session.add(seller)
            db.session.commit()
            app.logger.info("Seller user created with email %s", email)


create_tables_and_seller()


if __name__ == "__main__":
    app.run(debug=os.getenv("FLASK_DEBUG", "False").lower() == "true")
