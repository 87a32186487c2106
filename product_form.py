"""
Product intake form state.

The add-product page is a plain HTML form, so every button (add a spec
group, add/remove a field, submit, reset) is a POST back to the same view.
The draft in between is stored server-side as ``ProductIntakeForm.to_state()``
and the image files are staged on disk by a PreviewStore, which is also what
the page shows as previews.
"""

import json
import logging
import math
import uuid
from contextlib import ExitStack
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from werkzeug.utils import secure_filename

from catalog import DEFAULT_CATEGORY
from seller_api import ApiError

__all__ = [
    "IMAGE_SLOTS",
    "FormValidationError",
    "PreviewStore",
    "ImageSlot",
    "SpecField",
    "SpecGroup",
    "format_specs",
    "ProductIntakeForm",
    "upload_catalog_file",
]

logger = logging.getLogger(__name__)

IMAGE_SLOTS = 4
TEXT_FIELDS = ("name", "description", "category", "price", "offer_price", "stock")


class FormValidationError(ValueError):
    """Client-side check failed; nothing was sent to the backend."""


# ----------------------------
# IMAGE PREVIEWS
# ----------------------------
class PreviewStore:
    """Directory of staged uploads, one file per preview."""

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def create(self, upload) -> str:
        suffix = Path(secure_filename(upload.filename or "")).suffix.lower()
        name = f"{uuid.uuid4().hex}{suffix}"
        upload.save(str(self.path(name)))
        return name

    def path(self, name: str) -> Path:
        if not name or Path(name).name != name:
            raise ValueError(f"Bad preview name: {name!r}")
        return self.directory / name

    def exists(self, name: str) -> bool:
        try:
            return self.path(name).is_file()
        except ValueError:
            return False

    def release(self, name: str) -> None:
        try:
            self.path(name).unlink()
        except FileNotFoundError:
            pass

    def sweep(self, keep=()) -> int:
        """Delete every staged file not named in ``keep``. Returns the count."""
        keep = set(keep)
        removed = 0
        for path in self.directory.iterdir():
            if path.is_file() and path.name not in keep:
                path.unlink()
                removed += 1
        return removed


@dataclass
class ImageSlot:
    preview: str
    filename: str
    content_type: str


# ----------------------------
# SPECIFICATION GROUPS
# ----------------------------
@dataclass
class SpecField:
    key: str = ""
    value: str = ""


@dataclass
class SpecGroup:
    title: str = ""
    specs: List[SpecField] = field(default_factory=lambda: [SpecField()])


def initial_spec_groups() -> List[SpecGroup]:
    return [SpecGroup(title="Main Feature")]


def format_specs(groups: List[SpecGroup]) -> Dict[str, Dict[str, str]]:
    """
    {group title: {key: value}} for submission.

    Groups with a blank title are skipped. A pair is kept only when both key
    and value are non-blank after trimming. A titled group with no surviving
    pairs still appears, mapped to {}.
    """
    formatted: Dict[str, Dict[str, str]] = {}
    for group in groups:
        title = group.title.strip()
        if not title:
            continue
        formatted[title] = {}
        for spec in group.specs:
            key = spec.key.strip()
            value = spec.value.strip()
            if key and value:
                formatted[title][key] = value
    return formatted


def _to_number(raw) -> Optional[float]:
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


# ----------------------------
# THE FORM
# ----------------------------
class ProductIntakeForm:
    def __init__(self, previews: PreviewStore):
        self.previews = previews
        self.images: List[Optional[ImageSlot]] = [None] * IMAGE_SLOTS
        self._set_defaults()

    def _set_defaults(self):
        self.images = [None] * IMAGE_SLOTS
        self.name = ""
        self.description = ""
        self.category = DEFAULT_CATEGORY
        self.price = ""
        self.offer_price = ""
        self.stock = ""
        self.spec_groups = initial_spec_groups()

    # ---------- images ----------

    def attach_image(self, index: int, upload) -> None:
        """Put an upload into a slot, releasing whatever preview it replaces."""
        if upload is None or not upload.filename:
            self.clear_image(index)
            return
        if not (upload.mimetype or "").startswith("image/"):
            raise FormValidationError("Only image files can be used as product images.")

        old = self.images[index]
        self.images[index] = ImageSlot(
            preview=self.previews.create(upload),
            filename=secure_filename(upload.filename) or f"image{index}",
            content_type=upload.mimetype,
        )
        if old is not None:
            self.previews.release(old.preview)

    def clear_image(self, index: int) -> None:
        old = self.images[index]
        self.images[index] = None
        if old is not None:
            self.previews.release(old.preview)

    def has_images(self) -> bool:
        return any(slot is not None for slot in self.images)

    def previews_in_use(self) -> List[str]:
        return [slot.preview for slot in self.images if slot is not None]

    # ---------- text fields ----------

    def update_fields(self, values) -> None:
        for name in TEXT_FIELDS:
            if name in values:
                setattr(self, name, values[name] or "")

    # ---------- specification groups ----------

    def add_spec_group(self) -> None:
        self.spec_groups.append(SpecGroup())

    def set_group_title(self, group_index: int, title: str) -> None:
        self.spec_groups[group_index].title = title

    def set_spec(self, group_index: int, spec_index: int, field_name: str, value: str) -> None:
        if field_name not in ("key", "value"):
            raise ValueError(f"Unknown spec field: {field_name}")
        setattr(self.spec_groups[group_index].specs[spec_index], field_name, value)

    def add_spec_field(self, group_index: int) -> None:
        self.spec_groups[group_index].specs.append(SpecField())

    def remove_spec_field(self, group_index: int, spec_index: int) -> bool:
        specs = self.spec_groups[group_index].specs
        if len(specs) <= 1:
            return False
        del specs[spec_index]
        return True

    def formatted_specs(self) -> Dict[str, Dict[str, str]]:
        return format_specs(self.spec_groups)

    # ---------- submission ----------

    def validate(self) -> None:
        if not self.has_images():
            raise FormValidationError("Please upload at least one image.")

        price = _to_number(self.price)
        if price is None or price <= 0:
            raise FormValidationError("Please enter a valid product price.")

        if str(self.offer_price).strip():
            offer = _to_number(self.offer_price)
            if offer is None or offer >= price:
                raise FormValidationError("Offer price must be less than original price.")

        stock = _to_number(self.stock)
        if stock is None or stock < 0:
            raise FormValidationError("Stock must be a non-negative number.")

    def build_fields(self) -> Dict[str, str]:
        return {
            "name": self.name.strip(),
            "description": self.description.strip(),
            "category": self.category,
            "price": str(self.price).strip(),
            "offerPrice": str(self.offer_price).strip() or "",
            "stock": str(self.stock).strip(),
            "specs": json.dumps(self.formatted_specs()),
        }

    def submit(self, client, notifier) -> bool:
        try:
            self.validate()
        except FormValidationError as e:
            notifier.error(str(e))
            return False

        try:
            with ExitStack() as stack:
                images = [
                    (
                        slot.filename,
                        stack.enter_context(open(self.previews.path(slot.preview), "rb")),
                        slot.content_type,
                    )
                    for slot in self.images
                    if slot is not None
                ]
                data = client.add_product(self.build_fields(), images)
        except ApiError as e:
            notifier.error(e.message or "Submission failed.")
            return False
        except OSError as e:
            logger.error(f"Could not read staged image: {e}")
            notifier.error(str(e) or "Submission failed.")
            return False

        if not data.get("success"):
            notifier.error(data.get("message") or "Something went wrong!")
            return False

        logger.info(f"Product {self.name.strip()!r} added")
        notifier.success(data.get("message") or "Product added successfully!")
        self.reset()
        return True

    def reset(self) -> None:
        """Back to a blank form, previews and spec groups included."""
        self.close()
        self._set_defaults()

    def close(self) -> None:
        """Release every staged preview file."""
        for slot in self.images:
            if slot is not None:
                self.previews.release(slot.preview)
        self.images = [None] * IMAGE_SLOTS

    # ---------- draft round trip ----------

    def to_state(self) -> dict:
        return {
            "images": [asdict(slot) if slot else None for slot in self.images],
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "offer_price": self.offer_price,
            "stock": self.stock,
            "spec_groups": [asdict(group) for group in self.spec_groups],
        }

    @classmethod
    def from_state(cls, state, previews: PreviewStore) -> "ProductIntakeForm":
        form = cls(previews)
        if not state:
            return form

        form.update_fields(state)
        images = list(state.get("images") or [])[:IMAGE_SLOTS]
        for index, slot in enumerate(images):
            # a preview file that has gone missing just empties its slot
            if slot and previews.exists(slot.get("preview", "")):
                form.images[index] = ImageSlot(**slot)

        groups = state.get("spec_groups")
        if groups:
            form.spec_groups = [
                SpecGroup(
                    title=group.get("title", ""),
                    specs=[SpecField(**spec) for spec in group.get("specs") or []]
                    or [SpecField()],
                )
                for group in groups
            ]
        return form


# ----------------------------
# BULK UPLOAD
# ----------------------------
def upload_catalog_file(client, notifier, upload) -> bool:
    """Send one .json catalog file to the bulk-import endpoint."""
    if upload is None or not upload.filename:
        return False
    if upload.mimetype != "application/json":
        notifier.error("Please upload a valid .json file.")
        return False

    try:
        data = client.bulk_upload(
            (secure_filename(upload.filename) or "catalog.json", upload.stream, upload.mimetype)
        )
    except ApiError as e:
        notifier.error(e.message or "Upload error.")
        return False

    if data.get("success"):
        logger.info(f"Bulk upload {upload.filename!r} accepted")
        notifier.success(data.get("message") or "Bulk upload successful!")
        return True

    notifier.error(data.get("message") or "Bulk upload failed!")
    return False
