"""
HTTP client for the product backend.

Every endpoint answers with an envelope like ``{"success": bool,
"message": str, ...payload}``. A ``success: false`` envelope is returned to
the caller unchanged; only transport problems (connection errors, timeouts,
non-2xx answers, unreadable bodies) raise :class:`ApiError`.
"""

import logging
from typing import Callable, Iterable, Optional, Tuple

import requests

__all__ = ["ApiError", "SellerApiClient", "create_session"]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

# (filename, file object, content type)
UploadFile = Tuple[str, object, str]


class ApiError(Exception):
    """Transport-level failure talking to the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _server_message(response) -> Optional[str]:
    """Pull ``message`` out of an error response body, if it has one."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


def create_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    return session


class SellerApiClient:
    """Thin wrapper over the seller endpoints.

    Args:
        base_url: Backend origin, e.g. ``http://localhost:3000``.
        token_provider: Zero-argument callable returning the bearer token
            (or None when no token is available).
        timeout: Per-request timeout in seconds.
        session: Optional requests.Session for connection reuse.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]],
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or create_session()

    # ---------- plumbing ----------

    def _auth_headers(self) -> dict:
        token = self.token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._auth_headers(),
                timeout=self.timeout,
                **kwargs,
            )
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            message = _server_message(e.response) or str(e)
            logger.warning(f"{method} {path} failed with {status}: {message}")
            raise ApiError(message, status_code=status) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(str(e)) from e

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned a non-JSON body")
            raise ApiError("Invalid response from server", resp.status_code) from e

        if not isinstance(data, dict):
            raise ApiError("Invalid response from server", resp.status_code)
        return data

    # ---------- endpoints ----------

    def list_seller_products(self) -> dict:
        return self._request("GET", "/api/product/seller-list")

    def update_stock(self, product_id: str, new_stock: int) -> dict:
        return self._request(
            "POST",
            "/api/seller/update-stock",
            json={"productId": product_id, "newStock": new_stock},
        )

    def delete_product(self, product_id: str) -> dict:
        return self._request("DELETE", f"/api/seller/delete/{product_id}")

    def toggle_stock_visibility(self, product_id: str) -> dict:
        return self._request(
            "POST",
            "/api/seller/toggle-stock-visibility",
            json={"productId": product_id},
        )

    def add_product(self, fields: dict, images: Iterable[UploadFile]) -> dict:
        """Multipart create: ``fields`` as form parts, one ``images`` part per file."""
        files = [("images", image) for image in images]
        return self._request("POST", "/api/product/add", data=fields, files=files)

    def bulk_upload(self, upload: UploadFile) -> dict:
        return self._request("POST", "/api/upload", files={"file": upload})
