from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from inquiry_service.config import settings
from inquiry_service.core.errors import CatalogLookupError

logger = logging.getLogger("inquiries.catalog")


@dataclass(frozen=True)
class ProductInfo:
    product_id: int
    supplier_id: int
    min_order_quantity: int


class ProductLookup(Protocol):
    def __call__(self, product_id: int) -> ProductInfo: ...


def _parse_product(product_id: int, body: dict) -> ProductInfo:
    # The catalog speaks camelCase; accept snake_case too for internal callers.
    supplier_id = body.get("supplierId", body.get("supplier_id"))
    moq = body.get("minOrderQuantity", body.get("min_order_quantity"))
    if supplier_id is None:
        raise CatalogLookupError(
            "Catalog response is missing the product supplier",
            context={"product_id": product_id},
        )
    try:
        moq_int = int(moq) if moq is not None else 1
        return ProductInfo(
            product_id=int(product_id),
            supplier_id=int(supplier_id),
            min_order_quantity=max(1, moq_int),
        )
    except (TypeError, ValueError) as exc:
        raise CatalogLookupError(
            "Catalog response is malformed", context={"product_id": product_id}
        ) from exc


class HttpCatalogClient:
    """Product lookup against the catalog collaborator (GET {base}/products/{id})."""

    def __init__(self, base_url: Optional[str], timeout_seconds: float = 5.0):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds

    def __call__(self, product_id: int) -> ProductInfo:
        if not self.base_url:
            raise CatalogLookupError(
                "Catalog is not configured", context={"product_id": product_id}
            )

        url = f"{self.base_url}/products/{int(product_id)}"
        req = Request(url, headers={"Accept": "application/json", "User-Agent": "inquiry-service"})
        try:
            with urlopen(req, timeout=self.timeout_seconds) as resp:  # noqa: S310
                body = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            logger.warning(
                "catalog_lookup_failed",
                extra={"product_id": product_id, "status": exc.code},
            )
            detail = "Product not found in catalog" if exc.code == 404 else None
            raise CatalogLookupError(detail, context={"product_id": product_id}) from exc
        except (URLError, TimeoutError, ValueError) as exc:
            logger.warning(
                "catalog_lookup_failed",
                extra={"product_id": product_id, "error": str(exc)},
            )
            raise CatalogLookupError(context={"product_id": product_id}) from exc

        if not isinstance(body, dict):
            raise CatalogLookupError(
                "Catalog response is malformed", context={"product_id": product_id}
            )
        return _parse_product(product_id, body)


def default_catalog() -> HttpCatalogClient:
    return HttpCatalogClient(settings.catalog_base_url, settings.catalog_timeout_seconds)
