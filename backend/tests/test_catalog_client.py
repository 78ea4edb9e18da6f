import io
import json
from urllib.error import HTTPError, URLError

import pytest

from inquiry_service.core.errors import CatalogLookupError
from inquiry_service.services import catalog as catalog_module
from inquiry_service.services.catalog import HttpCatalogClient, ProductInfo


class _Resp(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _serve(monkeypatch, payload=None, *, error=None):
    seen = {}

    def fake_urlopen(req, timeout=None):
        seen["url"] = req.full_url
        seen["timeout"] = timeout
        if error is not None:
            raise error
        return _Resp(json.dumps(payload).encode("utf-8"))

    monkeypatch.setattr(catalog_module, "urlopen", fake_urlopen)
    return seen


def test_lookup_parses_camel_case_product(monkeypatch):
    seen = _serve(monkeypatch, {"id": 5, "supplierId": 20, "minOrderQuantity": 50})
    client = HttpCatalogClient("https://catalog.example/api/", timeout_seconds=2.5)

    assert client(5) == ProductInfo(product_id=5, supplier_id=20, min_order_quantity=50)
    assert seen == {"url": "https://catalog.example/api/products/5", "timeout": 2.5}


def test_lookup_accepts_snake_case_and_defaults_minimum(monkeypatch):
    _serve(monkeypatch, {"supplier_id": 20})
    assert HttpCatalogClient("https://catalog.example")(5).min_order_quantity == 1


def test_unconfigured_catalog_fails_lookup():
    with pytest.raises(CatalogLookupError) as exc:
        HttpCatalogClient(None)(5)
    assert exc.value.status_code == 502


@pytest.mark.parametrize(
    "error",
    [
        HTTPError("https://catalog.example/products/5", 404, "Not Found", None, None),
        URLError("connection refused"),
        TimeoutError("timed out"),
    ],
)
def test_transport_errors_become_catalog_errors(monkeypatch, error):
    _serve(monkeypatch, error=error)
    with pytest.raises(CatalogLookupError):
        HttpCatalogClient("https://catalog.example")(5)


def test_product_without_supplier_is_malformed(monkeypatch):
    _serve(monkeypatch, {"minOrderQuantity": 10})
    with pytest.raises(CatalogLookupError):
        HttpCatalogClient("https://catalog.example")(5)
