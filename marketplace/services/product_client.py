# marketplace/services/product_client.py
import requests

from marketplace.domain.schemas import CatalogProduct, StockChange
from marketplace.utils.retry import http_retry
from marketplace.utils.settings import PRODUCT_SERVICE_URL
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """
    Catalog store over HTTP (product-service).

    Only the read is retried: a stock write that timed out may already have
    been applied on the other side.
    """

    def __init__(self, base_url: str | None = None, timeout: int = 2, session=None):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    @http_retry()
    def fetch_product(self, product_id: int) -> dict | None:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = self.http.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def get_product(self, product_id: int) -> CatalogProduct | None:
        data = self.fetch_product(product_id)
        if data is None:
            return None
        return CatalogProduct.model_validate(data)

    def conditional_decrement_stock(self, product_id: int, quantity: int) -> StockChange:
        url = f"{self.base_url}/products/{product_id}/stock/decrement"
        logger.info(f"ProductClient POST {url} qty={quantity}")

        resp = self.http.post(url, json={"quantity": quantity}, timeout=self.timeout)
        if resp.status_code == 404:
            return StockChange(applied=False, current_stock=0)
        resp.raise_for_status()
        return StockChange.model_validate(resp.json())

    def increment_stock(self, product_id: int, quantity: int) -> bool:
        url = f"{self.base_url}/products/{product_id}/stock/increment"
        logger.info(f"ProductClient POST {url} qty={quantity}")

        resp = self.http.post(url, json={"quantity": quantity}, timeout=self.timeout)
        if resp.status_code == 404:
            logger.warning(f"Increment stock skipped, product {product_id} not found")
            return False
        resp.raise_for_status()
        return True
