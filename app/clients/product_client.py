"""
Product Catalog Service Client for the Inventory Ledger
"""

import httpx
import logging
from typing import Optional, Dict, Any, List

from app.core.config import PRODUCT_SERVICE_URL, PRODUCT_SERVICE_TIMEOUT

logger = logging.getLogger(__name__)


class ProductServiceClient:
    """
    Batch name resolver. Used only to decorate alert output, so every failure
    is logged and answered with an empty result instead of an exception.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = PRODUCT_SERVICE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip('/')
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        logger.info(f"ProductServiceClient initialized with base_url: {self.base_url}")

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_products_by_ids(self, ids: List[int]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        try:
            response = await self.client.post(f"{self.base_url}/api/products/by-ids", json={"ids": list(ids)})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to fetch products by ids: {e.response.status_code}")
            return []
        except httpx.HTTPError as e:
            logger.error(f"Error fetching products by ids: {e}")
            return []
        except ValueError as e:
            logger.error(f"Product service returned invalid JSON: {e}")
            return []

        # Catalog answers {"success": true, "data": [...]}
        data = body.get("data") if isinstance(body, dict) else body
        return data if isinstance(data, list) else []


_client: Optional[ProductServiceClient] = None


def get_product_client() -> ProductServiceClient:
    """FastAPI dependency returning the process-wide client."""
    global _client
    if _client is None:
        _client = ProductServiceClient()
    return _client


async def close_product_client():
    global _client
    if _client is not None:
        await _client.close()
        _client = None
