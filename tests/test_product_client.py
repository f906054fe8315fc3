import json

import httpx
import pytest

from app.clients.product_client import ProductServiceClient


def _client(handler):
    return ProductServiceClient(base_url="http://catalog.test/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_products_by_ids_success():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "data": [{"id": 1, "name": "Widget"}]})

    async with _client(handler) as client:
        products = await client.get_products_by_ids([1, 2])

    assert products == [{"id": 1, "name": "Widget"}]
    assert seen["url"] == "http://catalog.test/api/products/by-ids"
    assert seen["body"] == {"ids": [1, 2]}


@pytest.mark.asyncio
async def test_get_products_by_ids_server_error():
    async with _client(lambda request: httpx.Response(503)) as client:
        assert await client.get_products_by_ids([1]) == []


@pytest.mark.asyncio
async def test_get_products_by_ids_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        assert await client.get_products_by_ids([1]) == []


@pytest.mark.asyncio
async def test_get_products_by_ids_invalid_json():
    async with _client(lambda request: httpx.Response(200, content=b"<html>")) as client:
        assert await client.get_products_by_ids([1]) == []


@pytest.mark.asyncio
async def test_get_products_by_ids_empty_skips_request():
    def handler(request):
        raise AssertionError("catalog should not be called")

    async with _client(handler) as client:
        assert await client.get_products_by_ids([]) == []
