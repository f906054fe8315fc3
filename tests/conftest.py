from unittest.mock import patch

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from tortoise import Tortoise
from tortoise.queryset import QuerySet

from app.core.db import MODELS_MODULES
from app.main import app
from app.models.stock import StockRecord


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test; schemas generated from the real models."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def client():
    # No context manager: the lifespan (real database) is not started
    return TestClient(app)


@pytest.fixture
def row_events():
    """
    Records, in order, every locking read (SELECT ... FOR UPDATE) and every
    stock record write. SQLite ignores FOR UPDATE, so tests assert on the
    queries issued instead of on blocking behaviour.
    """
    events = []
    original_select_for_update = QuerySet.select_for_update
    original_save = StockRecord.save

    def select_for_update(self, *args, **kwargs):
        events.append(("lock", self.model.__name__))
        return original_select_for_update(self, *args, **kwargs)

    async def save(self, *args, **kwargs):
        events.append(("write", type(self).__name__))
        return await original_save(self, *args, **kwargs)

    with patch.object(QuerySet, "select_for_update", select_for_update), patch.object(StockRecord, "save", save):
        yield events
