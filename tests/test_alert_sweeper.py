import pytest
from unittest.mock import patch, AsyncMock

from app.core.exceptions import StorageError
from app.workers.alert_sweeper import run_sweep


@pytest.mark.asyncio
async def test_run_sweep_returns_result():
    result = {"scanned": 3, "active_alerts": 1, "suggestions_created": 1}
    with patch('app.workers.alert_sweeper.check_low_stock', new_callable=AsyncMock) as mock_check:
        mock_check.return_value = result

        assert await run_sweep() == result
        mock_check.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_sweep_survives_storage_error():
    with patch('app.workers.alert_sweeper.check_low_stock', new_callable=AsyncMock) as mock_check:
        mock_check.side_effect = StorageError("Storage failure while loading stock records")

        assert await run_sweep() is None
