"""Unit tests for the worker health check."""
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from dropship_sync import health_check
from dropship_sync.models.sync_messages import SyncState


class TestHealthCheck:
    """Tests for health_check.main."""

    @pytest.mark.asyncio
    async def test_passes_and_reports_status(self, capsys):
        redis = AsyncMock()
        redis.get.return_value = b'{"state": "done", "updated": 4, "started_at": "2024-06-01T05:00:00+00:00"}'

        with patch.object(health_check.Redis, "from_url", return_value=redis):
            assert await health_check.main() == 0

        output = capsys.readouterr().out
        assert "sync state=done" in output
        assert "updated=4" in output
        redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fails_when_redis_down(self, capsys):
        redis = AsyncMock()
        redis.ping.side_effect = RedisConnectionError("refused")

        with patch.object(health_check.Redis, "from_url", return_value=redis):
            assert await health_check.main() == 1

        assert "Redis connection unavailable" in capsys.readouterr().err
        redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idle_without_status(self):
        redis = AsyncMock()
        redis.get.return_value = None
        status = await health_check.current_sync_status(redis)
        assert status.state == SyncState.IDLE
