"""
Shared test fixtures for breakout engine tests.

Provides reusable fixtures for:
- Engine settings isolated from any local .env
- Engine factory with a fixed clock and mock outbound callbacks
- Position track factory
- Mock order router and snapshot store
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytz

from breakout_engine.config import Settings
from breakout_engine.trading_engine import Direction, LiveSubTrack, PositionTrack, TradingEngine

# Minute-aligned epoch ms used as "now" throughout the suite
T0 = 1_760_000_400_000


def ist_ms(year, month, day, hour, minute, second=0):
    """Epoch ms for a wall-clock time in Asia/Kolkata"""
    local = pytz.timezone("Asia/Kolkata").localize(datetime(year, month, day, hour, minute, second))
    return int(local.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Settings / engine
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_settings():
    """Default engine settings, ignoring any .env on the machine."""
    return Settings(
        _env_file=None,
        instrument_class="BTC",
        traded_symbol="BTCUSDT",
        position_notional=10.0,
        enable_feeds=False,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def make_engine(engine_settings):
    """Factory for engines with mock dispatch/save callbacks and a clock pinned to T0."""
    def _make_engine(clock=lambda: T0, **overrides):
        config = engine_settings.model_copy(update=overrides) if overrides else engine_settings
        return TradingEngine(
            config=config,
            dispatch_order=MagicMock(),
            request_save=MagicMock(),
            clock=clock,
        )
    return _make_engine


@pytest.fixture
def make_track():
    """Factory for a standalone position track with its live sub-track."""
    def _make_track(direction=Direction.LONG, notional=10.0, **kwargs):
        dispatch = MagicMock()
        save = MagicMock()
        live = LiveSubTrack(direction, dispatch_order=dispatch)
        track = PositionTrack(direction, live, notional=notional, request_save=save, **kwargs)
        return track, dispatch, save
    return _make_track


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_order_router():
    router = MagicMock()
    router.execute = AsyncMock(return_value={"status": "ok"})
    router.close = AsyncMock()
    return router


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.load = AsyncMock(return_value=None)
    store.save = AsyncMock()
    store.init = AsyncMock()
    store.close = AsyncMock()
    return store
