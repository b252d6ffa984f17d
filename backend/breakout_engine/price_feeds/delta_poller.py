"""
Delta Exchange Ticker Poller

Polls the public /v2/tickers/<symbol> REST endpoint once per interval.

- Uses httpx.AsyncClient for HTTP
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from breakout_engine.price_feeds.base import Tick, TickCallback, TickFeed, parse_price

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("last_price", "price", "mark_price", "close", "ltp")


def parse_ticker_response(response: Dict[str, Any], default_symbol: str) -> Optional[Tick]:
    node = response.get("result") or response.get("data") or response
    price = None
    for field_name in PRICE_FIELDS:
        if node.get(field_name) is not None:
            price = parse_price(node[field_name])
            break
    if price is None:
        return None

    timestamp = response.get("timestamp")
    return Tick(
        exchange="delta",
        symbol=node.get("symbol") or default_symbol,
        price=price,
        # Delta timestamps are microseconds
        timestamp_ms=int(timestamp) // 1000 if timestamp else int(time.time() * 1000),
    )


class DeltaTickerPoller(TickFeed):
    def __init__(
        self,
        on_tick: TickCallback,
        api_base: str = "https://api.delta.exchange",
        symbol: str = "BTCUSD",
        interval_seconds: float = 1.0,
        client: httpx.AsyncClient = None,
    ):
        super().__init__("delta", on_tick)
        self.api_base = api_base.rstrip("/")
        self.symbol = symbol
        self.interval_seconds = interval_seconds
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def poll_once(self) -> Optional[Tick]:
        try:
            resp = await self._client.get(
                f"{self.api_base}/v2/tickers/{self.symbol}",
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            tick = parse_ticker_response(resp.json(), self.symbol)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Delta REST poll error: {e}")
            return None

        if tick:
            self.emit(tick)
        return tick

    async def run(self):
        while self.running:
            await self.poll_once()
            await asyncio.sleep(self.interval_seconds)

    async def stop(self):
        await super().stop()
        await self._client.aclose()
