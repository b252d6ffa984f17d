"""
Binance Trade Stream

Streams `<symbol>@trade` events over the public Binance WebSocket and turns
each trade into a Tick. Reconnects with exponential backoff (1s doubling to
30s), reset after every successful connect.
"""

import asyncio
import json
import logging
import time
from typing import Optional

import websockets

from breakout_engine.price_feeds.base import Tick, TickCallback, TickFeed, parse_price

logger = logging.getLogger(__name__)

INITIAL_RECONNECT_DELAY = 1.0
MAX_RECONNECT_DELAY = 30.0


def parse_trade_message(raw, default_symbol: str) -> Optional[Tick]:
    """Tick from a Binance trade payload ({"s": symbol, "p": price, "E": event ms})"""
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        logger.error(f"Binance WS parse error: {str(raw)[:100]}")
        return None
    if not isinstance(msg, dict):
        return None

    price = parse_price(msg.get("p"))
    if price is None:
        return None

    return Tick(
        exchange="binance",
        symbol=msg.get("s") or default_symbol.upper(),
        price=price,
        timestamp_ms=int(msg.get("E") or time.time() * 1000),
    )


class BinanceTradeFeed(TickFeed):
    def __init__(
        self,
        on_tick: TickCallback,
        base_url: str = "wss://stream.binance.com:9443/ws",
        symbol: str = "btcusdt",
    ):
        super().__init__("binance", on_tick)
        self.symbol = symbol.lower()
        self.url = f"{base_url.rstrip('/')}/{self.symbol}@trade"

    async def run(self):
        delay = INITIAL_RECONNECT_DELAY
        while self.running:
            try:
                async with websockets.connect(self.url) as ws:
                    delay = INITIAL_RECONNECT_DELAY
                    logger.info(f"Binance WS connected: {self.url}")
                    async for raw in ws:
                        tick = parse_trade_message(raw, self.symbol)
                        if tick:
                            self.emit(tick)
                logger.warning("Binance WS closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Binance WS error: {e}")

            if not self.running:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, MAX_RECONNECT_DELAY)
