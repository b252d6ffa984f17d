"""
Base Tick Feed Interface

A tick feed streams (symbol, price, timestamp) events from one market-data
source into a callback. Feeds run independently of each other; ordering is
only guaranteed within a single feed.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class Tick:
    """Last trade price from one exchange"""
    exchange: str
    symbol: str
    price: float
    timestamp_ms: int


TickCallback = Callable[[Tick], None]


def parse_price(value) -> Optional[float]:
    """Finite float or None"""
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


class TickFeed(ABC):
    """
    Abstract base class for tick feed implementations.

    Subclasses implement run(), a long-lived coroutine that handles its own
    reconnects and calls emit() for every tick.
    """

    def __init__(self, name: str, on_tick: TickCallback):
        self.name = name
        self.on_tick = on_tick
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.last_tick: Optional[Tick] = None

    @abstractmethod
    async def run(self):
        pass

    def emit(self, tick: Tick):
        self.last_tick = tick
        try:
            self.on_tick(tick)
        except Exception as e:
            logger.error(f"{self.name} tick callback failed: {e}")

    async def start(self):
        """Start the feed in the background."""
        if self.running:
            return
        self.running = True
        self.task = asyncio.create_task(self.run())
        logger.info(f"{self.name} feed started")

    async def stop(self):
        """Stop the feed."""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info(f"{self.name} feed stopped")
