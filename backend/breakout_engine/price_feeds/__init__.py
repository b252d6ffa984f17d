"""
Price Feeds Module

Tick sources for the engine's last-traded-price table.

Components:
- TickFeed: Abstract base class for tick sources
- BinanceTradeFeed: Binance trade stream over WebSocket
- DeltaTickerPoller: Delta Exchange ticker over REST polling
"""

from breakout_engine.price_feeds.base import Tick, TickFeed
from breakout_engine.price_feeds.binance_feed import BinanceTradeFeed
from breakout_engine.price_feeds.delta_poller import DeltaTickerPoller

__all__ = [
    "Tick",
    "TickFeed",
    "BinanceTradeFeed",
    "DeltaTickerPoller",
]
