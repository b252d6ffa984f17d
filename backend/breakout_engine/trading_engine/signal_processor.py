"""
Signal routing rules

A normalized signal is routed to exactly one track:
- side takes precedence over intent
- BUY/LONG side (or ENTRY intent) -> LONG track
- SELL/SHORT side (or EXIT intent) -> SHORT track

Thresholds are asymmetric: LONG breaks out above the signal's stop price
(falling back to LTP), SHORT always breaks down below the current LTP.
"""

from typing import Optional

from breakout_engine.trading_engine.models import Direction

BUY_SIDES = {"BUY", "LONG"}
SELL_SIDES = {"SELL", "SHORT"}


def _token(value: Optional[str]) -> str:
    return str(value).strip().upper() if value else ""


def resolve_direction(side: Optional[str], intent: Optional[str]) -> Optional[Direction]:
    """Which track a signal belongs to, or None when it names neither"""
    side_token = _token(side)
    if side_token in BUY_SIDES:
        return Direction.LONG
    if side_token in SELL_SIDES:
        return Direction.SHORT

    intent_token = _token(intent)
    if intent_token == "ENTRY":
        return Direction.LONG
    if intent_token == "EXIT":
        return Direction.SHORT
    return None


def threshold_for(
    direction: Direction,
    stop_price: Optional[float],
    ltp: Optional[float],
) -> Optional[float]:
    if direction == Direction.LONG:
        return stop_price if stop_price else ltp
    # SHORT ignores the stop price entirely
    return ltp
