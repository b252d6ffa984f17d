"""
PnL arithmetic for paper and live trades.

Cumulative figures are windowed by the last daily reset: only trades closed
strictly after `since_ms` count, while full history stays available for
display.
"""

from typing import Iterable, Optional

from breakout_engine.trading_engine.models import ClosedPaperTrade, Direction, LiveTradeRow, PaperTrade


def unrealized_pnl(
    direction: Direction,
    entry_price: float,
    price: float,
    quantity: float,
    lot: int = 1,
) -> float:
    """LONG profits when price rises, SHORT when it falls"""
    if direction == Direction.LONG:
        return (price - entry_price) * quantity * lot
    return (entry_price - price) * quantity * lot


def cumulative_paper_pnl(
    open_trade: Optional[PaperTrade],
    history: Iterable[ClosedPaperTrade],
    since_ms: int,
) -> float:
    """Open trade's unrealized PnL plus realized PnL of trades closed since the reset"""
    unrealized = open_trade.unrealized_pnl if open_trade else 0.0
    realized = sum(
        t.realized_pnl or 0.0
        for t in history
        if t.closed_at and t.closed_at > since_ms
    )
    return unrealized + realized


def cumulative_live_pnl(rows: Iterable[LiveTradeRow], since_ms: int) -> float:
    """Sum of realized PnL over EXIT rows closed since the reset"""
    return sum(
        row.realized_pnl
        for row in rows
        if row.action == "EXIT"
        and row.realized_pnl is not None
        and row.closed_at
        and row.closed_at > since_ms
    )
