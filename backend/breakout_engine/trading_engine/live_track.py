"""
Live Sub-track

Promotes a profitable paper trade to an externally executed trade and
protectively closes it on drawdown:
- Promotion: NO_POSITION, pending paper trade, not locked out and
  total PnL > open threshold -> open live trade, dispatch ENTRY
- Protective close: POSITION and total PnL <= close threshold -> close live
  trade, dispatch EXIT, lock out until the next minute boundary

Order dispatch is fire-and-forget; a failed execution never rolls back the
sub-track state.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from breakout_engine.time_utils import format_local_time, minute_boundary_passed
from breakout_engine.trading_engine.models import (
    Direction,
    ExecutionKind,
    ExecutionRequest,
    LiveOpenTrade,
    LiveState,
    LiveTradeRow,
    PendingPaperTrade,
)
from breakout_engine.trading_engine.pnl import unrealized_pnl

logger = logging.getLogger(__name__)

OrderDispatcher = Callable[[ExecutionRequest], None]


def _no_dispatch(request: ExecutionRequest) -> None:
    logger.info(f"No order dispatcher configured, dropping {request.kind.value} for {request.symbol}")


class LiveSubTrack:
    """Promotion/demotion state and the live trade ledger for one direction"""

    def __init__(
        self,
        direction: Direction,
        open_threshold: float = 0.0,
        close_threshold: float = 0.0,
        ring_size: int = 50,
        tz_name: str = "Asia/Kolkata",
        dispatch_order: Optional[OrderDispatcher] = None,
    ):
        self.direction = direction
        self.open_threshold = open_threshold
        self.close_threshold = close_threshold
        self.tz_name = tz_name
        self.dispatch_order = dispatch_order or _no_dispatch

        self.state = LiveState.NO_POSITION
        self.cumulative_pnl = 0.0
        self.unrealized_pnl = 0.0
        self.blocked_at_ms: Optional[int] = None
        self.open_trade: Optional[LiveOpenTrade] = None
        self.pending_paper_trade: Optional[PendingPaperTrade] = None
        self.trades: Deque[LiveTradeRow] = deque(maxlen=ring_size)

    @property
    def label(self) -> str:
        return self.direction.value

    def evaluate(self, total_pnl: float, price: float, symbol: str, now_ms: int) -> None:
        """Run one tick of promotion/demotion against total PnL"""
        if self.blocked_at_ms is not None and minute_boundary_passed(self.blocked_at_ms, now_ms):
            self.blocked_at_ms = None
            logger.info(f"{self.label} live lockout expired")

        if self.state == LiveState.POSITION and self.open_trade and total_pnl <= self.close_threshold:
            logger.info(
                f"🛡️ {self.label} protective close: PnL {total_pnl:.2f} <= {self.close_threshold}"
            )
            self.close_trade_at(price, "Protective", now_ms)
            self.blocked_at_ms = now_ms

        if (
            self.state == LiveState.NO_POSITION
            and self.pending_paper_trade
            and self.blocked_at_ms is None
            and total_pnl > self.open_threshold
        ):
            logger.info(f"🚀 {self.label} live activation: PnL {total_pnl:.2f} > {self.open_threshold}")
            self.open_trade_at(price, symbol, now_ms)

        if self.open_trade:
            self.unrealized_pnl = unrealized_pnl(
                self.direction,
                self.open_trade.entry_price,
                price,
                self.open_trade.quantity,
                self.open_trade.lot,
            )

    def open_trade_at(self, price: float, symbol: str, now_ms: int) -> None:
        pending = self.pending_paper_trade
        if not pending:
            return

        trade_id = f"live-{self.label}-{symbol}-{now_ms}"
        time_ist = format_local_time(now_ms, self.tz_name)
        self.open_trade = LiveOpenTrade(
            id=trade_id,
            symbol=symbol,
            entry_price=price,
            quantity=pending.quantity,
            lot=pending.lot,
            time_ist=time_ist,
        )
        self.state = LiveState.POSITION
        self.trades.appendleft(
            LiveTradeRow(
                id=trade_id,
                time_ist=time_ist,
                symbol=symbol,
                action=ExecutionKind.ENTRY.value,
                entry_price=price,
                exit_price=None,
                quantity=pending.quantity,
                realized_pnl=None,
                cumulative_pnl=self.cumulative_pnl,
            )
        )
        logger.info(f"✅ {self.label} LIVE TRADE OPENED: {symbol} @ {price}")
        self.dispatch_order(ExecutionRequest(ExecutionKind.ENTRY, symbol, price, self.direction))

    def close_trade_at(self, price: float, reason: str, now_ms: int) -> None:
        trade = self.open_trade
        if not trade:
            return

        realized = unrealized_pnl(self.direction, trade.entry_price, price, trade.quantity, trade.lot)
        self.cumulative_pnl += realized
        self.trades.appendleft(
            LiveTradeRow(
                id=f"{trade.id}-exit",
                time_ist=format_local_time(now_ms, self.tz_name),
                symbol=trade.symbol,
                action=ExecutionKind.EXIT.value,
                entry_price=trade.entry_price,
                exit_price=price,
                quantity=trade.quantity,
                realized_pnl=realized,
                cumulative_pnl=self.cumulative_pnl,
                closed_at=now_ms,
                reason=reason,
            )
        )
        self.open_trade = None
        self.state = LiveState.NO_POSITION
        self.unrealized_pnl = 0.0

        logger.info(
            f"✅ {self.label} LIVE TRADE CLOSED ({reason}): {trade.symbol} @ {price}, PnL: ${realized:.2f}"
        )
        self.dispatch_order(ExecutionRequest(ExecutionKind.EXIT, trade.symbol, price, self.direction))

    def reset_for_new_day(self) -> None:
        """Zero PnL and drop any position/lockout; the ledger is kept"""
        self.state = LiveState.NO_POSITION
        self.cumulative_pnl = 0.0
        self.unrealized_pnl = 0.0
        self.blocked_at_ms = None
        self.open_trade = None
        self.pending_paper_trade = None

    def serialize(self) -> Dict[str, Any]:
        total = self.cumulative_pnl + self.unrealized_pnl
        return {
            "state": self.state.value,
            "cumulative_pnl": self.cumulative_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "is_live_active": total > self.open_threshold,
            "blocked_at_ms": self.blocked_at_ms,
            "open_trade": self.open_trade.to_dict() if self.open_trade else None,
            "trades": [row.to_dict() for row in self.trades],
        }
