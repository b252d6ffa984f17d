"""
Position Track - breakout FSM for one direction

LONG (BUY signal):
  - threshold = stop price (or LTP), state -> NOPOSITION_SIGNAL
  - LTP > threshold -> entry, state -> BUYPOSITION
  - in position, LTP < threshold -> stop loss, state -> NOPOSITION_BLOCKED

SHORT (SELL signal):
  - threshold = LTP, state -> NOPOSITION_SIGNAL
  - LTP < threshold -> entry, state -> SELLPOSITION
  - in position, LTP > threshold -> stop loss, state -> NOPOSITION_BLOCKED

BLOCKED:
  - wait for the next minute boundary, then re-check the breakout against
    the current LTP; still not met -> stay blocked with a fresh anchor

Each track owns at most one open paper trade and a nested live sub-track.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from breakout_engine.time_utils import format_local_time, minute_boundary_passed
from breakout_engine.trading_engine.live_track import LiveSubTrack
from breakout_engine.trading_engine.models import (
    ClosedPaperTrade,
    Direction,
    FsmState,
    LiveTradeRow,
    PaperTrade,
    PeakPnlSample,
    PendingPaperTrade,
    SignalRecord,
)
from breakout_engine.trading_engine.pnl import cumulative_live_pnl, cumulative_paper_pnl, unrealized_pnl
from breakout_engine.trading_engine.signal_processor import threshold_for

logger = logging.getLogger(__name__)


class PositionTrack:
    def __init__(
        self,
        direction: Direction,
        live: LiveSubTrack,
        notional: float = 10.0,
        signal_ring_size: int = 50,
        paper_history_limit: Optional[int] = None,
        tz_name: str = "Asia/Kolkata",
        request_save: Optional[Callable[[], None]] = None,
    ):
        self.direction = direction
        self.live = live
        self.notional = notional
        self.paper_history_limit = paper_history_limit
        self.tz_name = tz_name
        self.request_save = request_save or (lambda: None)

        self.fsm_state = FsmState.NOPOSITION
        self.threshold: Optional[float] = None
        self.paper_trade: Optional[PaperTrade] = None
        self.paper_trades: List[ClosedPaperTrade] = []  # Most recent first
        self.peak_pnl_history: List[PeakPnlSample] = []
        self.current_peak_pnl: Optional[float] = None
        self.signals: Deque[SignalRecord] = deque(maxlen=signal_ring_size)
        self.last_signal_at_ms: Optional[int] = None
        self.last_blocked_at_ms: Optional[int] = None

    @property
    def label(self) -> str:
        return self.direction.value

    @property
    def position_state(self) -> FsmState:
        return FsmState.position_for(self.direction)

    def _breaks_out(self, ltp: float) -> bool:
        if self.direction == Direction.LONG:
            return ltp > self.threshold
        return ltp < self.threshold

    def _stopped_out(self, ltp: float) -> bool:
        if self.direction == Direction.LONG:
            return ltp < self.threshold
        return ltp > self.threshold

    # --- TICKS ---

    def check_invariant(self) -> None:
        """A position state without a backing paper trade (e.g. after a restart) is reset"""
        if self.fsm_state == self.position_state and self.paper_trade is None:
            logger.warning(f"⚠️ {self.label} state mismatch detected, resetting to NOPOSITION")
            self.fsm_state = FsmState.NOPOSITION
            self.threshold = None
            self.current_peak_pnl = None

    def on_tick(self, symbol: str, ltp: float, now_ms: int) -> None:
        self.check_invariant()

        if self.paper_trade and self.paper_trade.symbol == symbol:
            self._mark_to_market(ltp)
            total_pnl = self.live.cumulative_pnl + self.paper_trade.unrealized_pnl
            self.live.evaluate(total_pnl, ltp, symbol, now_ms)

        if self.threshold is None:
            return

        if self.fsm_state == FsmState.NOPOSITION_SIGNAL:
            if self._breaks_out(ltp):
                logger.info(f"📈 {self.label} ENTRY: LTP {ltp} vs threshold {self.threshold}")
                self.fsm_state = self.position_state
                self.open_paper_trade(symbol, ltp, now_ms)
            else:
                logger.info(f"🔒 {self.label} BLOCKED: LTP {ltp} vs threshold {self.threshold}")
                self._block(now_ms)

        elif self.fsm_state == self.position_state:
            if self._stopped_out(ltp):
                logger.info(f"🛑 {self.label} STOP LOSS: LTP {ltp} vs threshold {self.threshold}")
                self.close_paper_trade(ltp, "Stop Loss", now_ms)
                self._block(now_ms)

        elif self.fsm_state == FsmState.NOPOSITION_BLOCKED:
            # A restored track has no anchor; treat its lockout as already served
            if self.last_blocked_at_ms is None or minute_boundary_passed(self.last_blocked_at_ms, now_ms):
                logger.info(f"🔓 {self.label} UNBLOCKED")
                if self._breaks_out(ltp):
                    logger.info(f"📈 {self.label} RE-ENTRY: LTP {ltp} vs threshold {self.threshold}")
                    self.fsm_state = self.position_state
                    self.open_paper_trade(symbol, ltp, now_ms)
                else:
                    self.last_blocked_at_ms = now_ms

    def _block(self, now_ms: int) -> None:
        self.fsm_state = FsmState.NOPOSITION_BLOCKED
        self.last_blocked_at_ms = now_ms

    def _mark_to_market(self, ltp: float) -> None:
        trade = self.paper_trade
        trade.current_price = ltp
        trade.unrealized_pnl = unrealized_pnl(self.direction, trade.entry_price, ltp, trade.quantity)

        # Peak only tracks positive PnL and never moves down
        pnl = trade.unrealized_pnl
        if pnl > 0 and (self.current_peak_pnl is None or pnl > self.current_peak_pnl):
            self.current_peak_pnl = pnl

    # --- SIGNALS ---

    def apply_signal(
        self,
        stop_price: Optional[float],
        ltp: Optional[float],
        now_ms: int,
        auto: bool = False,
    ) -> None:
        """Arm (or trail) the breakout threshold from a routed signal"""
        self.signals.appendleft(
            SignalRecord(
                time_ist=format_local_time(now_ms, self.tz_name),
                intent="BUY" if self.direction == Direction.LONG else "SELL",
                stop_price=stop_price,
                ltp=ltp,
                received_at=now_ms,
                auto=auto,
            )
        )

        self.threshold = threshold_for(self.direction, stop_price, ltp)
        self.last_signal_at_ms = now_ms

        if self.fsm_state in (FsmState.NOPOSITION, FsmState.NOPOSITION_BLOCKED):
            self.fsm_state = FsmState.NOPOSITION_SIGNAL
            logger.info(f"📶 {self.label} signal received: threshold={self.threshold}, waiting for breakout")
        elif self.fsm_state == self.position_state:
            logger.info(f"📶 {self.label} already in position, trailing threshold to {self.threshold}")

    # --- PAPER TRADES ---

    def open_paper_trade(self, symbol: str, entry_price: float, now_ms: int) -> None:
        if self.paper_trade:
            logger.info(f"{self.label} paper trade already open, skipping")
            return

        quantity = self.notional / entry_price
        self.paper_trade = PaperTrade(
            id=f"paper-{self.label}-{symbol}-{now_ms}",
            time_ist=format_local_time(now_ms, self.tz_name),
            symbol=symbol,
            direction=self.label,
            entry_price=entry_price,
            current_price=entry_price,
            quantity=quantity,
            unrealized_pnl=0.0,
            entered_at=now_ms,
        )
        self.live.pending_paper_trade = PendingPaperTrade(
            entry_price=entry_price,
            quantity=quantity,
            opened_at=now_ms,
        )
        logger.info(f"📈 {self.label} paper ENTRY: {symbol} @ {entry_price}")

    def close_paper_trade(self, exit_price: float, reason: str, now_ms: int) -> None:
        trade = self.paper_trade
        if not trade:
            return

        realized = unrealized_pnl(self.direction, trade.entry_price, exit_price, trade.quantity)
        self.live.cumulative_pnl += realized
        logger.info(
            f"📉 {self.label} paper EXIT ({reason}): {trade.symbol} @ {exit_price}, PnL: ${realized:.2f}"
        )

        closed = ClosedPaperTrade(
            **{**trade.to_dict(), "current_price": exit_price},
            exit_price=exit_price,
            exit_time_ist=format_local_time(now_ms, self.tz_name),
            realized_pnl=realized,
            reason=reason,
            closed_at=now_ms,
        )
        self.paper_trades.insert(0, closed)
        if self.paper_history_limit:
            del self.paper_trades[self.paper_history_limit:]

        if self.current_peak_pnl is not None and self.current_peak_pnl > 0:
            self.peak_pnl_history.insert(
                0,
                PeakPnlSample(
                    pnl=self.current_peak_pnl,
                    time_ist=format_local_time(now_ms, self.tz_name),
                    timestamp=now_ms,
                ),
            )

        if self.live.open_trade:
            self.live.close_trade_at(exit_price, reason, now_ms)

        self.paper_trade = None
        self.live.pending_paper_trade = None
        self.current_peak_pnl = None

        self.request_save()

    # --- DAILY RESET ---

    def reset_for_new_day(self) -> None:
        """Clear active state and PnL; histories and the live ledger are kept"""
        self.fsm_state = FsmState.NOPOSITION
        self.threshold = None
        self.current_peak_pnl = None
        self.signals.clear()
        self.live.reset_for_new_day()
        self.last_signal_at_ms = None
        self.last_blocked_at_ms = None

    # --- SERIALIZATION ---

    def snapshot(self, since_ms: int) -> Dict[str, Any]:
        live_rows = list(self.live.trades)
        return {
            "fsm_state": self.fsm_state.value,
            "threshold": self.threshold,
            "paper_trade": self.paper_trade.to_dict() if self.paper_trade else None,
            "paper_trades": [t.to_dict() for t in self.paper_trades],
            "peak_pnl_history": [p.to_dict() for p in self.peak_pnl_history],
            "current_peak_pnl": self.current_peak_pnl,
            "live_state": self.live.serialize(),
            "signals": [s.to_dict() for s in self.signals],
            "last_signal_at_ms": self.last_signal_at_ms,
            "last_blocked_at_ms": self.last_blocked_at_ms,
            "cum_paper_pnl": cumulative_paper_pnl(self.paper_trade, self.paper_trades, since_ms),
            "cum_live_pnl": cumulative_live_pnl(live_rows, since_ms),
            "paper_trade_count": len(self.paper_trades) + (1 if self.paper_trade else 0),
            "live_trade_count": sum(1 for r in live_rows if r.action == "EXIT")
            + (1 if self.live.open_trade else 0),
        }

    def to_persisted(self) -> Dict[str, Any]:
        """Durable subset; the open paper trade and open live trade are never written"""
        return {
            "fsm_state": self.fsm_state.value,
            "threshold": self.threshold,
            "paper_trades": [t.to_dict() for t in self.paper_trades],
            "peak_pnl_history": [p.to_dict() for p in self.peak_pnl_history],
            "current_peak_pnl": self.current_peak_pnl,
            "signals": [s.to_dict() for s in self.signals],
            "live_trades": [r.to_dict() for r in self.live.trades],
            "live_cumulative_pnl": self.live.cumulative_pnl,
        }

    def restore(self, data: Dict[str, Any]) -> None:
        try:
            self.fsm_state = FsmState(data.get("fsm_state") or FsmState.NOPOSITION.value)
        except ValueError:
            logger.warning(f"{self.label} unknown persisted state {data.get('fsm_state')!r}, using NOPOSITION")
            self.fsm_state = FsmState.NOPOSITION
        self.threshold = data.get("threshold")
        self.paper_trades = [ClosedPaperTrade.from_dict(t) for t in data.get("paper_trades") or []]
        self.peak_pnl_history = [PeakPnlSample.from_dict(p) for p in data.get("peak_pnl_history") or []]
        self.current_peak_pnl = data.get("current_peak_pnl")
        self.signals.clear()
        self.signals.extend(SignalRecord.from_dict(s) for s in data.get("signals") or [])
        self.live.trades.clear()
        self.live.trades.extend(LiveTradeRow.from_dict(r) for r in data.get("live_trades") or [])
        self.live.cumulative_pnl = data.get("live_cumulative_pnl") or 0.0
