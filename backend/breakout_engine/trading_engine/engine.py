"""
Trading Engine - dual-track paper/live trade management

Owns the LONG and SHORT position tracks, the shared last-traded-price table
and the daily reset bookkeeping. It is the sole entry point for ticks and
signals and performs no I/O: order executions and snapshot saves leave
through two injected callbacks, which the engine service turns into
fire-and-forget tasks.

Ingestion entry points never raise. Bad input is dropped and internal
failures are logged.
"""

import logging
import math
from typing import Any, Callable, Dict, Optional

from breakout_engine.config import Settings, settings
from breakout_engine.time_utils import in_reset_window, local_date_str, now_ms
from breakout_engine.trading_engine.live_track import LiveSubTrack
from breakout_engine.trading_engine.models import Direction, ExecutionRequest, TradeSignal
from breakout_engine.trading_engine.position_track import PositionTrack
from breakout_engine.trading_engine.signal_processor import resolve_direction

logger = logging.getLogger(__name__)


def _finite(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class TradingEngine:
    def __init__(
        self,
        config: Settings = settings,
        dispatch_order: Optional[Callable[[ExecutionRequest], None]] = None,
        request_save: Optional[Callable[[], None]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.dispatch_order = dispatch_order
        self.request_save = request_save
        self._clock = clock

        self.tracks: Dict[Direction, PositionTrack] = self._build_tracks()
        self.ltp_by_symbol: Dict[str, float] = {}
        self.fsm_by_symbol: Dict[str, Dict[str, Any]] = {}  # Display only
        self.last_reset_date: Optional[str] = None
        self.last_reset_timestamp: int = clock()
        self._last_tradable_symbol: Optional[str] = None

        logger.info("Trading engine initialized with breakout FSM")

    @property
    def long(self) -> PositionTrack:
        return self.tracks[Direction.LONG]

    @property
    def short(self) -> PositionTrack:
        return self.tracks[Direction.SHORT]

    def _build_tracks(self) -> Dict[Direction, PositionTrack]:
        cfg = self.config
        tracks = {}
        for direction in Direction:
            live = LiveSubTrack(
                direction,
                open_threshold=cfg.live_open_threshold,
                close_threshold=cfg.live_close_threshold,
                ring_size=cfg.live_trade_ring_size,
                tz_name=cfg.instrument_timezone,
                dispatch_order=self._dispatch,
            )
            tracks[direction] = PositionTrack(
                direction,
                live,
                notional=cfg.position_notional,
                signal_ring_size=cfg.signal_ring_size,
                paper_history_limit=cfg.paper_history_limit,
                tz_name=cfg.instrument_timezone,
                request_save=self._save,
            )
        return tracks

    def _dispatch(self, request: ExecutionRequest) -> None:
        if self.dispatch_order is None:
            logger.info(f"Execution {request.kind.value} {request.direction.value} not dispatched (no executor)")
            return
        try:
            self.dispatch_order(request)
        except Exception as e:
            logger.error(f"Failed to dispatch {request.kind.value} for {request.symbol}: {e}")

    def _save(self) -> None:
        if self.request_save is None:
            return
        try:
            self.request_save()
        except Exception as e:
            logger.error(f"Failed to request state save: {e}")

    def is_tradable(self, symbol: str) -> bool:
        upper = symbol.upper()
        if self.config.instrument_class not in upper:
            return False
        return not self.config.traded_symbol or upper == self.config.traded_symbol

    # --- INGESTION ---

    def ingest_tick(self, symbol: str, price: Any, now_ms: Optional[int] = None) -> None:
        """Record the price and run both FSMs for tradable symbols"""
        try:
            ltp = _finite(price)
            if not symbol or ltp is None:
                logger.debug(f"Dropping tick {symbol!r} @ {price!r}")
                return

            self.ltp_by_symbol[symbol] = ltp
            if not self.is_tradable(symbol):
                return

            self._last_tradable_symbol = symbol
            now = now_ms if now_ms is not None else self._clock()
            for track in self.tracks.values():
                track.on_tick(symbol, ltp, now)
                if track.threshold is not None:
                    self.fsm_by_symbol[f"{symbol}_{track.label}"] = {
                        "state": track.fsm_state.value,
                        "threshold": track.threshold,
                    }
        except Exception:
            logger.exception(f"Tick processing failed for {symbol}")

    def ingest_signal(self, signal: TradeSignal, now_ms: Optional[int] = None) -> None:
        """Route a normalized signal to the LONG or SHORT track"""
        try:
            symbol = (signal.symbol or "").strip().upper()
            if not symbol:
                return
            if self.config.instrument_class not in symbol:
                logger.info(f"⏭️ Ignoring signal for untracked symbol {symbol}")
                return

            direction = resolve_direction(signal.side, signal.intent)
            if direction is None:
                logger.warning(f"Signal for {symbol} names no direction (side={signal.side}, intent={signal.intent})")
                return

            # Thresholds are compared against traded-symbol ticks only
            ltp_symbol = self.config.traded_symbol or symbol
            now = now_ms if now_ms is not None else self._clock()
            self.tracks[direction].apply_signal(
                _finite(signal.stop_price),
                self.ltp_by_symbol.get(ltp_symbol),
                now,
                auto=signal.auto,
            )
        except Exception:
            logger.exception(f"Signal processing failed for {signal!r}")

    # --- DAILY RESET ---

    def check_daily_reset(self, now_ms: Optional[int] = None) -> bool:
        """Perform the reset once per local day inside the reset window"""
        now = now_ms if now_ms is not None else self._clock()
        cfg = self.config
        if not in_reset_window(now, cfg.instrument_timezone, cfg.daily_reset_hour, cfg.daily_reset_minute):
            return False
        if self.last_reset_date == local_date_str(now, cfg.instrument_timezone):
            return False
        self.perform_daily_reset(now)
        return True

    def perform_daily_reset(self, now_ms: Optional[int] = None) -> None:
        now = now_ms if now_ms is not None else self._clock()
        logger.info("🔄 Daily reset")

        for track in self.tracks.values():
            trade = track.paper_trade
            if trade:
                exit_price = self.ltp_by_symbol.get(trade.symbol) or trade.current_price
                track.close_paper_trade(exit_price, "Daily Reset", now)
            track.reset_for_new_day()

        self.fsm_by_symbol.clear()
        self.last_reset_date = local_date_str(now, self.config.instrument_timezone)
        self.last_reset_timestamp = now
        logger.info("✅ Daily reset complete - history preserved, cumulative PnL reset")

    def generate_auto_signals(self, now_ms: Optional[int] = None) -> bool:
        """Re-arm both tracks from the latest price after a reset"""
        symbol = self.config.traded_symbol or self._last_tradable_symbol
        ltp = self.ltp_by_symbol.get(symbol) if symbol else None
        if not ltp:
            logger.warning("⚠️ Auto signals skipped - no LTP available")
            return False

        raw = {"auto": True, "ltp": ltp}
        buy_threshold = ltp - self.config.auto_signal_margin
        self.ingest_signal(
            TradeSignal(symbol=symbol, side="BUY", intent="ENTRY", stop_price=buy_threshold, auto=True, raw=raw),
            now_ms,
        )
        self.ingest_signal(
            TradeSignal(symbol=symbol, side="SELL", intent="ENTRY", stop_price=ltp, auto=True, raw=raw),
            now_ms,
        )
        logger.info(f"🤖 Auto signals generated - LONG threshold: {buy_threshold}, SHORT threshold: {ltp}")
        return True

    # --- SNAPSHOTS ---

    def get_snapshot(self) -> Dict[str, Any]:
        """Full engine state for display; pure read"""
        since = self.last_reset_timestamp
        return {
            "long": self.long.snapshot(since),
            "short": self.short.snapshot(since),
            "ltp": dict(self.ltp_by_symbol),
            "fsm": {k: dict(v) for k, v in self.fsm_by_symbol.items()},
            "last_reset_date": self.last_reset_date,
            "last_reset_timestamp": self.last_reset_timestamp,
        }

    def to_persisted(self, now_ms: Optional[int] = None) -> Dict[str, Any]:
        return {
            "saved_at": now_ms if now_ms is not None else self._clock(),
            "last_reset_date": self.last_reset_date,
            "last_reset_timestamp": self.last_reset_timestamp,
            "long": self.long.to_persisted(),
            "short": self.short.to_persisted(),
        }

    def restore(self, data: Dict[str, Any]) -> None:
        """
        Load a persisted snapshot.

        Tracks are rebuilt off to the side and swapped in only once every
        section parsed, so a malformed snapshot leaves the engine untouched.
        """
        tracks = self._build_tracks()
        for direction, key in ((Direction.LONG, "long"), (Direction.SHORT, "short")):
            if data.get(key):
                tracks[direction].restore(data[key])

        self.tracks = tracks
        self.last_reset_date = data.get("last_reset_date")
        self.last_reset_timestamp = data.get("last_reset_timestamp") or self._clock()

        saved_at = data.get("saved_at")
        if saved_at:
            logger.info(f"✅ State restored (saved {round((self._clock() - saved_at) / 1000)}s ago)")
