"""
Trading Engine Components

Dual-track breakout engine:
- TradingEngine: owns both tracks, the price table and daily reset
- PositionTrack: breakout FSM and paper trades for one direction
- LiveSubTrack: paper-to-live promotion and protective close
- signal_processor: routes signals to a direction and picks thresholds
- pnl: unrealized and windowed cumulative PnL
"""

from breakout_engine.trading_engine.engine import TradingEngine
from breakout_engine.trading_engine.live_track import LiveSubTrack
from breakout_engine.trading_engine.models import (
    Direction,
    ExecutionKind,
    ExecutionRequest,
    FsmState,
    LiveState,
    TradeSignal,
)
from breakout_engine.trading_engine.position_track import PositionTrack

__all__ = [
    "TradingEngine",
    "PositionTrack",
    "LiveSubTrack",
    "Direction",
    "ExecutionKind",
    "ExecutionRequest",
    "FsmState",
    "LiveState",
    "TradeSignal",
]
