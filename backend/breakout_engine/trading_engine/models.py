"""
Engine records

Plain dataclasses for everything the position tracks hold. Records that end
up in a persistence snapshot or a broadcast carry to_dict()/from_dict().
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class FsmState(str, Enum):
    NOPOSITION = "NOPOSITION"
    NOPOSITION_SIGNAL = "NOPOSITION_SIGNAL"
    BUYPOSITION = "BUYPOSITION"
    SELLPOSITION = "SELLPOSITION"
    NOPOSITION_BLOCKED = "NOPOSITION_BLOCKED"

    @classmethod
    def position_for(cls, direction: Direction) -> "FsmState":
        """The in-position state of a track (LONG -> BUYPOSITION)"""
        return cls.BUYPOSITION if direction == Direction.LONG else cls.SELLPOSITION


class LiveState(str, Enum):
    NO_POSITION = "NO_POSITION"
    POSITION = "POSITION"


class ExecutionKind(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class _Record:
    """to_dict/from_dict for flat dataclasses (unknown keys are ignored)"""

    def to_dict(self) -> Dict[str, Any]:
        return {k: _plain(v) for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PaperTrade(_Record):
    """Open simulated position. quantity = notional / entry_price"""
    id: str
    time_ist: str
    symbol: str
    direction: str
    entry_price: float
    current_price: float
    quantity: float
    unrealized_pnl: float
    entered_at: int


@dataclass
class ClosedPaperTrade(PaperTrade):
    exit_price: float
    exit_time_ist: str
    realized_pnl: float
    reason: str
    closed_at: int


@dataclass
class PeakPnlSample(_Record):
    pnl: float
    time_ist: str
    timestamp: int


@dataclass
class SignalRecord(_Record):
    time_ist: str
    intent: str  # "BUY" or "SELL"
    stop_price: Optional[float]
    ltp: Optional[float]
    received_at: int
    auto: bool = False


@dataclass
class PendingPaperTrade(_Record):
    """Reference the live sub-track promotes from"""
    entry_price: float
    quantity: float
    opened_at: int
    lot: int = 1


@dataclass
class LiveOpenTrade(_Record):
    id: str
    symbol: str
    entry_price: float
    quantity: float
    lot: int
    time_ist: str


@dataclass
class LiveTradeRow(_Record):
    """Ledger row; ENTRY rows have no exit/realized values"""
    id: str
    time_ist: str
    symbol: str
    action: str
    entry_price: float
    exit_price: Optional[float]
    quantity: float
    realized_pnl: Optional[float]
    cumulative_pnl: float
    closed_at: Optional[int] = None
    reason: Optional[str] = None  # EXIT rows only


@dataclass
class ExecutionRequest(_Record):
    kind: ExecutionKind
    symbol: str
    reference_price: float
    direction: Direction


@dataclass
class TradeSignal(_Record):
    """Normalized inbound signal: {symbol, side|intent, stop_price}"""
    symbol: Optional[str]
    side: Optional[str] = None  # "BUY" / "SELL"
    intent: Optional[str] = None  # "ENTRY" / "EXIT"
    stop_price: Optional[float] = None
    auto: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)
