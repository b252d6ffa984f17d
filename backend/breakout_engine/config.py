from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Instrument selection
    instrument_class: str = "BTC"  # Only symbols containing this drive the FSMs
    traded_symbol: str = "BTCUSDT"  # Empty = any symbol of the instrument class

    @field_validator("instrument_class", "traded_symbol")
    @classmethod
    def upper_symbols(cls, v: str) -> str:
        """Symbols are compared upper-cased everywhere"""
        return (v or "").strip().upper()

    # Position sizing ($ notional per paper trade)
    position_notional: float = 10.0

    # Paper-to-live hysteresis
    live_open_threshold: float = 0.0  # Promote when total PnL > this
    live_close_threshold: float = 0.0  # Protective close when total PnL <= this

    # Retention
    signal_ring_size: int = 50
    live_trade_ring_size: int = 50
    paper_history_limit: Optional[int] = None  # None keeps every closed paper trade

    # Daily reset (instrument timezone)
    instrument_timezone: str = "Asia/Kolkata"
    daily_reset_hour: int = 5
    daily_reset_minute: int = 30
    auto_signal_delay_seconds: float = 5.0
    auto_signal_margin: float = 50.0  # BUY auto signal threshold = LTP - margin

    # Timers
    broadcast_interval_seconds: float = 1.0
    broadcast_send_timeout_seconds: float = 5.0  # Per display client
    persist_interval_seconds: float = 60.0
    reset_check_interval_seconds: float = 1.0

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./engine_state.db"
    snapshot_key: str = "trading_engine"

    # Order execution (LONG -> webhook venue, SHORT -> Delta Exchange)
    long_webhook_url: str = ""
    delta_base_url: str = "https://cdn-ind.testnet.deltaex.org"
    delta_api_key: str = ""
    delta_api_secret: str = ""
    execution_symbol_map: Dict[str, str] = {"BTCUSDT": "BTCUSD"}
    execution_timeout_seconds: float = 10.0

    # Tick feeds
    enable_feeds: bool = True
    binance_ws_url: str = "wss://stream.binance.com:9443/ws"
    binance_stream_symbol: str = "btcusdt"
    delta_rest_url: str = "https://api.delta.exchange"
    delta_rest_symbol: str = "BTCUSD"
    delta_poll_interval_seconds: float = 1.0

    # HTTP surface
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
