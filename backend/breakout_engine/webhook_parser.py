"""
Webhook payload normalization

Alert providers send either JSON or a plain-text alert line such as:

    Accepted Entry + priorRisePct= 0.00 | stopPx=64250.5 | sym=BTCUSDT

normalize_payload() turns either form into a flat dict; extract_trade_signal()
reads the loosely-named fields of that dict into a TradeSignal.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Optional, Union

from breakout_engine.exceptions import SignalParseError
from breakout_engine.trading_engine.models import TradeSignal

logger = logging.getLogger(__name__)

SYMBOL_KEYS = ("symbol", "ticker", "sym")
STOP_PRICE_KEYS = ("stoppx", "stopPx", "stop_price", "stopPrice")
ACTION_KEYS = ("action", "side", "signal", "order_type", "type")

_KV_SEPARATORS = re.compile(r"[|,\n]")
_ACCEPTED_PREFIX = re.compile(r"^Accepted\s+", re.IGNORECASE)


def _parse_alert_text(text: str) -> Dict[str, str]:
    parsed = {}
    prefix, _, rest = text.partition("+")
    prefix = prefix.strip()
    if prefix:
        parsed["action"] = _ACCEPTED_PREFIX.sub("", prefix).strip()

    for pair in _KV_SEPARATORS.split(rest.strip() or text):
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            continue
        parsed[key.strip()] = value.strip()
    return parsed


def normalize_payload(body: Union[Dict[str, Any], str, bytes, None]) -> Dict[str, Any]:
    """Flatten a webhook body (dict, JSON text or alert text) into a dict"""
    if isinstance(body, dict):
        return body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str):
        return {}

    text = body.strip()
    if not text:
        return {}

    try:
        decoded = json.loads(text)
    except ValueError:
        return _parse_alert_text(text)
    return decoded if isinstance(decoded, dict) else {}


def _first(payload: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _to_price(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def _flag(payload: Dict[str, Any], *keys: str) -> bool:
    for key in keys:
        value = payload.get(key)
        if value is True or "true" in str(value or "").lower():
            return True
    return False


def extract_trade_signal(payload: Dict[str, Any]) -> TradeSignal:
    """
    Read a normalized payload into a TradeSignal.

    Raises SignalParseError when the payload carries nothing usable (no
    symbol, no side and no entry/exit intent).
    """
    if not isinstance(payload, dict) or not payload:
        raise SignalParseError("Empty webhook payload")

    symbol = _first(payload, SYMBOL_KEYS)
    action = str(_first(payload, ACTION_KEYS) or "").strip().upper()

    is_entry = "ENTRY" in action or _flag(payload, "entry", "isEntry")
    is_exit = "EXIT" in action or _flag(payload, "exit", "isExit")

    side = None
    if "BUY" in action or "LONG" in action:
        side = "BUY"
    elif "SELL" in action or "SHORT" in action:
        side = "SELL"
    elif is_entry:
        side = "BUY"
    elif is_exit:
        side = "SELL"

    intent = "ENTRY" if is_entry else "EXIT" if is_exit else None

    if not symbol and side is None:
        raise SignalParseError("Webhook payload has no symbol and no side")

    return TradeSignal(
        symbol=str(symbol) if symbol else None,
        side=side,
        intent=intent,
        stop_price=_to_price(_first(payload, STOP_PRICE_KEYS)),
        raw=payload,
    )
