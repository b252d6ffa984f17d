"""Signal-related Pydantic schemas"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class SignalRequest(BaseModel):
    """Manually submitted signal"""
    symbol: str
    side: Optional[str] = None  # BUY / SELL
    intent: Optional[str] = None  # ENTRY / EXIT
    stop_price: Optional[float] = Field(None, alias="stopPrice")

    @field_validator("side", "intent")
    @classmethod
    def upper_token(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    class Config:
        populate_by_name = True


class SignalAcceptedResponse(BaseModel):
    status: str
    symbol: Optional[str]
    side: Optional[str]
    intent: Optional[str]
    stop_price: Optional[float]
    raw: Dict[str, Any] = {}


class LiveSignalRequest(BaseModel):
    """Manual live execution forwarded straight to the LONG venue"""
    kind: Optional[str] = None  # ENTRY / EXIT
    symbol: Optional[str] = None
    ref_price: Optional[float] = Field(None, alias="refPrice")

    @field_validator("kind", "symbol")
    @classmethod
    def upper_token(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    class Config:
        populate_by_name = True


class LiveSignalResponse(BaseModel):
    ok: bool
    forwarded: Dict[str, Any]
    response: Optional[Dict[str, Any]] = None
