"""
Engine API routes

Handles the engine's HTTP and WebSocket surface:
- Alert webhook (JSON or plain-text alert lines)
- Manual signal submission
- Manual live execution forwarding
- Engine state snapshot
- Health check
- Live state stream
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from breakout_engine.exceptions import SignalParseError
from breakout_engine.schemas import (
    LiveSignalRequest,
    LiveSignalResponse,
    SignalAcceptedResponse,
    SignalRequest,
)
from breakout_engine.services.engine_service import EngineService
from breakout_engine.services.websocket_manager import WebSocketManager, ws_manager
from breakout_engine.trading_engine.models import Direction, ExecutionKind, ExecutionRequest, TradeSignal
from breakout_engine.webhook_parser import extract_trade_signal, normalize_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["engine"])


# Dependencies - will be injected from main.py
def get_engine_service() -> EngineService:
    """Get engine service - will be overridden in main.py"""
    raise NotImplementedError("Must override engine_service dependency")


def get_ws_manager() -> WebSocketManager:
    return ws_manager


def _accepted(signal: TradeSignal) -> SignalAcceptedResponse:
    return SignalAcceptedResponse(
        status="accepted",
        symbol=signal.symbol,
        side=signal.side,
        intent=signal.intent,
        stop_price=signal.stop_price,
        raw=signal.raw,
    )


@router.post("/webhook", response_model=SignalAcceptedResponse)
async def receive_webhook(request: Request, service: EngineService = Depends(get_engine_service)):
    """Accept an alert webhook and queue it as a signal"""
    payload = normalize_payload(await request.body())
    try:
        signal = extract_trade_signal(payload)
    except SignalParseError as e:
        logger.warning(f"Rejected webhook: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    logger.info(f"📨 Webhook signal: {signal.side or signal.intent} {signal.symbol} stop={signal.stop_price}")
    service.submit_signal(signal)
    return _accepted(signal)


@router.post("/api/engine/signal", response_model=SignalAcceptedResponse)
async def submit_signal(body: SignalRequest, service: EngineService = Depends(get_engine_service)):
    if not body.side and not body.intent:
        raise HTTPException(status_code=400, detail="Signal needs a side or an intent")

    signal = TradeSignal(
        symbol=body.symbol,
        side=body.side,
        intent=body.intent,
        stop_price=body.stop_price,
        raw=body.model_dump(by_alias=True),
    )
    service.submit_signal(signal)
    return _accepted(signal)


@router.post("/live-signal", response_model=LiveSignalResponse)
async def forward_live_signal(body: LiveSignalRequest, service: EngineService = Depends(get_engine_service)):
    """Send an Entry/Exit alert to the LONG venue without touching engine state"""
    if not body.kind or not body.symbol or body.ref_price is None:
        raise HTTPException(status_code=400, detail="Missing kind, symbol, or refPrice")
    try:
        kind = ExecutionKind(body.kind)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown kind: {body.kind}")

    order_router = service.order_router
    if order_router is None:
        raise HTTPException(status_code=503, detail="No live venue configured")

    request = ExecutionRequest(kind, body.symbol, body.ref_price, Direction.LONG)
    forwarded = {
        "kind": kind.value,
        "symbol": order_router.symbol_map.get(body.symbol, body.symbol),
        "refPrice": body.ref_price,
    }
    logger.info(f"🚀 Forwarding live {kind.value}: {forwarded}")

    response = await order_router.execute(request)
    if response is None:
        raise HTTPException(status_code=502, detail="Live venue rejected the signal")
    return LiveSignalResponse(ok=True, forwarded=forwarded, response=response)


@router.get("/api/engine/state")
async def get_engine_state(service: EngineService = Depends(get_engine_service)):
    return service.engine.get_snapshot()


@router.get("/health")
async def health(service: EngineService = Depends(get_engine_service)):
    return {
        "status": "ok",
        "service": service.get_status(),
        "ltp": service.engine.ltp_by_symbol,
        "last_reset_date": service.engine.last_reset_date,
    }


@router.websocket("/ws/engine")
async def engine_stream(
    websocket: WebSocket,
    service: EngineService = Depends(get_engine_service),
    manager: WebSocketManager = Depends(get_ws_manager),
):
    await manager.connect(websocket)
    try:
        await websocket.send_json({"type": "engine_state", "data": service.engine.get_snapshot()})
        while True:
            # Clients only listen; inbound text keeps the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.disconnect(websocket)
