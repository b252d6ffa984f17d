"""
Webhook Order Executor

Forwards executions to a TradingView-style webhook (the LONG venue). The
receiving service parses a free-text alert message:

    Accepted Entry + priorRisePct= 0.00 | stopPx=<price> | sym=<symbol>

- Uses httpx.AsyncClient for HTTP
"""

import logging
from typing import Any, Dict

import httpx

from breakout_engine.exceptions import ExecutionError
from breakout_engine.exchange_clients.base import OrderExecutor
from breakout_engine.trading_engine.models import ExecutionKind, ExecutionRequest

logger = logging.getLogger(__name__)


def build_alert_message(kind: ExecutionKind, symbol: str, reference_price: float) -> str:
    action = "Entry" if kind == ExecutionKind.ENTRY else "Exit"
    return f"Accepted {action} + priorRisePct= 0.00 | stopPx={reference_price} | sym={symbol}"


class WebhookOrderExecutor(OrderExecutor):
    name = "webhook"

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.AsyncClient = None):
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        if self._client:
            await self._client.aclose()

    async def execute(self, request: ExecutionRequest) -> Dict[str, Any]:
        message = build_alert_message(request.kind, request.symbol, request.reference_price)
        logger.info(
            f"🚀 Sending {request.direction.value} {request.kind.value} to webhook: "
            f"{request.symbol} @ {request.reference_price}"
        )
        try:
            resp = await self._client.post(self._url, json={"message": message})
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExecutionError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}", venue=self.name
            )
        except httpx.HTTPError as e:
            raise ExecutionError(f"request failed: {e}", venue=self.name)

        logger.info(f"✅ Webhook response: {resp.text[:200]}")
        return {"status_code": resp.status_code, "body": resp.text}
