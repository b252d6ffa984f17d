"""
Delta Exchange Order Executor

Places market orders for the SHORT track on Delta Exchange:
- ENTRY -> market SELL (open short)
- EXIT  -> market BUY (close short)

Requests are HMAC-SHA256 signed over method + timestamp + path + body and
sent with api-key / timestamp / signature headers.

- Uses httpx.AsyncClient for HTTP
- Product ids come from a known map first, then GET /v2/products
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from breakout_engine.exceptions import ExecutionError
from breakout_engine.exchange_clients.base import OrderExecutor
from breakout_engine.trading_engine.models import ExecutionKind, ExecutionRequest

logger = logging.getLogger(__name__)

KNOWN_PRODUCTS = {
    "BTCUSD": 84,
}


def generate_signature(api_secret: str, method: str, timestamp: str, path: str, body: str = "") -> str:
    """HMAC-SHA256 hex digest of method + timestamp + path + body"""
    message = method + timestamp + path + body
    return hmac.new(api_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class DeltaOrderExecutor(OrderExecutor):
    name = "delta"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://cdn-ind.testnet.deltaex.org",
        order_size: float = 10.0,
        timeout: float = 10.0,
        client: httpx.AsyncClient = None,
    ):
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._order_size = order_size
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._product_ids: Dict[str, int] = dict(KNOWN_PRODUCTS)

    async def close(self):
        if self._client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        """Signed request; raises ExecutionError on any failure"""
        timestamp = str(int(time.time()))
        body_str = json.dumps(body) if body else ""
        headers = {
            "Content-Type": "application/json",
            "api-key": self._api_key,
            "timestamp": timestamp,
            "signature": generate_signature(self._api_secret, method, timestamp, path, body_str),
            "User-Agent": "breakout-engine/1.0",
        }
        try:
            resp = await self._client.request(
                method, f"{self._base_url}{path}", headers=headers, content=body_str or None
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            body_text = e.response.text[:200]
            logger.error(f"Delta API HTTP {e.response.status_code}: {method} {path} - {body_text}")
            raise ExecutionError(f"HTTP {e.response.status_code}: {body_text}", venue=self.name)
        except httpx.HTTPError as e:
            raise ExecutionError(f"{method} {path} failed: {e}", venue=self.name)
        except ValueError as e:
            raise ExecutionError(f"unparseable response from {path}: {e}", venue=self.name)

    async def get_product_id(self, symbol: str) -> Optional[int]:
        if symbol in self._product_ids:
            return self._product_ids[symbol]

        response = await self._request("GET", "/v2/products")
        products = response.get("result", response) if isinstance(response, dict) else response
        underlying = symbol.replace("USD", "")
        for product in products or []:
            asset = (product.get("underlying_asset") or {}).get("symbol")
            if product.get("symbol") == symbol or asset == underlying:
                self._product_ids[symbol] = product["id"]
                return product["id"]
        return None

    async def place_market_order(self, symbol: str, side: str, size: float) -> Dict[str, Any]:
        if not self._api_key or not self._api_secret:
            raise ExecutionError("Delta API credentials not configured", venue=self.name)

        product_id = await self.get_product_id(symbol)
        if not product_id:
            raise ExecutionError(f"Product not found: {symbol}", venue=self.name)

        order = {
            "product_id": product_id,
            "size": abs(size),
            "side": side.lower(),
            "order_type": "market_order",
        }
        logger.info(f"Placing Delta {side.upper()} order: {symbol}, size: ${size}")
        result = await self._request("POST", "/v2/orders", order)
        logger.info(f"✅ Delta order placed: {result}")
        return result

    async def execute(self, request: ExecutionRequest) -> Dict[str, Any]:
        # Short venue: open with a sell, close with a buy
        side = "sell" if request.kind == ExecutionKind.ENTRY else "buy"
        return await self.place_market_order(request.symbol, side, self._order_size)
