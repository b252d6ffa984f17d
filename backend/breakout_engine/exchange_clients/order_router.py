"""
Order Router

Static direction -> venue routing for live executions (LONG goes to the
webhook venue, SHORT to Delta Exchange). The router is the fire-and-forget
boundary: executor failures are logged here and never propagate back into
the engine.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from breakout_engine.config import Settings
from breakout_engine.exchange_clients.base import DryRunExecutor, OrderExecutor
from breakout_engine.exchange_clients.delta_executor import DeltaOrderExecutor
from breakout_engine.exchange_clients.webhook_executor import WebhookOrderExecutor
from breakout_engine.trading_engine.models import Direction, ExecutionRequest

logger = logging.getLogger(__name__)


class OrderRouter:
    def __init__(
        self,
        executors: Dict[Direction, OrderExecutor],
        symbol_map: Optional[Dict[str, str]] = None,
    ):
        self.executors = executors
        self.symbol_map = symbol_map or {}

    async def execute(self, request: ExecutionRequest) -> Optional[Dict[str, Any]]:
        """Route one execution; returns the venue response or None on failure"""
        executor = self.executors.get(request.direction)
        if executor is None:
            logger.warning(f"No executor for {request.direction.value}, dropping {request.kind.value}")
            return None

        routed = replace(request, symbol=self.symbol_map.get(request.symbol, request.symbol))
        try:
            return await executor.execute(routed)
        except Exception as e:
            logger.error(
                f"❌ Failed to send {routed.direction.value} {routed.kind.value} "
                f"via {executor.name}: {e}"
            )
            return None

    async def close(self):
        for executor in self.executors.values():
            try:
                await executor.close()
            except Exception as e:
                logger.warning(f"Error closing executor {executor.name}: {e}")


def build_order_router(config: Settings) -> OrderRouter:
    """Wire the configured venues; unconfigured ones fall back to dry-run"""
    if config.long_webhook_url:
        long_executor: OrderExecutor = WebhookOrderExecutor(
            config.long_webhook_url, timeout=config.execution_timeout_seconds
        )
    else:
        long_executor = DryRunExecutor()

    if config.delta_api_key and config.delta_api_secret:
        short_executor: OrderExecutor = DeltaOrderExecutor(
            config.delta_api_key,
            config.delta_api_secret,
            base_url=config.delta_base_url,
            order_size=config.position_notional,
            timeout=config.execution_timeout_seconds,
        )
    else:
        short_executor = DryRunExecutor()

    logger.info(f"Order routing: LONG -> {long_executor.name}, SHORT -> {short_executor.name}")
    return OrderRouter(
        {Direction.LONG: long_executor, Direction.SHORT: short_executor},
        symbol_map=config.execution_symbol_map,
    )
