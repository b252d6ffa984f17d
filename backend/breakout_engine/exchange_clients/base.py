"""
OrderExecutor Abstract Base Class

Every venue that turns an engine ENTRY/EXIT into a real-world order
implements this interface. The engine never waits on an executor: calls are
dispatched as background tasks and their outcome never feeds back into the
FSM or PnL state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from breakout_engine.trading_engine.models import ExecutionRequest

logger = logging.getLogger(__name__)


class OrderExecutor(ABC):
    """
    Abstract base class for order execution venues.

    Implementations raise ExecutionError on failure; the order router is
    responsible for catching and logging it.
    """

    name: str = "executor"

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> Dict[str, Any]:
        """
        Place the real-world order for an engine execution.

        Args:
            request: ENTRY/EXIT kind, venue symbol, reference price, direction

        Returns:
            Venue response as a dict
        """
        pass

    async def close(self):
        """Release any network resources held by the executor"""
        pass


class DryRunExecutor(OrderExecutor):
    """Logs executions without placing orders (venue not configured)"""

    name = "dry_run"

    async def execute(self, request: ExecutionRequest) -> Dict[str, Any]:
        logger.info(
            f"[dry-run] {request.direction.value} {request.kind.value} "
            f"{request.symbol} @ {request.reference_price}"
        )
        return {"dry_run": True, **request.to_dict()}
