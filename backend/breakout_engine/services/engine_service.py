"""
Engine Service

Single owner of the trading engine. Tick feeds, the webhook route and the
timers never touch engine state directly: they enqueue events, and one
consumer task applies them to the engine one at a time in arrival order.

Background tasks:
- consumer: drains the event queue into the engine
- reset checker: enqueues a daily-reset check every second
- broadcaster: fire-and-forget engine snapshot to the broadcast sink
- persister: periodic snapshot save

Order executions and snapshot saves requested by the engine run as tracked
background tasks; their failures are logged and never reach the engine.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from breakout_engine.config import Settings, settings
from breakout_engine.exchange_clients.order_router import OrderRouter
from breakout_engine.services.snapshot_store import SnapshotStore
from breakout_engine.services.websocket_manager import WebSocketManager
from breakout_engine.trading_engine.engine import TradingEngine
from breakout_engine.trading_engine.models import ExecutionRequest, TradeSignal

logger = logging.getLogger(__name__)


@dataclass
class TickEvent:
    symbol: str
    price: Any
    source: str = "unknown"


@dataclass
class SignalEvent:
    signal: TradeSignal


@dataclass
class ResetCheckEvent:
    pass


@dataclass
class AutoSignalEvent:
    pass


class EngineService:
    def __init__(
        self,
        engine: TradingEngine,
        store: Optional[SnapshotStore] = None,
        broadcaster: Optional[WebSocketManager] = None,
        order_router: Optional[OrderRouter] = None,
        config: Settings = settings,
    ):
        self.engine = engine
        self.store = store
        self.broadcaster = broadcaster
        self.order_router = order_router
        self.config = config

        self.engine.dispatch_order = self._dispatch_order
        self.engine.request_save = self.request_save

        self.queue: asyncio.Queue = asyncio.Queue()
        self.running = False
        self._tasks: List[asyncio.Task] = []
        self._background: Set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()
        self._auto_signal_handle: Optional[asyncio.TimerHandle] = None
        self._broadcast_task: Optional[asyncio.Task] = None
        self._events_processed = 0

    # --- LIFECYCLE ---

    async def load_state(self):
        """Restore the persisted snapshot; any failure starts the engine fresh"""
        if not self.store:
            return
        try:
            data = await self.store.load(self.config.snapshot_key)
        except Exception as e:
            logger.warning(f"Failed to load saved state, starting fresh: {e}")
            return

        if data is None:
            logger.info("No saved state found, starting fresh")
            return

        try:
            self.engine.restore(data)
        except Exception as e:
            logger.warning(f"Saved state unusable, starting fresh: {e}")

    async def start(self):
        if self.running:
            return

        await self.load_state()
        self.running = True
        cfg = self.config
        self._tasks = [
            asyncio.create_task(self._consume()),
            asyncio.create_task(self._every(cfg.reset_check_interval_seconds, self._enqueue_reset_check)),
            asyncio.create_task(self._every(cfg.broadcast_interval_seconds, self.broadcast_state)),
            asyncio.create_task(self._every(cfg.persist_interval_seconds, self.request_save)),
        ]
        logger.info(
            f"Engine service started - broadcast every {cfg.broadcast_interval_seconds}s, "
            f"persist every {cfg.persist_interval_seconds}s"
        )

    async def stop(self):
        self.running = False
        if self._auto_signal_handle:
            self._auto_signal_handle.cancel()
            self._auto_signal_handle = None

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

        await self.save_state()
        logger.info("Engine service stopped")

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "queued_events": self.queue.qsize(),
            "events_processed": self._events_processed,
            "background_tasks": len(self._background),
        }

    # --- INGESTION (called by feeds and routes) ---

    def submit_tick(self, symbol: str, price: Any, source: str = "unknown"):
        self.queue.put_nowait(TickEvent(symbol, price, source))

    def submit_signal(self, signal: TradeSignal):
        self.queue.put_nowait(SignalEvent(signal))

    async def drain(self):
        """Wait until every queued event has been applied"""
        await self.queue.join()

    async def _consume(self):
        while True:
            event = await self.queue.get()
            try:
                self._apply(event)
                self._events_processed += 1
            except Exception:
                logger.exception(f"Failed to apply {type(event).__name__}")
            finally:
                self.queue.task_done()

    def _apply(self, event):
        if isinstance(event, TickEvent):
            self.engine.ingest_tick(event.symbol, event.price)
        elif isinstance(event, SignalEvent):
            self.engine.ingest_signal(event.signal)
            self.broadcast_state()
        elif isinstance(event, ResetCheckEvent):
            if self.engine.check_daily_reset():
                self.request_save()
                self._schedule_auto_signals()
        elif isinstance(event, AutoSignalEvent):
            self.engine.generate_auto_signals()
            self.broadcast_state()

    def _enqueue_reset_check(self):
        self.queue.put_nowait(ResetCheckEvent())

    def _schedule_auto_signals(self):
        loop = asyncio.get_running_loop()
        self._auto_signal_handle = loop.call_later(
            self.config.auto_signal_delay_seconds, self.queue.put_nowait, AutoSignalEvent()
        )

    async def _every(self, interval: float, action: Callable[[], Any]):
        while self.running:
            await asyncio.sleep(interval)
            try:
                action()
            except Exception as e:
                logger.error(f"Periodic {getattr(action, '__name__', action)} failed: {e}")

    # --- FIRE-AND-FORGET EFFECTS ---

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _dispatch_order(self, request: ExecutionRequest):
        self._spawn(self._execute(request))

    async def _execute(self, request: ExecutionRequest) -> Optional[Dict[str, Any]]:
        if self.order_router is None:
            logger.info(f"No order router, {request.direction.value} {request.kind.value} not sent")
            return None
        try:
            return await self.order_router.execute(request)
        except Exception as e:
            logger.error(f"Order execution failed for {request.symbol}: {e}")
            return None

    def request_save(self):
        if self.store:
            self._spawn(self.save_state())

    async def save_state(self):
        """Write the persisted snapshot; errors are logged, never raised"""
        if not self.store:
            return
        async with self._save_lock:
            try:
                await self.store.save(self.config.snapshot_key, self.engine.to_persisted())
            except Exception as e:
                logger.error(f"❌ Failed to save state: {e}")

    def broadcast_state(self):
        """Start a broadcast unless the previous one is still sending"""
        if not self.broadcaster:
            return
        if self._broadcast_task and not self._broadcast_task.done():
            logger.debug("Previous engine state broadcast still in flight, skipping")
            return
        self._broadcast_task = self._spawn(self._broadcast())

    async def _broadcast(self):
        try:
            await self.broadcaster.broadcast_engine_state(self.engine.get_snapshot())
        except Exception as e:
            logger.warning(f"Engine state broadcast failed: {e}")
