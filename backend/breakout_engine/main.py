import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from breakout_engine.config import settings
from breakout_engine.exceptions import PersistenceError
from breakout_engine.exchange_clients.order_router import build_order_router
from breakout_engine.price_feeds import BinanceTradeFeed, DeltaTickerPoller, Tick
from breakout_engine.routers import engine_router
from breakout_engine.services.engine_service import EngineService
from breakout_engine.services.snapshot_store import SnapshotStore
from breakout_engine.services.websocket_manager import ws_manager
from breakout_engine.trading_engine import TradingEngine

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Engine wiring - feeds and routes only ever talk to the service
store = SnapshotStore(settings.database_url)
engine = TradingEngine(config=settings)
order_router = build_order_router(settings)
engine_service = EngineService(
    engine,
    store=store,
    broadcaster=ws_manager,
    order_router=order_router,
    config=settings,
)


def on_tick(tick: Tick):
    engine_service.submit_tick(tick.symbol, tick.price, source=tick.exchange)


feeds = [
    BinanceTradeFeed(on_tick, base_url=settings.binance_ws_url, symbol=settings.binance_stream_symbol),
    DeltaTickerPoller(
        on_tick,
        api_base=settings.delta_rest_url,
        symbol=settings.delta_rest_symbol,
        interval_seconds=settings.delta_poll_interval_seconds,
    ),
]


def override_get_engine_service():
    return engine_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Breakout engine starting")
    try:
        await store.init()
    except PersistenceError as e:
        logger.warning(f"Snapshot store unavailable, state will not persist: {e}")
    await engine_service.start()
    if settings.enable_feeds:
        for feed in feeds:
            await feed.start()
    else:
        logger.info("Tick feeds disabled")

    yield

    logger.info("🛑 Breakout engine shutting down")
    for feed in feeds:
        await feed.stop()
    await engine_service.stop()
    await order_router.close()
    await store.close()


app = FastAPI(title="Breakout Trading Engine", lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(engine_router.router)
app.dependency_overrides[engine_router.get_engine_service] = override_get_engine_service


def run():
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
