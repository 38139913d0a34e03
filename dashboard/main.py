import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashboard.config import settings
from dashboard.core import runtime
from dashboard.core.snapshot_store import SnapshotStore
from dashboard.routers.api import router as api_router
from dashboard.routers.websocket import router as websocket_router
from dashboard.services.performance import PerformanceAggregator
from dashboard.services.signals_log import SignalsLogReader
from dashboard.websocket.manager import LiveChannel

logger = logging.getLogger(__name__)


def create_app(
    store: SnapshotStore = None,
    channel: LiveChannel = None,
    signals_log: SignalsLogReader = None,
) -> FastAPI:
    """Build the dashboard API around a store and its live channel.

    Without arguments the process-wide components from `dashboard.core.runtime`
    are used. A custom store without a channel gets its own channel attached.
    """
    if store is None:
        store = runtime.snapshot_store
        channel = channel or runtime.live_channel
        signals_log = signals_log or runtime.signals_log
    if channel is None:
        channel = LiveChannel(store)
        channel.attach()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await channel.start()
        logger.info(f"🚀 {settings.PROJECT_NAME} started (buffer capacity {store.capacity})")

        yield

        try:
            await channel.shutdown()
        except Exception as e:
            logger.error(f"❌ Error closing live channel: {e}")
        logger.info("🔌 Dashboard stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan
    )

    app.state.store = store
    app.state.channel = channel
    app.state.aggregator = PerformanceAggregator(store)
    app.state.signals_log = signals_log or SignalsLogReader(settings.SIGNALS_CSV_PATH)

    @app.middleware("http")
    async def log_request_errors(request: Request, call_next):
        start_time = datetime.now()
        try:
            return await call_next(request)
        except Exception as e:
            process_time = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"💥 ERROR in {request.method} {request.url}: {str(e)}")
            logger.error(f"   Traceback:\n{traceback.format_exc()}")
            logger.error(f"   Time: {process_time:.2f}ms")

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal Server Error",
                    "error": str(e),
                    "path": str(request.url.path),
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(websocket_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from dashboard.logging_config import setup_logging

    setup_logging()
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        ws_ping_interval=settings.HEARTBEAT_INTERVAL,
        ws_ping_timeout=settings.HEARTBEAT_INTERVAL,
    )
