"""
FastAPI app entrypoint.

Drop sniper: watches targets, fires acquisitions at drop time, tracks resale transfers.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from dropsniper.api.routes import patterns, sniper, targets, transfers  # noqa: E402
from dropsniper.config import settings  # noqa: E402
from dropsniper.core.logging_config import setup_logging  # noqa: E402
from dropsniper.runtime import SniperRuntime, build_runtime  # noqa: E402

logger = logging.getLogger(__name__)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for a deployed dashboard
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())


def create_app(runtime: SniperRuntime | None = None, start_scheduler: bool | None = None) -> FastAPI:
    """
    Build the app. With `runtime` given (tests), it is used as-is and not closed on shutdown.
    `start_scheduler` defaults to SCHEDULER_AUTOSTART.
    """
    owns_runtime = runtime is None
    autostart = settings.scheduler_autostart if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        if getattr(app.state, "runtime", None) is None:
            app.state.runtime = build_runtime(settings)
        rt: SniperRuntime = app.state.runtime
        if autostart:
            rt.scheduler.start()
        logger.info("Drop sniper ready (scheduler %s)", "running" if rt.scheduler.running else "stopped")
        yield
        if owns_runtime:
            rt.close()
        else:
            rt.scheduler.stop()

    app = FastAPI(title="Drop Sniper", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(sniper.router, prefix="/sniper", tags=["sniper"])
    app.include_router(targets.router, prefix="/targets", tags=["targets"])
    app.include_router(transfers.router, prefix="/transfers", tags=["transfers"])
    app.include_router(patterns.router, prefix="/patterns", tags=["patterns"])

    @app.get("/health")
    def health():
        rt = app.state.runtime
        return {
            "status": "ok",
            "scheduler_running": bool(rt and rt.scheduler.running),
        }

    return app


app = create_app()
