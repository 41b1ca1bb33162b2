"""Main FastAPI application for the adherence reminder service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .routers import internal_router, push_router, reminders_router
from .runtime import Runtime, build_runtime

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    runtime: Runtime = app.state.runtime
    logger.info("Starting adherence reminder service")

    await runtime.database.init()
    logger.info("Database initialized")

    if not runtime.push.available:
        logger.warning("VAPID keys not set - push reminders will be recorded as channel_not_configured")
    if not runtime.whatsapp.available:
        logger.warning("WhatsApp API not configured - WhatsApp reminders will be recorded as channel_not_configured")

    runtime.scheduler.start()

    yield

    runtime.scheduler.stop()
    await runtime.database.close()
    logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None, runtime: Optional[Runtime] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if runtime is None:
        runtime = build_runtime(settings or load_settings())

    app = FastAPI(
        title="Adherence Reminders",
        description="Routine and escalating reminders to log vitals, over web push and WhatsApp",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[runtime.settings.app_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(internal_router)
    app.include_router(push_router)
    app.include_router(reminders_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler": runtime.scheduler.running,
            "triggers_enabled": runtime.triggers.enabled,
            "push_configured": runtime.push.available,
            "whatsapp_configured": runtime.whatsapp.available,
        }

    @app.get("/push/vapid-public-key")
    async def vapid_public_key():
        """Public key the service worker subscribes with."""
        return {"public_key": runtime.settings.vapid_public_key}

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.runtime.settings.web_port)
