import os
import time
import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from . import metrics
from .auth_middleware import WorkerAuthMiddleware
from .config import configure_logging, get_config
from .pipeline import (
    conversation_router,
    pipeline_router,
    project_router,
    reconcile_router,
)
from .pipeline.services import build_services, set_services

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    config = get_config()
    configure_logging(config.log_level)
    logger.info(f"Worker starting up ({config.environment})...")
    metrics.set_gauge("start_time", time.time())
    set_services(build_services(config))
    yield
    logger.info("Worker shutting down...")
    set_services(None)


app = FastAPI(title="demo-worker", lifespan=lifespan)
app.add_middleware(WorkerAuthMiddleware)

app.include_router(project_router)
app.include_router(pipeline_router)
app.include_router(reconcile_router)
app.include_router(conversation_router)


@app.get("/health")
def health_check():
    """Verify the worker is running and which integrations are configured."""
    config = get_config()
    return {
        "status": "ok",
        "environment": config.environment,
        "supabase_url_set": bool(config.supabase_url),
        "text_providers": config.configured_text_providers,
        "elevenlabs_api_key_set": bool(config.elevenlabs_api_key),
        "avatar_enabled": config.avatar_enabled,
        "storage_backend": config.storage_backend,
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    return metrics.get_snapshot()


def run():
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("demo_worker.main:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
