"""FastAPI application for the nearby ingest search API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from nearby_ingest.api.deps import close_resources
from nearby_ingest.api.routes.health import router as health_router
from nearby_ingest.api.routes.search import router as search_router
from nearby_ingest.config.settings import get_settings
from nearby_ingest.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    yield
    await close_resources()


app = FastAPI(title="Nearby Ingest API", version="0.1.0", lifespan=lifespan)

app.include_router(health_router)
app.include_router(search_router)
