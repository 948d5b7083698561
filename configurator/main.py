import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configurator.core.config import (
    CATALOG_BACKEND,
    CATALOG_BASE_URL,
    CATALOG_RETRIES,
    CATALOG_TIMEOUT_SECONDS,
    CORS_ORIGINS,
    ENV,
    ORDER_SERVICE_BASE_URL,
)
from configurator.core.database import Base, engine
from configurator.core.logging_setup import configure_logging
from configurator.middleware.observability import ObservabilityMiddleware
import configurator.models  # garante que os models são importados antes do create_all

from configurator.routers.configuration import router as configuration_router
from configurator.services.catalog_backend import build_catalog_backend
from configurator.services.catalog_cache import CatalogCache
from configurator.services.order_lines import HttpOrderLineClient
from configurator.services.session_registry import InMemorySessionRegistry

configure_logging()

logger = logging.getLogger(__name__)


def _startup_tasks() -> None:
    logger.info("startup env=%s catalog_backend=%s", ENV, CATALOG_BACKEND)
    if CATALOG_BACKEND == "sql":
        Base.metadata.create_all(bind=engine)


def _build_services(application: FastAPI) -> None:
    backend = build_catalog_backend(
        CATALOG_BACKEND,
        base_url=CATALOG_BASE_URL,
        timeout=CATALOG_TIMEOUT_SECONDS,
        retries=CATALOG_RETRIES,
    )
    application.state.catalog_cache = CatalogCache(backend)
    application.state.session_registry = InMemorySessionRegistry()
    application.state.order_line_client = HttpOrderLineClient(
        ORDER_SERVICE_BASE_URL,
        timeout=CATALOG_TIMEOUT_SECONDS,
        retries=CATALOG_RETRIES,
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    _startup_tasks()
    _build_services(application)
    yield


app = FastAPI(
    title="Product Configurator API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

app.include_router(configuration_router)


@app.get("/")
def root():
    return {"status": "ok"}
