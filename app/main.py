# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import export_metrics
from app.api.error_handlers import register_exception_handlers
from app.api.routers import products
from app.db.session_async import async_engine
from app.middleware import ObservabilityMiddleware

# --- Models registration (necesario para que Alembic los detecte) ---
import app.models.product        # noqa: F401
import app.models.inventory      # noqa: F401

# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "products", "description": "Catalogo de productos: variantes, imagenes e inventario."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield
    await async_engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "API de catalogo de productos.\n\n"
        "- **Products**: alta, detalle, actualizacion y baja del agregado producto.\n"
        "- **Variants**: reconciliadas en cada actualizacion contra la lista enviada.\n"
        "- **Inventory**: ajustes con control de concurrencia optimista (`expected_token`).\n"
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Ajustar en producción para mayor seguridad
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(products.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
