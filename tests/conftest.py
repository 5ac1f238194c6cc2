# tests/conftest.py
import sys
from pathlib import Path

# --- Configuración del Path ---
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from decimal import Decimal
from typing import Generator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("METRICS_ENABLED", "false")

from app.main import app
from app.api.deps import get_product_service
from app.db.session import Base, create_sync_engine
from app.core.config import settings
from app.models.product import Brand, Category
from app.schemas.product import ProductCreate, ProductVariantCreate
from app.services.product_service import (
    DetailCache,
    InventoryLedger,
    MemoryCacheBackend,
    ProductAggregateService,
    ProductAggregateStore,
)

sync_engine = create_sync_engine()
TestingSessionLocal = sessionmaker(autoflush=False, bind=sync_engine)


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite solo una vez por sesión de tests."""
    import app.models.product  # noqa: F401
    import app.models.inventory  # noqa: F401

    # un test.db de una corrida anterior puede tener otro schema
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Provee una sesión sync corta para preparar datos de referencia."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def session_factory():
    """Engine por test (NullPool) para no compartir conexiones entre event loops."""
    engine = create_async_engine(settings.ASYNC_DATABASE_URL, poolclass=NullPool)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture(scope="function")
def cache_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture(scope="function")
def store(session_factory) -> ProductAggregateStore:
    return ProductAggregateStore(session_factory)


@pytest.fixture(scope="function")
def ledger(session_factory) -> InventoryLedger:
    return InventoryLedger(session_factory)


@pytest.fixture(scope="function")
def service(store, ledger, cache_backend) -> ProductAggregateService:
    return ProductAggregateService(store, ledger, DetailCache(cache_backend, ttl_seconds=600))


@pytest_asyncio.fixture(scope="function")
async def client(service):
    """AsyncClient enlazado a la app, con el servicio del test inyectado."""
    app.dependency_overrides[get_product_service] = lambda: service
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Datos de referencia ---

@pytest.fixture(scope="function")
def category_id(db_session: Session) -> int:
    category = Category(name="Jackets", slug=f"jackets-{uuid.uuid4().hex[:8]}")
    db_session.add(category)
    db_session.commit()
    return category.id


@pytest.fixture(scope="function")
def brand_id(db_session: Session) -> int:
    brand = Brand(name="Norte Denim", slug=f"norte-{uuid.uuid4().hex[:8]}")
    db_session.add(brand)
    db_session.commit()
    return brand.id


@pytest.fixture(scope="function")
def product_payload(category_id: int, brand_id: int):
    """Factory de ProductCreate con dos variantes por defecto."""

    def _make(**overrides) -> ProductCreate:
        data = {
            "name": f"Denim Jacket {uuid.uuid4().hex[:6]}",
            "description": "Stonewashed denim",
            "category_id": category_id,
            "brand_id": brand_id,
            "base_price": Decimal("80.00"),
            "is_published": True,
            "images": ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"],
            "variants": [
                ProductVariantCreate(sku="DJ-S", color="Blue", size="S", initial_quantity=10),
                ProductVariantCreate(sku="DJ-M", color="Blue", size="M", additional_price=Decimal("5.50"), initial_quantity=4),
            ],
        }
        data.update(overrides)
        return ProductCreate(**data)

    return _make
