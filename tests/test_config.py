# tests/test_config.py
import pytest
from pydantic import ValidationError

from app.core.config import Settings


@pytest.mark.parametrize(
    ("sync_url", "expected"),
    [
        ("sqlite:///./catalog.db", "sqlite+aiosqlite:///./catalog.db"),
        ("postgresql://u:p@db:5432/catalog", "postgresql+asyncpg://u:p@db:5432/catalog"),
        ("postgres://u:p@db/catalog", "postgresql+asyncpg://u:p@db/catalog"),
        ("postgresql+asyncpg://u:p@db/catalog", "postgresql+asyncpg://u:p@db/catalog"),
    ],
)
def test_async_url_is_derived_from_database_url(sync_url, expected):
    s = Settings(DATABASE_URL=sync_url, ASYNC_DATABASE_URL=None)
    assert s.ASYNC_DATABASE_URL == expected


def test_explicit_async_url_wins():
    s = Settings(DATABASE_URL="sqlite:///./a.db", ASYNC_DATABASE_URL="sqlite+aiosqlite:///./b.db")
    assert s.ASYNC_DATABASE_URL == "sqlite+aiosqlite:///./b.db"


def test_cache_defaults():
    s = Settings(REDIS_URL=None, PRODUCT_DETAIL_CACHE_TTL=600, PRODUCT_DETAIL_CACHE_PREFIX="product:detail:")
    assert s.PRODUCT_DETAIL_CACHE_TTL == 600
    assert s.PRODUCT_DETAIL_CACHE_PREFIX == "product:detail:"


@pytest.mark.parametrize("field", ["PRODUCT_DETAIL_CACHE_TTL", "DB_POOL_TIMEOUT_SECONDS"])
def test_non_positive_values_are_rejected(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


def test_metric_buckets_accept_comma_list():
    s = Settings(METRICS_LATENCY_BUCKETS="0.1, 0.5,bad,2")
    assert s.METRICS_LATENCY_BUCKETS == [0.1, 0.5, 2.0]
