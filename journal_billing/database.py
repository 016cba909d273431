from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from journal_billing.config import Settings, get_settings

POSTGRES_SCHEMES = ("postgres", "postgresql", "postgresql+psycopg2")


def convert_database_url(url: str) -> str:
    """Point Postgres URLs at asyncpg; asyncpg rejects `sslmode`, so it is dropped."""
    parsed = urlparse(url)
    if parsed.scheme not in POSTGRES_SCHEMES:
        return url
    query_params = parse_qs(parsed.query)
    query_params.pop("sslmode", None)
    new_parsed = parsed._replace(
        scheme="postgresql+asyncpg",
        query=urlencode(query_params, doseq=True),
    )
    return urlunparse(new_parsed)


def engine_options(raw_url: str) -> Dict[str, Any]:
    if raw_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        # Neon only accepts TLS connections
        "connect_args": {"ssl": True} if "neon" in raw_url else {},
    }


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        convert_database_url(settings.database_url),
        echo=False,
        **engine_options(settings.database_url),
    )


engine = build_engine(get_settings())

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    import journal_billing.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
