from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from harvest.config import settings


def prepare_engine_args(raw_url: str) -> tuple[str, dict, dict]:
    """Return ``(url, connect_args, pool_kwargs)`` for ``create_async_engine``.

    asyncpg rejects ``sslmode`` as a URL query parameter, so it is stripped and
    translated into ``connect_args={"ssl": True}``.  SQLite URLs (used by the
    test-suite and local development) get no pool sizing, since the aiosqlite
    dialect picks its own pool class.
    """
    parsed = urlparse(raw_url)

    if parsed.scheme.startswith("sqlite"):
        return raw_url, {}, {}

    params = parse_qs(parsed.query, keep_blank_values=True)
    sslmode = params.pop("sslmode", [None])[0]
    clean_url = urlunparse(
        parsed._replace(query=urlencode({k: v[0] for k, v in params.items()}))
    )

    connect_args: dict = {}
    if sslmode in ("require", "verify-ca", "verify-full"):
        connect_args["ssl"] = True

    return clean_url, connect_args, {"pool_size": 10, "max_overflow": 20}


_DB_URL, _CONNECT_ARGS, _POOL_KWARGS = prepare_engine_args(settings.DATABASE_URL)

engine = create_async_engine(
    _DB_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args=_CONNECT_ARGS,
    **_POOL_KWARGS,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
