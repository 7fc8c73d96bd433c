from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from telecare.core.config import settings

def build_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    url = url or settings.DATABASE_URL
    connect_args = {}
    if url.startswith("postgresql+asyncpg"):
        # asyncpg connect timeout; refused/timed out connects surface as connectivity errors
        connect_args["timeout"] = settings.DB_CONNECT_TIMEOUT_SECONDS
    options = dict(echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)
    if not url.startswith("sqlite"):
        options["pool_timeout"] = settings.DB_POOL_TIMEOUT_SECONDS
    options.update(kwargs)
    return create_async_engine(url, **options)

def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

async def create_tables(engine: AsyncEngine) -> None:
    # Table classes register on SQLModel.metadata at import
    import telecare.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
