from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.models.base import Base

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

# Ticket listings read tag membership and tickets in several statements;
# one snapshot keeps them consistent with each other.
SnapshotSessionLocal = async_sessionmaker(
    engine.execution_options(isolation_level=settings.TICKET_READ_ISOLATION),
    expire_on_commit=False,
)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_snapshot_session() -> AsyncSession:
    async with SnapshotSessionLocal() as session:
        async with session.begin():
            yield session
