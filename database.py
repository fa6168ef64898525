from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
import logging
import os

logger = logging.getLogger(__name__)

# Default to a local SQLite file if not set
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    DATABASE_URL = "sqlite+aiosqlite:///./mods.db"

# Ensure asyncpg driver is used in the connection string
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

# Echo SQL queries (for debugging only - disable in production)
ECHO_SQL = os.getenv("DB_ECHO", "false").lower() == "true"

# Use NullPool for serverless/testing environments (each request gets new connection)
USE_NULL_POOL = os.getenv("DB_USE_NULL_POOL", "false").lower() == "true"


def create_engine_for(url: str) -> AsyncEngine:
    engine_kwargs = {"echo": ECHO_SQL, "future": True}
    if USE_NULL_POOL:
        engine_kwargs["poolclass"] = NullPool
    return create_async_engine(url, **engine_kwargs)


engine = create_engine_for(DATABASE_URL)
async_session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(db_engine: AsyncEngine = engine) -> None:
    # Import table models so they register on SQLModel.metadata
    import models  # noqa: F401

    async with db_engine.begin() as conn:
        # This creates tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("[database] Schema ready")