"""Database engine configuration and initialization."""

from pathlib import Path

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from datasifter.config import Settings
from datasifter.logging_config import redact_url

logger = structlog.get_logger()


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create async SQLAlchemy engine based on configuration.

    Both backends get a bounded queue pool; `db_pool_size + db_max_overflow`
    is the most connections that can ever be borrowed at once.

    Args:
        settings: Application settings with database URL

    Returns:
        Configured async engine

    Raises:
        ValueError: If database URL is invalid or unsupported
    """
    db_url = settings.database_url
    logger.info(
        "Creating database engine",
        database_type="sqlite" if settings.is_sqlite else "postgresql",
        database_url=db_url,
    )

    if settings.is_sqlite:
        if not db_url.startswith("sqlite+aiosqlite://"):
            db_url = db_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

        db_path_str = db_url.split("///", 1)[-1] if "///" in db_url else None
        if db_path_str:
            db_dir = Path(db_path_str).parent
            if not db_dir.exists():
                logger.info("Creating database directory", path=str(db_dir))
                db_dir.mkdir(parents=True, exist_ok=True)

        connect_args = {"check_same_thread": False}

    elif settings.is_postgresql:
        if not db_url.startswith("postgresql+asyncpg://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

        connect_args = {}

    else:
        raise ValueError(f"Unsupported database URL: {db_url}")

    engine = create_async_engine(
        db_url,
        echo=False,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.is_postgresql,
        connect_args=connect_args,
    )
    logger.debug(
        "Database engine created",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )

    return engine


async def check_connection(engine: AsyncEngine) -> bool:
    """
    Check if database connection is healthy.

    Args:
        engine: SQLAlchemy async engine

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.debug("Database connection check successful")
        return True
    except Exception as e:
        logger.error("Database connection check failed", error=str(e))
        return False


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    Dispose of engine and close all connections.

    Args:
        engine: SQLAlchemy async engine
    """
    logger.info("Disposing database engine")
    await engine.dispose()
    logger.debug("Database engine disposed")
