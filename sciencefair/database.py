"""
sciencefair/database.py
Database configuration and startup initialization
"""
import os
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from dotenv import load_dotenv

# Import Base from orm.base to avoid circular imports
from sciencefair.orm.base import Base
import sciencefair.orm  # ensures all models are registered

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./sciencefair.db")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")

if "sqlite" in DATABASE_URL.lower():
    # SQLite: a single writer; give concurrent readers time to wait on locks
    engine = create_async_engine(
        DATABASE_URL,
        echo=False,
        future=True,
        connect_args={
            "timeout": 30.0,   # SQLite busy timeout in seconds
        }
    )
else:
    # PostgreSQL/MySQL: Use standard pool
    engine = create_async_engine(
        DATABASE_URL,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=3600,      # Recycle connections after 1 hour
    )

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db():
    """Dependency for getting async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """
    Initialize database: create all tables that do not exist yet.
    """
    logger.info("Initializing database...")

    try:
        logger.info(f"Database dialect: {engine.url.get_backend_name()}")

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("✓ Database initialization complete")

    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")


async def seed_default_edition(db: AsyncSession):
    """
    Create an active edition for the current year if no edition exists.
    Called during startup after DB initialization.
    """
    from sciencefair.orm.edition import Edition

    try:
        result = await db.execute(select(func.count()).select_from(Edition))
        count = result.scalar()

        if count == 0:
            year = datetime.utcnow().year
            logger.info("No editions found - seeding edition for %d", year)

            edition = Edition(
                name=f"Science Fair {year}",
                year=year,
                is_active=True
            )
            db.add(edition)
            await db.commit()

            logger.info("✓ Seeded default edition (ID: %s)", edition.id)
        else:
            logger.info("✓ Editions already exist (%d) - skipping seed", count)

    except Exception as e:
        logger.error(f"Failed to seed default edition: {str(e)}")
        await db.rollback()
