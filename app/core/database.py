# ============================================================================
# Database Connection
# ============================================================================
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Define Base FIRST (very important)
class Base(DeclarativeBase):
    pass

# Convert postgresql:// to postgresql+asyncpg://
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

logger.info(f"Connecting to database: {database_url.split('@')[1] if '@' in database_url else database_url}")

engine_options = {"echo": settings.DEBUG, "pool_pre_ping": True}
if not database_url.startswith("sqlite"):
    engine_options.update(pool_size=5, max_overflow=10)

engine = create_async_engine(database_url, **engine_options)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
