import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from omega.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.DB_ECHO_LOG,
    future=True
)

# expire_on_commit=False: les objets restent lisibles après commit
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)

logger.info("Moteur et Session Factory SQLAlchemy Async configurés.")

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dépendance FastAPI fournissant une session de base de données asynchrone."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Pas de commit ici: les transactions sont gérées par les repositories.
        except Exception as e:
            logger.error(f"Erreur durant la session DB, rollback: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
            logger.debug("Session DB fermée.")

def get_session_factory() -> sessionmaker:
    """Fournit la factory de sessions (utilisée pour les transactions courtes et indépendantes)."""
    return AsyncSessionLocal

async def create_tables(bind: AsyncEngine = engine):
    """Crée toutes les tables définies via SQLModel."""
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
