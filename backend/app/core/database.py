"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Couture Billing (Gestionale Sartoria)

Engine, session factory e dependency FastAPI per l'archivio documenti.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict[str, Any]:
    """Opzioni dell'engine: SQLite (sviluppo/test) non supporta il pool dimensionato."""
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    **_engine_options(settings.database_url),
)


# ------------------------------------------------------------
# Session Factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Una sessione per richiesta; in caso di eccezione la transazione
    viene annullata prima della chiusura.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Verifica la connessione al database all'avvio.

    Con `db_create_tables` attivo crea anche le tabelle mancanti
    (documents, sequence_counters).
    """
    from app.models import Base

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if settings.db_create_tables:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Tabelle verificate/create")
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """Chiude il pool di connessioni allo shutdown."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")
