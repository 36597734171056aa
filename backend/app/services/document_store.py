"""
Archivio documenti
Progetto: Couture Billing (Gestionale Sartoria)

Interfaccia minima verso la persistenza usata dai servizi del conto,
e la sua implementazione su SQLAlchemy (tabella `documents`).
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PersistenceError
from app.models import StoredDocument

# Logger per questo modulo
logger = logging.getLogger(__name__)

Predicate = Callable[[dict[str, Any]], bool]


class PersistenceStore(ABC):
    """
    Archivio di documenti raggruppati per collezione.

    I documenti restituiti contengono sempre la chiave "id" (id di storage).
    Scritture concorrenti sullo stesso documento: vince l'ultima.
    """

    @abstractmethod
    async def create(self, collection: str, record: dict[str, Any]) -> str:
        """Salva un nuovo documento e ne restituisce l'id."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: dict[str, Any]) -> None:
        """Aggiorna i campi indicati (merge superficiale); un valore None rimuove il campo."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Documento per id, None se assente."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
    ) -> list[dict[str, Any]]:
        """Documenti della collezione che soddisfano il predicato."""


def _payload(record: dict[str, Any]) -> dict[str, Any]:
    data = jsonable_encoder(record)
    data.pop("id", None)
    return data


def _as_dict(document: StoredDocument) -> dict[str, Any]:
    return {**(document.data or {}), "id": str(document.id)}


def _parse_id(doc_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(doc_id))
    except ValueError:
        return None


class DocumentStore(PersistenceStore):
    """
    Implementazione SQLAlchemy async.

    Ogni scrittura fa commit subito; gli errori del database diventano
    PersistenceError (ritentabile) dopo il rollback della sessione.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, collection: str, record: dict[str, Any]) -> str:
        document = StoredDocument(id=uuid.uuid4(), collection=collection, data=_payload(record))
        try:
            self.db.add(document)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore salvataggio documento in %s: %s", collection, e)
            raise PersistenceError(f"Salvataggio in '{collection}' non riuscito") from e
        logger.debug("Creato documento %s/%s", collection, document.id)
        return str(document.id)

    async def update(self, collection: str, doc_id: str, partial: dict[str, Any]) -> None:
        document = await self._load(collection, doc_id)
        if document is None:
            raise NotFoundError(f"Documento {collection}/{doc_id} non trovato")
        # Nuovo dict: la colonna JSON non traccia le modifiche in place
        merged = {**(document.data or {}), **_payload(partial)}
        document.data = {key: value for key, value in merged.items() if value is not None}
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore aggiornamento documento %s/%s: %s", collection, doc_id, e)
            raise PersistenceError(f"Aggiornamento di '{collection}/{doc_id}' non riuscito") from e

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        document = await self._load(collection, doc_id)
        return _as_dict(document) if document is not None else None

    async def query(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
    ) -> list[dict[str, Any]]:
        stmt = (
            select(StoredDocument)
            .where(StoredDocument.collection == collection)
            .order_by(StoredDocument.created_at)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore lettura collezione %s: %s", collection, e)
            raise PersistenceError(f"Lettura di '{collection}' non riuscita") from e
        documents = [_as_dict(document) for document in result.scalars().all()]
        if predicate is None:
            return documents
        return [document for document in documents if predicate(document)]

    async def _load(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        uid = _parse_id(doc_id)
        if uid is None:
            return None
        try:
            document = await self.db.get(StoredDocument, uid)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore lettura documento %s/%s: %s", collection, doc_id, e)
            raise PersistenceError(f"Lettura di '{collection}/{doc_id}' non riuscita") from e
        if document is None or document.collection != collection:
            return None
        return document
