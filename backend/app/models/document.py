"""
Modello StoredDocument
Progetto: Couture Billing (Gestionale Sartoria)

Ogni record applicativo (conto, ordine, impostazioni, voce di catalogo,
anagrafica personale) è salvato come documento JSON all'interno di una
collezione logica.
"""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class StoredDocument(Base, UUIDMixin, TimestampMixin):
    """
    Documento JSON appartenente a una collezione.

    L'id del documento è l'id di storage usato dal resto dell'applicazione;
    il campo `data` non contiene mai la chiave "id".
    """
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_collection", "collection"),
    )

    collection: Mapped[str] = mapped_column(
        String(64), nullable=False, doc="Nome collezione (es. bills, orders, settings)"
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, doc="Contenuto del documento"
    )

    def __repr__(self) -> str:
        return f"<StoredDocument {self.collection}/{self.id}>"
