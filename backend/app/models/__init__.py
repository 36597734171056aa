"""
Modelli Database SQLAlchemy
Progetto: Couture Billing (Gestionale Sartoria)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- StoredDocument: Archivio documenti (conti, ordini, impostazioni, catalogo)
- SequenceCounter: Contatori progressivi (numerazione conti)
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


# Import modelli implementati
from app.models.document import StoredDocument
from app.models.sequence_counter import SequenceCounter

__all__ = [
    "Base",
    "StoredDocument",
    "SequenceCounter",
]
