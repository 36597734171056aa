"""
Modello SequenceCounter
Progetto: Couture Billing (Gestionale Sartoria)
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin


class SequenceCounter(Base, TimestampMixin):
    """
    Contatore progressivo con nome.

    `value` è l'ultimo numero assegnato: il prossimo sarà value + 1.
    """
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(64), primary_key=True, doc="Nome della sequenza (es. bills)"
    )
    value: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, doc="Ultimo valore assegnato"
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.value}>"
