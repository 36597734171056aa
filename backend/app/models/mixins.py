"""
Mixin SQLAlchemy per modelli
Progetto: Couture Billing (Gestionale Sartoria)

Colonne comuni a documenti e contatori: chiave UUID e timestamp.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy.sql import func


class TimestampMixin:
    """
    Aggiunge created_at / updated_at.

    updated_at viene riallineato dal listener `touch_updated_at` a ogni flush,
    quindi vale anche per le scritture fatte su SQLite in sviluppo.
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Creazione del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Ultima modifica del record",
    )


class UUIDMixin:
    """Chiave primaria UUID generata lato applicazione."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def touch_updated_at(session: Session, flush_context, instances) -> None:
    """Aggiorna updated_at sui record nuovi e su quelli modificati."""
    now = datetime.datetime.now(datetime.timezone.utc)

    for obj in session.new:
        if isinstance(obj, TimestampMixin):
            obj.updated_at = now

    for obj in session.dirty:
        if isinstance(obj, TimestampMixin) and session.is_modified(
            obj, include_collections=False
        ):
            obj.updated_at = now
