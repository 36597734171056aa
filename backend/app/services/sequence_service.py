"""
Numerazione progressiva dei conti
Progetto: Couture Billing (Gestionale Sartoria)

Formato: <prefisso><progressivo con zero-padding>, es. Bill001, Bill042.
Se il contatore non è raggiungibile il numero viene derivato dal
timestamp (BILL + ultime 6 cifre dei millisecondi epoch): il conto
si salva comunque.
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BillingDefaults
from app.models import SequenceCounter

# Logger per questo modulo
logger = logging.getLogger(__name__)

BILL_SEQUENCE = "bills"


def timestamp_bill_identifier(prefix: str = "BILL", clock: Callable[[], float] = time.time) -> str:
    """Numero conto di ripiego: prefisso + ultime 6 cifre dei ms epoch."""
    millis = int(clock() * 1000)
    return f"{prefix}{str(millis)[-6:]}"


class SequenceAllocator:
    """
    Assegna il prossimo numero conto da un contatore con lock di riga.

    SELECT ... FOR UPDATE serializza le richieste concorrenti sulla stessa
    sequenza; la prima richiesta crea il contatore.
    """

    def __init__(
        self,
        db: AsyncSession,
        defaults: Optional[BillingDefaults] = None,
        sequence_name: str = BILL_SEQUENCE,
    ) -> None:
        self.db = db
        self.defaults = defaults or BillingDefaults()
        self.sequence_name = sequence_name

    def format_identifier(self, number: int) -> str:
        return f"{self.defaults.bill_id_prefix}{number:0{self.defaults.bill_id_padding}d}"

    async def next_bill_identifier(self) -> str:
        """
        Restituisce il prossimo numero conto.

        Non solleva mai: in caso di errore del database logga e ripiega
        sul numero da timestamp.
        """
        try:
            number = await self._increment()
        except SQLAlchemyError as e:
            await self.db.rollback()
            fallback = timestamp_bill_identifier(self.defaults.fallback_bill_id_prefix)
            logger.warning(
                "Contatore '%s' non disponibile (%s): uso numero %s",
                self.sequence_name,
                e,
                fallback,
            )
            return fallback
        return self.format_identifier(number)

    async def _increment(self) -> int:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == self.sequence_name)
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        counter = result.scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=self.sequence_name, value=1)
            self.db.add(counter)
        else:
            counter.value += 1

        await self.db.commit()
        return counter.value
