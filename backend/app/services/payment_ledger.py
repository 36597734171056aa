"""
Registro pagamenti del conto
Progetto: Couture Billing (Gestionale Sartoria)

Il registro è l'unica fonte dell'importo pagato non appena contiene
almeno un pagamento. Gli aggregati sono somme lineari sui record.
"""

import logging
from typing import Iterable, Optional

from app.core.exceptions import (
    BillValidationError,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
    ValidationErrorKind,
)
from app.core.money import ZERO, quantize_money, to_decimal
from app.schemas.bill import LedgerTotals, PaymentMethod, PaymentRecord

# Logger per questo modulo
logger = logging.getLogger(__name__)


def validate_payment_record(record: PaymentRecord) -> None:
    """
    Verifica un singolo pagamento.

    Raises:
        BusinessValidationError: importo non positivo
        BillValidationError: pagamento misto con contanti + online
            diverso dall'importo
    """
    amount = to_decimal(record.amount)
    if amount <= ZERO:
        raise BusinessValidationError(
            "L'importo del pagamento deve essere maggiore di zero",
            error_code="INVALID_PAYMENT_AMOUNT",
            extra={"payment_id": record.id, "fields": ["amount"]},
        )

    if record.method != PaymentMethod.SPLIT:
        return

    cash = to_decimal(record.cash_portion)
    online = to_decimal(record.online_portion)
    if cash < ZERO or online < ZERO or cash + online != amount:
        raise BillValidationError(
            ValidationErrorKind.INCONSISTENT_SPLIT_PAYMENT,
            f"Pagamento misto incoerente: contanti {cash} + online {online} "
            f"diverso dall'importo {amount}",
            extra={
                "payment_id": record.id,
                "amount": str(amount),
                "cash_portion": str(cash),
                "online_portion": str(online),
            },
        )


class PaymentLedger:
    """
    Elenco ordinato dei pagamenti di un conto.

    I record vengono validati all'inserimento, non corretti: un pagamento
    misto con parti che non tornano viene rifiutato.
    """

    def __init__(self, records: Optional[Iterable[PaymentRecord]] = None) -> None:
        self._records: list[PaymentRecord] = []
        for record in records or ():
            self.add_record(record)

    @property
    def records(self) -> list[PaymentRecord]:
        return list(self._records)

    def is_empty(self) -> bool:
        return not self._records

    def add_record(self, record: PaymentRecord) -> PaymentRecord:
        """Aggiunge un pagamento dopo averlo validato."""
        validate_payment_record(record)
        if any(existing.id == record.id for existing in self._records):
            raise ConflictError(
                f"Pagamento {record.id} già registrato",
                extra={"payment_id": record.id},
            )
        self._records.append(record)
        return record

    def remove_record(self, record_id: str) -> PaymentRecord:
        """
        Rimuove un pagamento per id.

        Raises:
            NotFoundError: se il pagamento non è nel registro
        """
        for index, record in enumerate(self._records):
            if record.id == record_id:
                logger.info("Rimosso pagamento %s (importo %s)", record_id, record.amount)
                return self._records.pop(index)
        raise NotFoundError(f"Pagamento {record_id} non trovato")

    def aggregate(self) -> LedgerTotals:
        """Totale pagato, di cui contanti e online."""
        paid = cash = online = ZERO
        for record in self._records:
            amount = to_decimal(record.amount)
            paid += amount
            if record.method == PaymentMethod.CASH:
                cash += amount
            elif record.method == PaymentMethod.ONLINE:
                online += amount
            else:
                cash += to_decimal(record.cash_portion)
                online += to_decimal(record.online_portion)
        return LedgerTotals(
            paid_amount=quantize_money(paid),
            cash_received=quantize_money(cash),
            online_received=quantize_money(online),
        )
