"""
Stato e saldo del conto
Progetto: Couture Billing (Gestionale Sartoria)
"""

from decimal import Decimal
from typing import Any

from app.core.money import ZERO, non_negative, quantize_money
from app.schemas.bill import BillStatus


def derive_status(total_amount: Any, paid_amount: Any) -> BillStatus:
    """
    Stato di pagamento.

    - unpaid: nulla di pagato (anche per un conto a totale zero)
    - paid: pagato ≥ totale
    - partial: altrimenti

    Il confronto avviene sui valori esatti, senza arrotondare.
    """
    total = non_negative(total_amount)
    paid = non_negative(paid_amount)
    if paid <= ZERO:
        return BillStatus.UNPAID
    if paid >= total:
        return BillStatus.PAID
    return BillStatus.PARTIAL


def derive_balance(total_amount: Any, paid_amount: Any) -> Decimal:
    """Saldo residuo, mai negativo: un pagamento in eccesso porta il saldo a 0."""
    return quantize_money(max(ZERO, non_negative(total_amount) - non_negative(paid_amount)))
