"""
Utility per importi monetari
Progetto: Couture Billing (Gestionale Sartoria)

Conversione difensiva di valori numerici in Decimal e pulizia dei record
prima della persistenza. Ogni calcolatore passa i propri input da qui:
NaN, infiniti, None e stringhe non numeriche diventano 0.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Converte un valore qualsiasi in Decimal finito.

    Args:
        value: int, float, Decimal, stringa (accetta la virgola decimale) o None

    Returns:
        Decimal: il valore convertito, oppure 0 se non rappresentabile
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ZERO
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace(",", ".")
        if not cleaned:
            return ZERO
        try:
            parsed = Decimal(cleaned)
        except InvalidOperation:
            return ZERO
        return parsed if parsed.is_finite() else ZERO
    return ZERO


def quantize_money(value: Decimal) -> Decimal:
    """Arrotonda un importo a 2 decimali (ROUND_HALF_UP)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative(value: Any) -> Decimal:
    """Converte in Decimal e porta i negativi a 0, senza arrotondare."""
    return max(ZERO, to_decimal(value))


def to_amount(value: Any) -> Decimal:
    """
    Converte in importo monetario non negativo arrotondato al centesimo.

    Gli importi negativi non sono rappresentabili: vengono portati a 0.
    """
    return quantize_money(non_negative(value))


def strip_empty(value: Any) -> Any:
    """
    Prepara un valore per l'archivio documenti.

    - rimuove ricorsivamente le chiavi con valore None (anche nelle liste)
    - converte NaN/infiniti float o Decimal in 0

    Args:
        value: dict, list o scalare (tipicamente l'output di model_dump)

    Returns:
        Una copia ripulita del valore
    """
    if isinstance(value, dict):
        return {
            key: strip_empty(item)
            for key, item in value.items()
            if item is not None
        }
    if isinstance(value, (list, tuple)):
        return [strip_empty(item) for item in value if item is not None]
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return 0
    if isinstance(value, Decimal) and not value.is_finite():
        return ZERO
    return value
