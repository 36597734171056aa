"""
Calcolo totali del conto
Progetto: Couture Billing (Gestionale Sartoria)

Funzioni pure: stessi input, stesso risultato, nessun effetto collaterale.
Ogni input numerico passa da app.core.money, quindi NaN, None e stringhe
non numeriche valgono 0 e nessun output è mai negativo o NaN.
"""

from decimal import Decimal
from typing import Any, Iterable, Literal, Mapping, Union

from app.core.money import ZERO, quantize_money, to_amount, to_decimal
from app.schemas.bill import ChargeBreakdown, DiscountType, LineItem, TotalsResult

HUNDRED = Decimal("100")

BreakdownLike = Union[ChargeBreakdown, Mapping[str, Any], None]


def _item_amount(item: Union[LineItem, Mapping[str, Any]]) -> Decimal:
    if isinstance(item, Mapping):
        return to_amount(item.get("amount"))
    return to_amount(item.amount)


def breakdown_total(breakdown: BreakdownLike) -> Decimal:
    """Somma delle maggiorazioni; accetta anche dizionari con i nomi storici."""
    if breakdown is None:
        return ZERO
    if not isinstance(breakdown, ChargeBreakdown):
        breakdown = ChargeBreakdown.model_validate(dict(breakdown))
    return breakdown.total()


def clamp_tax_rate(rate: Any) -> Decimal:
    """Aliquota limitata all'intervallo 0-100."""
    return min(HUNDRED, max(ZERO, to_decimal(rate)))


def calculate_subtotal(
    items: Iterable[Union[LineItem, Mapping[str, Any]]],
    breakdown: BreakdownLike = None,
) -> Decimal:
    """Imponibile = Σ importi righe + Σ maggiorazioni."""
    items_total = sum((_item_amount(item) for item in items or ()), ZERO)
    return quantize_money(items_total + breakdown_total(breakdown))


def calculate_discount_amount(
    subtotal: Decimal,
    tax_amount: Decimal,
    discount: Any,
    discount_type: Union[DiscountType, str, None],
    percentage_base: Literal["subtotal", "gross"] = "subtotal",
) -> Decimal:
    """
    Importo dello sconto.

    - amount: il valore inserito
    - percentage: base × valore / 100, con base = imponibile oppure
      imponibile + GST se percentage_base è "gross"
    """
    value = max(ZERO, to_decimal(discount))
    if DiscountType(discount_type or DiscountType.AMOUNT) == DiscountType.PERCENTAGE:
        base = subtotal + tax_amount if percentage_base == "gross" else subtotal
        return quantize_money(base * value / HUNDRED)
    return quantize_money(value)


def calculate_bill_totals(
    items: Iterable[Union[LineItem, Mapping[str, Any]]],
    breakdown: BreakdownLike = None,
    tax_rate_percent: Any = ZERO,
    discount: Any = ZERO,
    discount_type: Union[DiscountType, str, None] = DiscountType.AMOUNT,
    percentage_base: Literal["subtotal", "gross"] = "subtotal",
) -> TotalsResult:
    """
    Calcola imponibile, GST, sconto e totale.

    Args:
        items: righe fatturabili (già normalizzate) o dizionari con "amount"
        breakdown: maggiorazioni fisse
        tax_rate_percent: aliquota GST 0-100
        discount: valore dello sconto
        discount_type: amount | percentage
        percentage_base: base dello sconto percentuale

    Returns:
        TotalsResult: totale = max(0, imponibile + GST − sconto)
    """
    subtotal = calculate_subtotal(items, breakdown)
    tax_amount = quantize_money(subtotal * clamp_tax_rate(tax_rate_percent) / HUNDRED)
    discount_amount = calculate_discount_amount(
        subtotal, tax_amount, discount, discount_type, percentage_base
    )
    total_amount = max(ZERO, subtotal + tax_amount - discount_amount)

    return TotalsResult(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=quantize_money(total_amount),
        discount_amount=discount_amount,
    )
