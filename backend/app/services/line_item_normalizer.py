"""
Normalizzazione delle righe del conto
Progetto: Couture Billing (Gestionale Sartoria)

Un conto può arrivare in due forme:
- FlatItems: elenco piatto di righe (documenti storici)
- GroupedProducts: prodotti con descrizioni (sotto-righe) con quantità e tariffa

La forma viene scelta una sola volta, qui. A valle esiste solo l'elenco
canonico di LineItem fatturabili, più la struttura da mostrare e l'elenco
delle righe non valide da segnalare in validazione.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from app.core.config import BillingDefaults
from app.core.money import ZERO, non_negative, quantize_money, to_amount, to_decimal
from app.schemas.bill import LineItem, LineItemInput, ProductInput

# Logger per questo modulo
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Sorgente delle righe
# ------------------------------------------------------------
@dataclass(frozen=True)
class FlatItems:
    """Righe piatte."""
    items: tuple[LineItemInput, ...] = ()


@dataclass(frozen=True)
class GroupedProducts:
    """Prodotti raggruppati; `legacy_items` resta solo per la visualizzazione."""
    products: tuple[ProductInput, ...] = ()
    legacy_items: tuple[LineItemInput, ...] = ()


ItemSource = Union[FlatItems, GroupedProducts]


def _is_priced(desc: LineItemInput) -> bool:
    # Solo righe che la normalizzazione fattura con importo positivo
    return (
        bool((desc.description or "").strip())
        and to_decimal(desc.quantity) > ZERO
        and to_decimal(desc.unit_rate) > ZERO
    )


def _has_priced_description(products: Iterable[ProductInput]) -> bool:
    return any(_is_priced(desc) for product in products for desc in product.descriptions)


def resolve_item_source(
    items: Optional[Sequence[LineItemInput]],
    products: Optional[Sequence[ProductInput]],
) -> ItemSource:
    """
    Sceglie la sorgente autorevole delle righe.

    I prodotti raggruppati vincono se almeno una descrizione fatturabile ha
    un importo positivo; altrimenti vale l'elenco piatto.
    """
    items = tuple(items or ())
    products = tuple(products or ())
    if products and _has_priced_description(products):
        return GroupedProducts(products=products, legacy_items=items)
    return FlatItems(items=items)


# ------------------------------------------------------------
# Risultato
# ------------------------------------------------------------
@dataclass(frozen=True)
class InvalidLineItem:
    """Riga scartata con i motivi (description, quantity, unit_rate)."""
    id: str
    reasons: tuple[str, ...]
    parent_id: Optional[str] = None

    def as_dict(self) -> dict:
        data = {"id": self.id, "reasons": list(self.reasons)}
        if self.parent_id:
            data["parent_id"] = self.parent_id
        return data


@dataclass(frozen=True)
class NormalizedItems:
    """
    Output del normalizzatore.

    Attributes:
        source: "flat" o "grouped"
        billable: righe che entrano nel calcolo (mai annidate)
        display: righe da mostrare; per i prodotti la riga padre porta
            le sotto-righe e un importo pari alla loro somma
        legacy: righe piatte ignorate nel calcolo quando vincono i prodotti
        invalid: righe da segnalare in validazione
    """
    source: str
    billable: tuple[LineItem, ...] = ()
    display: tuple[LineItem, ...] = ()
    legacy: tuple[LineItem, ...] = ()
    invalid: tuple[InvalidLineItem, ...] = field(default_factory=tuple)

    @property
    def items_total(self) -> Decimal:
        return sum((item.amount for item in self.billable), ZERO)


# ------------------------------------------------------------
# Normalizzatore
# ------------------------------------------------------------
class LineItemNormalizer:
    """
    Converte la sorgente delle righe nell'elenco canonico.

    Regole:
    - descrizione vuota o quantità ≤ 0: riga esclusa dal calcolo e segnalata
    - quantità in (0, minimo): riportata alla quantità di default
    - tariffa ≤ 0: riga inclusa (importo 0) ma segnalata in validazione
    - importo sempre ricalcolato come quantità × tariffa
    """

    def __init__(self, defaults: Optional[BillingDefaults] = None) -> None:
        self.defaults = defaults or BillingDefaults()

    def normalize(self, source: ItemSource) -> NormalizedItems:
        if isinstance(source, GroupedProducts):
            return self._normalize_grouped(source)
        return self._normalize_flat(source)

    def normalize_inputs(
        self,
        items: Optional[Sequence[LineItemInput]],
        products: Optional[Sequence[ProductInput]] = None,
    ) -> NormalizedItems:
        """Scorciatoia: risolve la sorgente e normalizza."""
        return self.normalize(resolve_item_source(items, products))

    def _normalize_flat(self, source: FlatItems) -> NormalizedItems:
        billable: list[LineItem] = []
        invalid: list[InvalidLineItem] = []
        for raw in source.items:
            item, problem = self._normalize_one(raw)
            if item is not None:
                billable.append(item)
            if problem is not None:
                invalid.append(problem)
        return NormalizedItems(
            source="flat",
            billable=tuple(billable),
            display=tuple(billable),
            invalid=tuple(invalid),
        )

    def _normalize_grouped(self, source: GroupedProducts) -> NormalizedItems:
        billable: list[LineItem] = []
        display: list[LineItem] = []
        invalid: list[InvalidLineItem] = []

        for product in source.products:
            children: list[LineItem] = []
            for raw in product.descriptions:
                item, problem = self._normalize_one(raw, parent_id=product.id)
                if item is not None:
                    children.append(item)
                if problem is not None:
                    invalid.append(problem)
            if not children:
                continue
            billable.extend(children)
            parent_amount = sum((child.amount for child in children), ZERO)
            display.append(
                LineItem(
                    id=product.id,
                    kind=children[0].kind,
                    description=(product.name or "").strip(),
                    quantity=Decimal("1"),
                    unit_rate=parent_amount,
                    unit_cost=ZERO,
                    amount=parent_amount,
                    sub_items=children,
                )
            )

        legacy = []
        for raw in source.legacy_items:
            item, _ = self._normalize_one(raw)
            if item is not None:
                legacy.append(item)

        return NormalizedItems(
            source="grouped",
            billable=tuple(billable),
            display=tuple(display),
            legacy=tuple(legacy),
            invalid=tuple(invalid),
        )

    def _normalize_one(
        self,
        raw: LineItemInput,
        parent_id: Optional[str] = None,
    ) -> tuple[Optional[LineItem], Optional[InvalidLineItem]]:
        description = (raw.description or "").strip()
        quantity = to_decimal(raw.quantity)
        unit_rate = to_decimal(raw.unit_rate)

        reasons = []
        if not description:
            reasons.append("description")
        if quantity <= ZERO:
            reasons.append("quantity")
        if unit_rate <= ZERO:
            reasons.append("unit_rate")

        problem = None
        if reasons:
            problem = InvalidLineItem(id=raw.id, reasons=tuple(reasons), parent_id=parent_id)

        if not description or quantity <= ZERO:
            return None, problem

        if quantity < self.defaults.min_line_quantity:
            logger.warning(
                "Quantità %s sotto il minimo %s sulla riga %s: uso %s",
                quantity,
                self.defaults.min_line_quantity,
                raw.id,
                self.defaults.default_line_quantity,
            )
            quantity = self.defaults.default_line_quantity

        rate = non_negative(unit_rate)
        item = LineItem(
            id=raw.id,
            kind=raw.kind,
            source_ref=raw.source_ref,
            description=description,
            quantity=quantity,
            unit_rate=rate,
            unit_cost=to_amount(raw.unit_cost),
            amount=quantize_money(quantity * rate),
        )
        return item, problem
