"""
Costruzione del conto riconciliato
Progetto: Couture Billing (Gestionale Sartoria)

Ogni modifica dell'operatore ripercorre l'intera pipeline:
normalizzazione righe → totali → registro pagamenti → saldo/stato
→ importo richiesto → artefatto di pagamento.
Il risultato è un BillAggregate congelato; non esistono aggiornamenti
parziali dei campi derivati.
"""

import logging
from datetime import date, timedelta
from typing import Any, Optional

from app.core.config import BillingDefaults
from app.core.exceptions import BillValidationError, ValidationErrorKind
from app.core.money import ZERO, strip_empty, to_amount
from app.schemas.bill import (
    BillAggregate,
    BillInputs,
    LineItem,
    LineItemInput,
    ProductInput,
    RequestedAmountMode,
)
from app.services.bill_status import derive_balance, derive_status
from app.services.line_item_normalizer import LineItemNormalizer, NormalizedItems
from app.services.payment_artifact_service import PaymentArtifactGenerator
from app.services.payment_ledger import PaymentLedger
from app.services.totals_calculator import calculate_bill_totals, clamp_tax_rate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class BillAggregateBuilder:
    """
    Assembla un BillAggregate a partire da BillInputs.

    Senza generatore di artefatti il builder non produce mai un QR nuovo:
    conserva quello esistente se è ancora valido per i valori correnti,
    altrimenti lo scarta.
    """

    def __init__(
        self,
        defaults: Optional[BillingDefaults] = None,
        artifact_generator: Optional[PaymentArtifactGenerator] = None,
    ) -> None:
        self.defaults = defaults or BillingDefaults()
        self.normalizer = LineItemNormalizer(self.defaults)
        self.artifact_generator = artifact_generator

    # ------------------------------------------------------------
    # Validazione
    # ------------------------------------------------------------
    def validate(self, inputs: BillInputs, normalized: NormalizedItems) -> None:
        """
        Controlli prima del salvataggio, nell'ordine:
        1. nome e telefono cliente (MISSING_FIELD)
        2. almeno una riga valida (NO_BILLABLE_CONTENT)
        3. nessuna riga con descrizione, quantità o tariffa non valide (INVALID_LINE_ITEM)

        Raises:
            BillValidationError: alla prima regola violata
        """
        missing = [
            name
            for name in ("customer_name", "customer_phone")
            if not (getattr(inputs, name) or "").strip()
        ]
        if missing:
            raise BillValidationError(
                ValidationErrorKind.MISSING_FIELD,
                "Nome e telefono del cliente sono obbligatori",
                extra={"fields": missing},
            )

        if not normalized.billable:
            raise BillValidationError(
                ValidationErrorKind.NO_BILLABLE_CONTENT,
                "Il conto deve contenere almeno una riga valida",
            )

        if normalized.invalid:
            raise BillValidationError(
                ValidationErrorKind.INVALID_LINE_ITEM,
                "Ogni riga deve avere descrizione, quantità e tariffa maggiori di zero",
                extra={"items": [problem.as_dict() for problem in normalized.invalid]},
            )

    # ------------------------------------------------------------
    # Costruzione
    # ------------------------------------------------------------
    def build(self, inputs: BillInputs, validate: bool = True) -> BillAggregate:
        """
        Ricalcola il conto.

        Args:
            inputs: dati modificabili del conto
            validate: False per le anteprime durante la compilazione

        Returns:
            BillAggregate: conto congelato e coerente

        Raises:
            BillValidationError: dati del conto non validi (solo con validate=True)
                o pagamento misto incoerente (sempre)
        """
        normalized = self.normalizer.normalize_inputs(inputs.items, inputs.products)
        if validate:
            self.validate(inputs, normalized)

        totals = calculate_bill_totals(
            normalized.billable,
            inputs.breakdown,
            inputs.tax_rate_percent,
            inputs.discount,
            inputs.discount_type,
            percentage_base=self.defaults.discount_percentage_base,
        )

        ledger = PaymentLedger(inputs.payment_records)
        manual_paid = None if inputs.manual_paid_amount is None else to_amount(inputs.manual_paid_amount)
        if ledger.is_empty():
            paid_amount = manual_paid if manual_paid is not None else ZERO
            cash_received = online_received = ZERO
        else:
            ledger_totals = ledger.aggregate()
            paid_amount = ledger_totals.paid_amount
            cash_received = ledger_totals.cash_received
            online_received = ledger_totals.online_received
            if manual_paid is not None and manual_paid != paid_amount:
                logger.warning(
                    "Conto %s: pagato inserito a mano (%s) diverso dal registro (%s), vale il registro",
                    inputs.bill_id or inputs.internal_id,
                    manual_paid,
                    paid_amount,
                )
            manual_paid = None

        balance = derive_balance(totals.total_amount, paid_amount)
        status = derive_status(totals.total_amount, paid_amount)

        mode = inputs.requested_amount_mode
        if mode == RequestedAmountMode.PINNED and inputs.requested_payment_amount is not None:
            requested = to_amount(inputs.requested_payment_amount)
        else:
            mode = RequestedAmountMode.AUTO
            requested = balance

        artifact = inputs.payment_artifact
        if self.artifact_generator is not None:
            artifact = self.artifact_generator.ensure(
                artifact, inputs.payee, requested, inputs.bill_id, inputs.order_context
            )
        else:
            key = PaymentArtifactGenerator.key_for(inputs.payee, requested, inputs.bill_id)
            if not PaymentArtifactGenerator.is_current(artifact, key):
                artifact = None

        bill_date = inputs.bill_date or date.today()
        due_date = inputs.due_date or bill_date + timedelta(days=self.defaults.bill_due_days)

        return BillAggregate(
            internal_id=inputs.internal_id,
            bill_id=inputs.bill_id,
            customer_id=inputs.customer_id,
            customer_name=_clean(inputs.customer_name),
            customer_phone=_clean(inputs.customer_phone),
            customer_email=_clean(inputs.customer_email),
            customer_address=_clean(inputs.customer_address),
            order_id=inputs.order_id,
            order_context=inputs.order_context,
            item_source=normalized.source,
            line_items=list(normalized.display),
            legacy_items=list(normalized.legacy),
            breakdown=inputs.breakdown,
            tax_rate_percent=clamp_tax_rate(inputs.tax_rate_percent),
            discount=to_amount(inputs.discount),
            discount_type=inputs.discount_type,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            paid_amount=paid_amount,
            cash_received=cash_received,
            online_received=online_received,
            balance=balance,
            status=status,
            payment_records=ledger.records,
            manual_paid_amount=manual_paid,
            requested_amount_mode=mode,
            requested_payment_amount=requested,
            payee=inputs.payee,
            payment_artifact=artifact,
            bill_date=bill_date,
            due_date=due_date,
            notes=inputs.notes,
            share_token=inputs.share_token,
        )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


# ------------------------------------------------------------
# Conversioni
# ------------------------------------------------------------
def _line_item_input(item: LineItem) -> LineItemInput:
    return LineItemInput(
        id=item.id,
        kind=item.kind,
        source_ref=item.source_ref,
        description=item.description,
        quantity=item.quantity,
        unit_rate=item.unit_rate,
        unit_cost=item.unit_cost,
    )


def inputs_from_aggregate(aggregate: BillAggregate) -> BillInputs:
    """
    Riporta un conto calcolato ai suoi dati modificabili.

    Ricostruire da questi input produce lo stesso conto.
    """
    if aggregate.item_source == "grouped":
        products = [
            ProductInput(
                id=parent.id,
                name=parent.description,
                descriptions=[_line_item_input(child) for child in parent.sub_items],
            )
            for parent in aggregate.line_items
        ]
        items = [_line_item_input(item) for item in aggregate.legacy_items]
    else:
        products = []
        items = [_line_item_input(item) for item in aggregate.line_items]

    return BillInputs(
        internal_id=aggregate.internal_id,
        bill_id=aggregate.bill_id,
        customer_id=aggregate.customer_id,
        customer_name=aggregate.customer_name,
        customer_phone=aggregate.customer_phone,
        customer_email=aggregate.customer_email,
        customer_address=aggregate.customer_address,
        order_id=aggregate.order_id,
        order_context=aggregate.order_context,
        items=items,
        products=products,
        breakdown=aggregate.breakdown,
        tax_rate_percent=aggregate.tax_rate_percent,
        discount=aggregate.discount,
        discount_type=aggregate.discount_type,
        payment_records=list(aggregate.payment_records),
        manual_paid_amount=aggregate.manual_paid_amount,
        requested_amount_mode=aggregate.requested_amount_mode,
        requested_payment_amount=aggregate.requested_payment_amount,
        payee=aggregate.payee,
        payment_artifact=aggregate.payment_artifact,
        bill_date=aggregate.bill_date,
        due_date=aggregate.due_date,
        notes=aggregate.notes,
        share_token=aggregate.share_token,
    )


def aggregate_to_record(aggregate: BillAggregate) -> dict[str, Any]:
    """
    Record da salvare nell'archivio documenti.

    L'id di storage resta fuori dal documento; i None vengono rimossi
    e gli eventuali NaN portati a 0.
    """
    data = aggregate.model_dump(mode="json", exclude_none=True, exclude={"internal_id"})
    return strip_empty(data)


def aggregate_from_record(record: dict[str, Any], internal_id: Optional[str] = None) -> BillAggregate:
    """Ricostruisce un BillAggregate da un documento salvato."""
    data = dict(record)
    data.pop("id", None)
    return BillAggregate.model_validate({**data, "internal_id": internal_id or record.get("id")})
