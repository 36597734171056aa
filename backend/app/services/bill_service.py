"""
Service Layer per i Conti
Progetto: Couture Billing (Gestionale Sartoria)

Coordina builder, registro pagamenti, artefatti di pagamento e archivio:
- ricalcolo e anteprima del conto
- salvataggio con numerazione progressiva e QR aggiornato
- pagamenti (aggiunta / rimozione) e importo richiesto (fissa / rilascia)
- conversione ordine → bozza di conto
- condivisione pubblica tramite token
"""

import logging
import re
import secrets
import string
from decimal import Decimal
from typing import Any, Optional

from app.core.config import BillingDefaults
from app.core.exceptions import (
    AppException,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from app.core.money import ZERO, to_amount, to_decimal
from app.schemas.bill import (
    BillAggregate,
    BillInputs,
    BillSummary,
    BillSummaryRequest,
    LineItemInput,
    LineItemKind,
    OrderContext,
    PaymentRecord,
    RequestedAmountMode,
    RequestedAmountUpdate,
    SourceRef,
    SourceRefKind,
)
from app.services.bill_builder import (
    BillAggregateBuilder,
    aggregate_from_record,
    aggregate_to_record,
    inputs_from_aggregate,
)
from app.services.bill_status import derive_balance, derive_status
from app.services.document_store import PersistenceStore
from app.services.line_item_normalizer import LineItemNormalizer
from app.services.payment_artifact_service import (
    PaymentArtifactGenerator,
    QrCodeEncoder,
    ScannableCodeEncoder,
)
from app.services.payment_ledger import PaymentLedger
from app.services.sequence_service import SequenceAllocator, timestamp_bill_identifier
from app.services.settings_service import BusinessSettingsService
from app.services.totals_calculator import calculate_bill_totals

# Logger per questo modulo
logger = logging.getLogger(__name__)

BILLS_COLLECTION = "bills"
ORDERS_COLLECTION = "orders"
INVENTORY_COLLECTION = "inventory"
STAFF_COLLECTION = "staff"

SHARE_TOKEN_ALPHABET = string.ascii_lowercase + string.digits

# Ricarico applicato al costo del materiale senza prezzo di vendita
DEFAULT_MATERIAL_MARKUP = Decimal("1.25")


# ------------------------------------------------------------
# Token di condivisione
# ------------------------------------------------------------
def generate_share_token(length: int = 40) -> str:
    """Token casuale di lettere minuscole e cifre."""
    return "".join(secrets.choice(SHARE_TOKEN_ALPHABET) for _ in range(length))


def is_valid_share_token(token: Optional[str], length: int = 40) -> bool:
    """Verifica il formato del token (solo [a-z0-9], lunghezza esatta)."""
    if not token:
        return False
    return re.fullmatch(rf"[a-z0-9]{{{length}}}", token) is not None


# ------------------------------------------------------------
# Importo richiesto
# ------------------------------------------------------------
def pin_requested_amount(inputs: BillInputs, amount: Any) -> BillInputs:
    """Fissa l'importo richiesto: non seguirà più il saldo."""
    value = to_amount(amount)
    if value <= ZERO:
        raise BusinessValidationError(
            "L'importo richiesto deve essere maggiore di zero",
            error_code="INVALID_REQUESTED_AMOUNT",
            extra={"fields": ["amount"]},
        )
    return inputs.model_copy(
        update={
            "requested_amount_mode": RequestedAmountMode.PINNED,
            "requested_payment_amount": value,
        }
    )


def reset_requested_amount(inputs: BillInputs) -> BillInputs:
    """Torna alla modalità automatica: l'importo richiesto segue il saldo."""
    return inputs.model_copy(
        update={
            "requested_amount_mode": RequestedAmountMode.AUTO,
            "requested_payment_amount": None,
        }
    )


class BillService:
    """
    Service per la gestione dei conti.

    I metodi asincroni ricevono l'archivio (e il contatore numeri conto)
    come parametri, come le sessioni nei service del resto dell'applicazione.
    """

    def __init__(
        self,
        defaults: Optional[BillingDefaults] = None,
        encoder: Optional[ScannableCodeEncoder] = None,
        settings_service: Optional[BusinessSettingsService] = None,
    ) -> None:
        self.defaults = defaults or BillingDefaults()
        self.artifact_generator = PaymentArtifactGenerator(encoder or QrCodeEncoder(), self.defaults)
        self.builder = BillAggregateBuilder(self.defaults)
        self.saving_builder = BillAggregateBuilder(self.defaults, self.artifact_generator)
        self.settings_service = settings_service or BusinessSettingsService(self.defaults)

    # ------------------------------------------------------------
    # Calcolo
    # ------------------------------------------------------------
    def recompute_bill(self, inputs: BillInputs) -> BillAggregate:
        """Ricalcola e valida il conto."""
        return self.builder.build(inputs, validate=True)

    def preview(self, inputs: BillInputs) -> BillAggregate:
        """Ricalcola senza validare (compilazione in corso)."""
        return self.builder.build(inputs, validate=False)

    def summarize(self, request: BillSummaryRequest) -> BillSummary:
        """Solo totali, saldo e stato: nessun registro né artefatto."""
        normalized = LineItemNormalizer(self.defaults).normalize_inputs(request.items, request.products)
        totals = calculate_bill_totals(
            normalized.billable,
            request.breakdown,
            request.tax_rate_percent,
            request.discount,
            request.discount_type,
            percentage_base=self.defaults.discount_percentage_base,
        )
        paid = to_amount(request.paid_amount)
        return BillSummary(
            **totals.model_dump(),
            paid_amount=paid,
            balance=derive_balance(totals.total_amount, paid),
            status=derive_status(totals.total_amount, paid),
        )

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------
    async def find_bill(self, store: PersistenceStore, bill_ref: str) -> Optional[BillAggregate]:
        """
        Cerca un conto per id di storage, poi per numero conto
        (senza distinzione tra maiuscole e minuscole).
        """
        record = await store.get(BILLS_COLLECTION, bill_ref)
        if record is None:
            wanted = bill_ref.strip().lower()
            matches = await store.query(
                BILLS_COLLECTION,
                lambda doc: str(doc.get("bill_id") or "").lower() == wanted,
            )
            record = matches[0] if matches else None
        if record is None:
            return None
        return aggregate_from_record(record)

    async def get_bill(self, store: PersistenceStore, bill_ref: str) -> BillAggregate:
        """
        Raises:
            NotFoundError: se il conto non esiste
        """
        aggregate = await self.find_bill(store, bill_ref)
        if aggregate is None:
            raise NotFoundError(f"Conto {bill_ref} non trovato")
        return aggregate

    # ------------------------------------------------------------
    # Salvataggio
    # ------------------------------------------------------------
    async def save_bill(
        self,
        store: PersistenceStore,
        allocator: Optional[SequenceAllocator],
        inputs: BillInputs,
    ) -> BillAggregate:
        """
        Valida, numera, genera link/QR e salva il conto.

        Steps:
        1. Beneficiario dalle impostazioni se non indicato
        2. Validazione completa (prima di consumare un numero conto)
        3. Numero conto dal contatore se mancante
        4. Ricalcolo con artefatto di pagamento aggiornato
        5. Creazione o aggiornamento del documento
        6. Ordine di provenienza segnato come fatturato (solo alla creazione)

        Raises:
            BillValidationError: dati non validi
            PersistenceError: archivio non disponibile; `bill` contiene il
                record calcolato, da ripresentare al nuovo tentativo
        """
        if inputs.payee is None:
            payee = await self.settings_service.get_payment_payee_details(store)
            inputs = inputs.model_copy(update={"payee": payee})

        self.builder.build(inputs, validate=True)

        if not inputs.bill_id:
            if allocator is not None:
                bill_id = await allocator.next_bill_identifier()
            else:
                bill_id = timestamp_bill_identifier(self.defaults.fallback_bill_id_prefix)
            inputs = inputs.model_copy(update={"bill_id": bill_id})

        aggregate = self.saving_builder.build(inputs, validate=True)
        record = aggregate_to_record(aggregate)
        is_new = not aggregate.internal_id

        try:
            if is_new:
                internal_id = await store.create(BILLS_COLLECTION, record)
                aggregate = aggregate.model_copy(update={"internal_id": internal_id})
            else:
                await store.update(BILLS_COLLECTION, aggregate.internal_id, self._full_update(record))
        except PersistenceError as e:
            logger.error("Salvataggio conto %s non riuscito: %s", aggregate.bill_id, e.detail)
            raise PersistenceError(e.detail, bill=record) from e

        logger.info(
            "Conto %s %s: totale %s, pagato %s, stato %s",
            aggregate.bill_id,
            "creato" if is_new else "aggiornato",
            aggregate.total_amount,
            aggregate.paid_amount,
            aggregate.status.value,
        )

        if is_new and aggregate.order_id:
            await self._mark_order_billed(store, aggregate)
        return aggregate

    async def update_bill(
        self,
        store: PersistenceStore,
        allocator: Optional[SequenceAllocator],
        bill_ref: str,
        inputs: BillInputs,
    ) -> BillAggregate:
        """
        Sostituisce i dati modificabili di un conto esistente.

        Registro pagamenti e modalità dell'importo richiesto non indicati
        nella richiesta restano quelli salvati: si modificano solo con
        set_requested_amount, add_payment e remove_payment.
        """
        existing = await self.get_bill(store, bill_ref)
        provided = inputs.model_fields_set
        kept: dict[str, Any] = {}
        if "payment_records" not in provided:
            kept["payment_records"] = list(existing.payment_records)
        if "requested_amount_mode" not in provided:
            kept["requested_amount_mode"] = existing.requested_amount_mode
            if (
                existing.requested_amount_mode == RequestedAmountMode.PINNED
                and "requested_payment_amount" not in provided
            ):
                kept["requested_payment_amount"] = existing.requested_payment_amount
        inputs = inputs.model_copy(
            update={
                **kept,
                "internal_id": existing.internal_id,
                "bill_id": inputs.bill_id or existing.bill_id,
                "share_token": inputs.share_token or existing.share_token,
                "payment_artifact": inputs.payment_artifact or existing.payment_artifact,
            }
        )
        return await self.save_bill(store, allocator, inputs)

    @staticmethod
    def _full_update(record: dict[str, Any]) -> dict[str, Any]:
        # I campi derivati assenti dal record vanno rimossi dal documento
        cleared = {name: None for name in BillAggregate.model_fields if name != "internal_id"}
        return {**cleared, **record}

    async def _mark_order_billed(self, store: PersistenceStore, aggregate: BillAggregate) -> None:
        try:
            await store.update(
                ORDERS_COLLECTION,
                aggregate.order_id,
                {
                    "billGenerated": True,
                    "billId": aggregate.internal_id,
                    "billNumber": aggregate.bill_id,
                },
            )
        except AppException as e:
            logger.warning(
                "Conto %s salvato ma ordine %s non aggiornato: %s",
                aggregate.bill_id,
                aggregate.order_id,
                e.detail,
            )

    # ------------------------------------------------------------
    # Pagamenti
    # ------------------------------------------------------------
    async def add_payment(
        self,
        store: PersistenceStore,
        bill_ref: str,
        record: PaymentRecord,
    ) -> BillAggregate:
        """
        Registra un pagamento e ricalcola il conto.

        Raises:
            BusinessValidationError: importo non positivo
            BillValidationError: pagamento misto incoerente
        """
        existing = await self.get_bill(store, bill_ref)
        ledger = PaymentLedger(existing.payment_records)
        ledger.add_record(record)
        inputs = inputs_from_aggregate(existing).model_copy(
            update={"payment_records": ledger.records}
        )
        return await self.save_bill(store, None, inputs)

    async def remove_payment(
        self,
        store: PersistenceStore,
        bill_ref: str,
        payment_id: str,
    ) -> BillAggregate:
        """Elimina un pagamento registrato per errore."""
        existing = await self.get_bill(store, bill_ref)
        ledger = PaymentLedger(existing.payment_records)
        ledger.remove_record(payment_id)
        inputs = inputs_from_aggregate(existing).model_copy(
            update={"payment_records": ledger.records}
        )
        return await self.save_bill(store, None, inputs)

    async def set_requested_amount(
        self,
        store: PersistenceStore,
        bill_ref: str,
        data: RequestedAmountUpdate,
    ) -> BillAggregate:
        """Fissa (pinned) o rilascia (auto) l'importo del link di pagamento."""
        existing = await self.get_bill(store, bill_ref)
        inputs = inputs_from_aggregate(existing)
        if data.mode == RequestedAmountMode.PINNED:
            if data.amount is None:
                raise BusinessValidationError(
                    "Indicare l'importo da richiedere",
                    error_code="INVALID_REQUESTED_AMOUNT",
                    extra={"fields": ["amount"]},
                )
            inputs = pin_requested_amount(inputs, data.amount)
        else:
            inputs = reset_requested_amount(inputs)
        return await self.save_bill(store, None, inputs)

    async def regenerate_artifact(self, store: PersistenceStore, bill_ref: str) -> BillAggregate:
        """
        Rigenera link e QR per l'importo richiesto corrente.

        Raises:
            BusinessValidationError: manca UPI ID, numero conto o importo da richiedere
        """
        existing = await self.get_bill(store, bill_ref)
        key = self.artifact_generator.key_for(
            existing.payee, existing.requested_payment_amount, existing.bill_id
        )
        if key is None:
            raise BusinessValidationError(
                "Impossibile generare il link di pagamento: nessun importo da richiedere o beneficiario mancante",
                error_code="PAYMENT_ARTIFACT_UNAVAILABLE",
            )
        artifact = self.artifact_generator.generate(key, existing.order_context)
        await store.update(
            BILLS_COLLECTION,
            existing.internal_id,
            {"payment_artifact": artifact.model_dump(mode="json", exclude_none=True)},
        )
        logger.info("Artefatto di pagamento rigenerato per il conto %s", existing.bill_id)
        return existing.model_copy(update={"payment_artifact": artifact})

    # ------------------------------------------------------------
    # Ordine → conto
    # ------------------------------------------------------------
    async def create_inputs_from_order(self, store: PersistenceStore, order_id: str) -> BillInputs:
        """
        Prepara la bozza di conto per un ordine.

        - una riga custom_work per voce d'ordine ("<categoria> - <descrizione>",
          tariffa da compilare)
        - una riga stock_material per ogni materiale richiesto, al prezzo di catalogo
        - una riga labor_or_service per ogni addetto assegnato

        Raises:
            NotFoundError: ordine inesistente
            ConflictError: ordine già fatturato
        """
        order = await store.get(ORDERS_COLLECTION, order_id)
        if order is None:
            raise NotFoundError(f"Ordine {order_id} non trovato")
        if order.get("billGenerated"):
            raise ConflictError(
                f"L'ordine {order_id} è già stato fatturato",
                extra={"bill_id": order.get("billId"), "bill_number": order.get("billNumber")},
            )

        order_items = [item for item in order.get("items") or [] if isinstance(item, dict)]
        items: list[LineItemInput] = []

        for index, order_item in enumerate(order_items):
            description = " - ".join(
                part.strip()
                for part in (order_item.get("category") or "", order_item.get("description") or "")
                if part and part.strip()
            )
            items.append(
                LineItemInput(
                    id=f"item-{index}",
                    kind=LineItemKind.CUSTOM_WORK,
                    description=description or None,
                    quantity=to_decimal(order_item.get("quantity")) or Decimal("1"),
                    unit_rate=ZERO,
                )
            )

        if not order_items:
            items.append(
                LineItemInput(
                    id="item-0",
                    kind=LineItemKind.CUSTOM_WORK,
                    description=order.get("itemType") or "Custom Item",
                    quantity=to_decimal(order.get("quantity")) or Decimal("1"),
                    unit_rate=ZERO,
                )
            )

        items.extend(await self._material_items(store, order_items))
        items.extend(await self._staff_items(store, order_items))

        first = order_items[0] if order_items else {}
        order_number = order.get("orderNumber") or order.get("orderId") or order_id
        delivery_date = first.get("deliveryDate") or order.get("deliveryDate")

        notes = f"Order #{order_number}"
        if delivery_date:
            notes += f" - Delivery: {delivery_date}"

        return BillInputs(
            customer_id=order.get("customerId"),
            customer_name=order.get("customerName") or "",
            customer_phone=order.get("customerPhone") or "",
            customer_email=order.get("customerEmail") or None,
            customer_address=order.get("customerAddress") or None,
            order_id=order_id,
            order_context=OrderContext(
                order_name=order.get("orderName") or first.get("category"),
                made_for=first.get("madeFor"),
                order_id=str(order_number),
                delivery_date=delivery_date,
            ),
            items=items,
            tax_rate_percent=self.defaults.default_tax_rate_percent,
            notes=notes,
        )

    async def _material_items(
        self,
        store: PersistenceStore,
        order_items: list[dict[str, Any]],
    ) -> list[LineItemInput]:
        items = []
        for order_item in order_items:
            for material in order_item.get("requiredMaterials") or []:
                material_id = material.get("id")
                if not material_id:
                    continue
                entry = await store.get(INVENTORY_COLLECTION, material_id)
                if entry is None:
                    logger.warning("Materiale %s non trovato in magazzino", material_id)
                    entry = {}
                cost = to_amount(entry.get("costPerUnit"))
                rate = to_amount(entry.get("sellingPrice")) or to_amount(cost * DEFAULT_MATERIAL_MARKUP)
                items.append(
                    LineItemInput(
                        kind=LineItemKind.STOCK_MATERIAL,
                        source_ref=SourceRef(kind=SourceRefKind.INVENTORY, ref_id=material_id),
                        description=entry.get("name") or material.get("name"),
                        quantity=to_decimal(material.get("quantity")) or Decimal("1"),
                        unit_rate=rate,
                        unit_cost=cost,
                    )
                )
        return items

    async def _staff_items(
        self,
        store: PersistenceStore,
        order_items: list[dict[str, Any]],
    ) -> list[LineItemInput]:
        staff_ids: list[str] = []
        for order_item in order_items:
            for staff_id in order_item.get("assignedStaff") or []:
                if staff_id and staff_id not in staff_ids:
                    staff_ids.append(staff_id)

        items = []
        for staff_id in staff_ids:
            member = await store.get(STAFF_COLLECTION, staff_id)
            if member is None:
                logger.warning("Addetto %s non trovato", staff_id)
                continue
            items.append(
                LineItemInput(
                    kind=LineItemKind.LABOR_OR_SERVICE,
                    source_ref=SourceRef(kind=SourceRefKind.STAFF, ref_id=staff_id),
                    description=f"Stitching - {member.get('name') or staff_id}",
                    quantity=Decimal("1"),
                    unit_rate=ZERO,
                )
            )
        return items

    # ------------------------------------------------------------
    # Condivisione
    # ------------------------------------------------------------
    def public_bill_url(self, token: str) -> str:
        return f"{self.defaults.public_base_url.rstrip('/')}/view-bill/{token}"

    async def get_or_create_share_token(self, store: PersistenceStore, bill_ref: str) -> str:
        """Restituisce il token del conto, generandolo al primo utilizzo."""
        existing = await self.get_bill(store, bill_ref)
        if existing.share_token:
            return existing.share_token
        token = generate_share_token(self.defaults.share_token_length)
        await store.update(BILLS_COLLECTION, existing.internal_id, {"share_token": token})
        logger.info("Creato token di condivisione per il conto %s", existing.bill_id)
        return token

    async def get_bill_by_share_token(
        self,
        store: PersistenceStore,
        token: str,
    ) -> Optional[BillAggregate]:
        """Conto associato al token; None se il token non è valido o sconosciuto."""
        if not is_valid_share_token(token, self.defaults.share_token_length):
            return None
        matches = await store.query(BILLS_COLLECTION, lambda doc: doc.get("share_token") == token)
        if not matches:
            return None
        return aggregate_from_record(matches[0])
