"""
Schemas Pydantic per i Conti
Progetto: Couture Billing (Gestionale Sartoria)

Contiene:
- Enums: LineItemKind, PaymentMethod, BillStatus, DiscountType, RequestedAmountMode
- Schemas di input (tolleranti): LineItemInput, ProductInput, ChargeBreakdown, BillInputs
- Schemas di output (congelati): LineItem, TotalsResult, LedgerTotals, BillAggregate
- Schemas di supporto API: BillSummaryRequest, RequestedAmountUpdate, ShareLinkRead

Gli input numerici sono tolleranti: None, NaN, infiniti e stringhe non
numeriche diventano 0 (vedi app.core.money.to_decimal). Gli output sono
sempre valori Decimal finiti e non negativi.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)

from app.core.money import ZERO, to_amount, to_decimal


# Decimal tollerante: qualsiasi valore non numerico diventa 0
LenientDecimal = Annotated[Decimal, BeforeValidator(to_decimal)]


def _new_id() -> str:
    return str(uuid.uuid4())


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class LineItemKind(str, Enum):
    """Natura della riga del conto."""
    STOCK_MATERIAL = "stock_material"
    LABOR_OR_SERVICE = "labor_or_service"
    CUSTOM_WORK = "custom_work"


class SourceRefKind(str, Enum):
    """Catalogo di provenienza di una riga."""
    INVENTORY = "inventory"
    STAFF = "staff"


class PaymentMethod(str, Enum):
    """Metodi di pagamento supportati."""
    CASH = "cash"
    ONLINE = "online"
    SPLIT = "split"


class BillStatus(str, Enum):
    """Stato di pagamento derivato del conto."""
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"


class DiscountType(str, Enum):
    """Interpretazione del valore di sconto."""
    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class RequestedAmountMode(str, Enum):
    """
    Modalità dell'importo richiesto nel link di pagamento.

    - auto: segue il saldo a ogni ricalcolo
    - pinned: fissato dall'operatore, resta invariato finché non viene resettato
    """
    AUTO = "auto"
    PINNED = "pinned"


# -------------------------------------------------------------------
# Righe del conto
# -------------------------------------------------------------------

class SourceRef(BaseModel):
    """Riferimento a una voce di catalogo (magazzino o personale)."""

    kind: SourceRefKind = Field(..., description="Catalogo di provenienza")
    ref_id: str = Field(
        ...,
        min_length=1,
        description="Id della voce di catalogo",
        validation_alias=AliasChoices("ref_id", "refId", "id"),
        serialization_alias="refId",
    )

    model_config = ConfigDict(from_attributes=True, frozen=True)


class LineItemInput(BaseModel):
    """
    Riga del conto così come arriva dal frontend o dall'archivio.

    Accetta anche i nomi storici (`qty`, `rate`) dei documenti salvati.
    L'importo eventualmente presente nell'input viene ignorato: è sempre
    ricalcolato come quantità × tariffa.
    """

    id: str = Field(default_factory=_new_id, description="Id univoco nel conto")
    kind: LineItemKind = Field(
        default=LineItemKind.LABOR_OR_SERVICE,
        description="stock_material | labor_or_service | custom_work",
    )
    source_ref: Optional[SourceRef] = Field(
        default=None,
        validation_alias=AliasChoices("source_ref", "sourceRef"),
    )
    description: Optional[str] = Field(default=None, max_length=500)
    quantity: LenientDecimal = Field(
        default=Decimal("1"),
        validation_alias=AliasChoices("quantity", "qty"),
    )
    unit_rate: LenientDecimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("unit_rate", "unitRate", "rate"),
    )
    unit_cost: LenientDecimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("unit_cost", "unitCost", "cost"),
    )

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ProductInput(BaseModel):
    """Prodotto raggruppato: un nome e le sue descrizioni (sotto-righe)."""

    id: str = Field(default_factory=_new_id)
    name: Optional[str] = Field(default=None, max_length=200)
    descriptions: list[LineItemInput] = Field(
        default_factory=list,
        validation_alias=AliasChoices("descriptions", "sub_items", "subItems"),
    )

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class LineItem(BaseModel):
    """Riga canonica del conto dopo la normalizzazione."""

    id: str
    kind: LineItemKind
    source_ref: Optional[SourceRef] = Field(default=None, serialization_alias="sourceRef")
    description: str
    quantity: Decimal
    unit_rate: Decimal = Field(..., serialization_alias="unitRate")
    unit_cost: Decimal = Field(default=ZERO, serialization_alias="unitCost")
    amount: Decimal = Field(..., description="quantity × unit_rate, arrotondato al centesimo")
    sub_items: list["LineItem"] = Field(
        default_factory=list,
        description="Sotto-righe: il loro importo confluisce in quello della riga padre",
        serialization_alias="subItems",
    )

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ChargeBreakdown(BaseModel):
    """
    Maggiorazioni fisse del conto, sommate all'imponibile.

    Nomi storici accettati in input: fabric, stitching, otherCharges.
    """

    material: Decimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("material", "fabric"),
    )
    labor: Decimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("labor", "stitching"),
    )
    accessories: Decimal = Field(default=ZERO)
    customization: Decimal = Field(default=ZERO)
    other: Decimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("other", "otherCharges", "other_charges"),
    )

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("material", "labor", "accessories", "customization", "other", mode="before")
    @classmethod
    def sanitize_charge(cls, v) -> Decimal:
        """Valori negativi o non numerici diventano 0."""
        return to_amount(v)

    def total(self) -> Decimal:
        """Somma delle maggiorazioni."""
        return self.material + self.labor + self.accessories + self.customization + self.other


# -------------------------------------------------------------------
# Pagamenti
# -------------------------------------------------------------------

class PaymentRecord(BaseModel):
    """
    Singolo pagamento registrato sul conto.

    Le regole (importo positivo, coerenza contanti + online per il misto)
    sono applicate dal PaymentLedger, non qui: un record storico incoerente
    deve poter essere letto per essere segnalato.
    """

    id: str = Field(default_factory=_new_id)
    amount: LenientDecimal = Field(..., description="Importo incassato")
    method: PaymentMethod = Field(
        default=PaymentMethod.CASH,
        validation_alias=AliasChoices("method", "type"),
    )
    cash_portion: Optional[LenientDecimal] = Field(
        default=None,
        validation_alias=AliasChoices("cash_portion", "cashPortion", "cashAmount"),
        serialization_alias="cashPortion",
    )
    online_portion: Optional[LenientDecimal] = Field(
        default=None,
        validation_alias=AliasChoices("online_portion", "onlinePortion", "onlineAmount"),
        serialization_alias="onlinePortion",
    )
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("recorded_at", "recordedAt", "paymentDate"),
        serialization_alias="recordedAt",
    )
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(from_attributes=True, frozen=True)


# -------------------------------------------------------------------
# Beneficiario e link di pagamento
# -------------------------------------------------------------------

class BankDetails(BaseModel):
    """Coordinate bancarie mostrate sul conto."""

    account_name: Optional[str] = Field(default=None, serialization_alias="accountName")
    account_number: Optional[str] = Field(default=None, serialization_alias="accountNumber")
    ifsc: Optional[str] = None
    bank_name: Optional[str] = Field(default=None, serialization_alias="bankName")

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PayeeDetails(BaseModel):
    """Beneficiario dei pagamenti online (UPI)."""

    payee_id: str = Field(..., description="UPI ID", serialization_alias="payeeId")
    payee_name: str = Field(..., serialization_alias="payeeName")
    bank_details: BankDetails = Field(
        default_factory=BankDetails,
        serialization_alias="bankDetails",
    )

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrderContext(BaseModel):
    """Dati dell'ordine riportati nella nota del pagamento UPI."""

    order_name: Optional[str] = Field(default=None, serialization_alias="orderName")
    made_for: Optional[str] = Field(default=None, serialization_alias="madeFor")
    order_id: Optional[str] = Field(default=None, serialization_alias="orderId")
    delivery_date: Optional[str] = Field(default=None, serialization_alias="deliveryDate")

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PaymentArtifact(BaseModel):
    """
    Link UPI e QR generati per un importo preciso.

    payee_id, payee_name, amount e bill_id formano la chiave di generazione:
    quando uno di questi cambia l'artefatto va rigenerato.
    """

    deep_link: str = Field(..., serialization_alias="deepLink")
    scannable_code_image: Optional[str] = Field(
        default=None,
        description="PNG in formato data URL; assente se la generazione è fallita",
        serialization_alias="scannableCodeImage",
    )
    payee_id: str = Field(..., serialization_alias="payeeId")
    payee_name: str = Field(..., serialization_alias="payeeName")
    amount: Decimal
    bill_id: str = Field(..., serialization_alias="billId")

    model_config = ConfigDict(from_attributes=True, frozen=True)


# -------------------------------------------------------------------
# Input completo del conto
# -------------------------------------------------------------------

class BillInputs(BaseModel):
    """
    Tutto ciò che l'operatore può modificare su un conto.

    I campi derivati (subtotale, totale, saldo, stato...) non compaiono:
    vengono sempre ricalcolati.
    """

    internal_id: Optional[str] = Field(default=None, description="Id di storage")
    bill_id: Optional[str] = Field(default=None, description="Numero conto (es. Bill042)")
    customer_id: Optional[str] = None
    customer_name: Optional[str] = Field(default=None, max_length=200)
    customer_phone: Optional[str] = Field(default=None, max_length=30)
    customer_email: Optional[str] = Field(default=None, max_length=200)
    customer_address: Optional[str] = Field(default=None, max_length=500)
    order_id: Optional[str] = None
    order_context: OrderContext = Field(default_factory=OrderContext)
    items: list[LineItemInput] = Field(default_factory=list)
    products: list[ProductInput] = Field(default_factory=list)
    breakdown: ChargeBreakdown = Field(default_factory=ChargeBreakdown)
    tax_rate_percent: LenientDecimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("tax_rate_percent", "taxRate", "gstRate"),
    )
    discount: LenientDecimal = Field(default=ZERO)
    discount_type: DiscountType = Field(
        default=DiscountType.AMOUNT,
        validation_alias=AliasChoices("discount_type", "discountType"),
    )
    payment_records: list[PaymentRecord] = Field(default_factory=list)
    manual_paid_amount: Optional[LenientDecimal] = Field(
        default=None,
        description="Importo pagato inserito a mano; usato solo senza pagamenti registrati",
        validation_alias=AliasChoices("manual_paid_amount", "paidAmount"),
    )
    requested_amount_mode: RequestedAmountMode = RequestedAmountMode.AUTO
    requested_payment_amount: Optional[LenientDecimal] = None
    payee: Optional[PayeeDetails] = None
    payment_artifact: Optional[PaymentArtifact] = None
    bill_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    share_token: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


# -------------------------------------------------------------------
# Output
# -------------------------------------------------------------------

class TotalsResult(BaseModel):
    """Risultato del calcolo totali."""

    subtotal: Decimal
    tax_amount: Decimal = Field(..., serialization_alias="taxAmount")
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    discount_amount: Decimal = Field(..., serialization_alias="discountAmount")

    model_config = ConfigDict(frozen=True)


class LedgerTotals(BaseModel):
    """Aggregati del registro pagamenti."""

    paid_amount: Decimal = Field(..., serialization_alias="paidAmount")
    cash_received: Decimal = Field(..., serialization_alias="cashReceived")
    online_received: Decimal = Field(..., serialization_alias="onlineReceived")

    model_config = ConfigDict(frozen=True)


class BillAggregate(BaseModel):
    """
    Conto completo e riconciliato.

    Prodotto solo dal BillAggregateBuilder: i campi derivati rispettano
    sempre subtotale = Σ righe + Σ maggiorazioni, totale ≥ 0,
    saldo = max(0, totale − pagato) e lo stato coerente con il pagato.
    """

    internal_id: Optional[str] = Field(default=None, serialization_alias="internalId")
    bill_id: Optional[str] = Field(default=None, serialization_alias="billId")
    customer_id: Optional[str] = Field(default=None, serialization_alias="customerId")
    customer_name: Optional[str] = Field(default=None, serialization_alias="customerName")
    customer_phone: Optional[str] = Field(default=None, serialization_alias="customerPhone")
    customer_email: Optional[str] = Field(default=None, serialization_alias="customerEmail")
    customer_address: Optional[str] = Field(default=None, serialization_alias="customerAddress")
    order_id: Optional[str] = Field(default=None, serialization_alias="orderId")
    order_context: OrderContext = Field(default_factory=OrderContext, serialization_alias="orderContext")

    item_source: Literal["flat", "grouped"] = Field(default="flat", serialization_alias="itemSource")
    line_items: list[LineItem] = Field(default_factory=list, serialization_alias="lineItems")
    legacy_items: list[LineItem] = Field(
        default_factory=list,
        description="Righe piatte conservate per la visualizzazione, escluse dal calcolo",
        serialization_alias="legacyItems",
    )
    breakdown: ChargeBreakdown = Field(default_factory=ChargeBreakdown)
    tax_rate_percent: Decimal = Field(default=ZERO, serialization_alias="taxRatePercent")
    discount: Decimal = ZERO
    discount_type: DiscountType = Field(default=DiscountType.AMOUNT, serialization_alias="discountType")

    subtotal: Decimal = ZERO
    tax_amount: Decimal = Field(default=ZERO, serialization_alias="taxAmount")
    discount_amount: Decimal = Field(default=ZERO, serialization_alias="discountAmount")
    total_amount: Decimal = Field(default=ZERO, serialization_alias="totalAmount")
    paid_amount: Decimal = Field(default=ZERO, serialization_alias="paidAmount")
    cash_received: Decimal = Field(default=ZERO, serialization_alias="cashReceived")
    online_received: Decimal = Field(default=ZERO, serialization_alias="onlineReceived")
    balance: Decimal = ZERO
    status: BillStatus = BillStatus.UNPAID

    payment_records: list[PaymentRecord] = Field(default_factory=list, serialization_alias="paymentRecords")
    manual_paid_amount: Optional[Decimal] = Field(default=None, serialization_alias="manualPaidAmount")
    requested_amount_mode: RequestedAmountMode = Field(
        default=RequestedAmountMode.AUTO,
        serialization_alias="requestedAmountMode",
    )
    requested_payment_amount: Decimal = Field(default=ZERO, serialization_alias="requestedPaymentAmount")
    payee: Optional[PayeeDetails] = None
    payment_artifact: Optional[PaymentArtifact] = Field(default=None, serialization_alias="paymentArtifact")

    bill_date: Optional[date] = Field(default=None, serialization_alias="billDate")
    due_date: Optional[date] = Field(default=None, serialization_alias="dueDate")
    notes: Optional[str] = None
    share_token: Optional[str] = Field(default=None, serialization_alias="shareToken")

    model_config = ConfigDict(from_attributes=True, frozen=True)


# -------------------------------------------------------------------
# Schemas API
# -------------------------------------------------------------------

class BillSummaryRequest(BaseModel):
    """Richiesta di ricalcolo parziale (solo totali, pagato e saldo)."""

    items: list[LineItemInput] = Field(default_factory=list)
    products: list[ProductInput] = Field(default_factory=list)
    breakdown: ChargeBreakdown = Field(default_factory=ChargeBreakdown)
    tax_rate_percent: LenientDecimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("tax_rate_percent", "taxRate", "gstRate"),
    )
    discount: LenientDecimal = ZERO
    discount_type: DiscountType = Field(
        default=DiscountType.AMOUNT,
        validation_alias=AliasChoices("discount_type", "discountType"),
    )
    paid_amount: LenientDecimal = Field(
        default=ZERO,
        validation_alias=AliasChoices("paid_amount", "paidAmount"),
    )


class BillSummary(TotalsResult):
    """Totali con pagato, saldo e stato."""

    paid_amount: Decimal = Field(..., serialization_alias="paidAmount")
    balance: Decimal
    status: BillStatus


class RequestedAmountUpdate(BaseModel):
    """Fissa (pinned) o rilascia (auto) l'importo richiesto."""

    mode: RequestedAmountMode
    amount: Optional[LenientDecimal] = Field(
        default=None,
        description="Obbligatorio con mode=pinned",
    )


class ShareLinkRead(BaseModel):
    """Token e URL della vista pubblica del conto."""

    token: str
    url: str
