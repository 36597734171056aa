"""
Schemas Pydantic per il progetto Couture Billing

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione dei conti e delle impostazioni di pagamento.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from app.schemas import BillInputs, BillAggregate, etc.

from app.schemas.bill import (
    BankDetails,
    BillAggregate,
    BillInputs,
    BillStatus,
    BillSummary,
    BillSummaryRequest,
    ChargeBreakdown,
    DiscountType,
    LedgerTotals,
    LineItem,
    LineItemInput,
    LineItemKind,
    OrderContext,
    PayeeDetails,
    PaymentArtifact,
    PaymentMethod,
    PaymentRecord,
    ProductInput,
    RequestedAmountMode,
    RequestedAmountUpdate,
    ShareLinkRead,
    SourceRef,
    SourceRefKind,
    TotalsResult,
)
from app.schemas.settings import BankDetailsUpdate, BusinessSettingsUpdate

__all__ = [
    # Enum
    "BillStatus",
    "DiscountType",
    "LineItemKind",
    "PaymentMethod",
    "RequestedAmountMode",
    "SourceRefKind",
    # Input
    "BillInputs",
    "BillSummaryRequest",
    "ChargeBreakdown",
    "LineItemInput",
    "OrderContext",
    "PaymentRecord",
    "ProductInput",
    "RequestedAmountUpdate",
    "SourceRef",
    # Output
    "BillAggregate",
    "BillSummary",
    "LedgerTotals",
    "LineItem",
    "PaymentArtifact",
    "ShareLinkRead",
    "TotalsResult",
    # Beneficiario / impostazioni
    "BankDetails",
    "BankDetailsUpdate",
    "BusinessSettingsUpdate",
    "PayeeDetails",
]
