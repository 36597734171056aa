"""
Service per le impostazioni dell'attività
Progetto: Couture Billing (Gestionale Sartoria)

Le impostazioni salvate (documento "business" della collezione "settings")
vengono fuse sopra i valori di configurazione: un documento parziale o
assente non lascia mai il conto senza beneficiario.
"""

import logging
from typing import Any, Optional

from app.core.config import BillingDefaults
from app.core.exceptions import AppException
from app.schemas.bill import BankDetails, PayeeDetails
from app.schemas.settings import BusinessSettingsUpdate
from app.services.document_store import PersistenceStore

# Logger per questo modulo
logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
BUSINESS_SETTINGS_KEY = "business"

# Nomi accettati nel documento salvato (storici in camelCase)
_PAYEE_ID_KEYS = ("payee_id", "upi_id", "upiId")
_PAYEE_NAME_KEYS = ("payee_name", "business_name", "businessName")
_BANK_KEYS = {
    "account_name": ("account_name", "accountName"),
    "account_number": ("account_number", "accountNumber"),
    "ifsc": ("ifsc",),
    "bank_name": ("bank_name", "bankName"),
}


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class BusinessSettingsService:
    """Lettura e aggiornamento dei dati di pagamento dell'attività."""

    def __init__(self, defaults: Optional[BillingDefaults] = None) -> None:
        self.defaults = defaults or BillingDefaults()

    def default_payee(self) -> PayeeDetails:
        return PayeeDetails(
            payee_id=self.defaults.payee_upi_id,
            payee_name=self.defaults.business_name,
            bank_details=BankDetails(
                account_name=self.defaults.bank_account_name or None,
                account_number=self.defaults.bank_account_number or None,
                ifsc=self.defaults.bank_ifsc or None,
                bank_name=self.defaults.bank_name or None,
            ),
        )

    async def _load_document(self, store: PersistenceStore) -> Optional[dict[str, Any]]:
        documents = await store.query(
            SETTINGS_COLLECTION,
            lambda doc: doc.get("key") == BUSINESS_SETTINGS_KEY,
        )
        return documents[0] if documents else None

    async def get_payment_payee_details(self, store: PersistenceStore) -> PayeeDetails:
        """
        Beneficiario UPI e coordinate bancarie.

        Qualsiasi errore di lettura viene loggato e si usano i valori di default.
        """
        defaults = self.default_payee()
        try:
            document = await self._load_document(store)
        except AppException as e:
            logger.warning("Impostazioni di pagamento non leggibili, uso i default: %s", e.detail)
            return defaults

        if not document:
            return defaults

        raw_bank = document.get("bank_details") or document.get("bankDetails") or {}
        if not isinstance(raw_bank, dict):
            raw_bank = {}
        bank = {
            field: _first(raw_bank, keys) or getattr(defaults.bank_details, field)
            for field, keys in _BANK_KEYS.items()
        }
        return PayeeDetails(
            payee_id=_first(document, _PAYEE_ID_KEYS) or defaults.payee_id,
            payee_name=_first(document, _PAYEE_NAME_KEYS) or defaults.payee_name,
            bank_details=BankDetails(**bank),
        )

    async def update_payment_settings(
        self,
        store: PersistenceStore,
        data: BusinessSettingsUpdate,
    ) -> PayeeDetails:
        """Salva UPI ID, nome e coordinate bancarie (solo i campi forniti)."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "bank_details" in changes:
            changes["bank_details"] = {
                key: value for key, value in changes["bank_details"].items() if value
            }

        document = await self._load_document(store)
        if document is None:
            await store.create(SETTINGS_COLLECTION, {"key": BUSINESS_SETTINGS_KEY, **changes})
        else:
            if "bank_details" in changes and isinstance(document.get("bank_details"), dict):
                changes["bank_details"] = {**document["bank_details"], **changes["bank_details"]}
            await store.update(SETTINGS_COLLECTION, document["id"], changes)

        logger.info("Impostazioni di pagamento aggiornate: %s", sorted(changes))
        return await self.get_payment_payee_details(store)
