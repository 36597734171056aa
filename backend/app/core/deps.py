"""
Dependency Injection per i servizi del conto
Progetto: Couture Billing (Gestionale Sartoria)

Archivio documenti e contatore sono legati alla sessione della richiesta;
il BillService è unico per processo e riceve la configurazione in modo esplicito.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BillingDefaults, get_settings
from app.core.database import get_db
from app.services.bill_service import BillService
from app.services.document_store import DocumentStore, PersistenceStore
from app.services.payment_artifact_service import QrCodeEncoder
from app.services.sequence_service import SequenceAllocator
from app.services.settings_service import BusinessSettingsService


@lru_cache()
def get_billing_defaults() -> BillingDefaults:
    """Parametri di fatturazione derivati dalle impostazioni."""
    return BillingDefaults.from_settings(get_settings())


async def get_store(db: AsyncSession = Depends(get_db)) -> PersistenceStore:
    """Archivio documenti sulla sessione della richiesta."""
    return DocumentStore(db)


async def get_sequence_allocator(
    db: AsyncSession = Depends(get_db),
    defaults: BillingDefaults = Depends(get_billing_defaults),
) -> SequenceAllocator:
    """Contatore numeri conto sulla sessione della richiesta."""
    return SequenceAllocator(db, defaults)


@lru_cache()
def get_bill_service() -> BillService:
    """Istanza unica del BillService con encoder QR configurato."""
    settings = get_settings()
    defaults = get_billing_defaults()
    return BillService(
        defaults=defaults,
        encoder=QrCodeEncoder(box_size=settings.qr_box_size, border=settings.qr_border),
    )


@lru_cache()
def get_settings_service() -> BusinessSettingsService:
    return BusinessSettingsService(get_billing_defaults())
