import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.database import AsyncSessionLocal, engine
from app.core.deps import get_billing_defaults
from app.models import Base
from app.schemas.settings import BankDetailsUpdate, BusinessSettingsUpdate
from app.services.document_store import DocumentStore
from app.services.settings_service import BusinessSettingsService


async def seed_payment_settings():
    """Scrive il documento settings/business con i dati di pagamento configurati."""
    defaults = get_billing_defaults()
    data = BusinessSettingsUpdate(
        upi_id=defaults.payee_upi_id,
        business_name=defaults.business_name,
        bank_details=BankDetailsUpdate(
            account_name=defaults.bank_account_name or None,
            account_number=defaults.bank_account_number or None,
            ifsc=defaults.bank_ifsc or None,
            bank_name=defaults.bank_name or None,
        ),
    )
    async with AsyncSessionLocal() as session:
        payee = await BusinessSettingsService(defaults).update_payment_settings(
            DocumentStore(session), data
        )
    print(f"Impostazioni di pagamento inizializzate (UPI: {payee.payee_id})")


async def reset():
    print("Connessione al database, eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await seed_payment_settings()
    await engine.dispose()
    print("Database resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
