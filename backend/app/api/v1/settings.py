"""
Router FastAPI per le impostazioni di pagamento
Progetto: Couture Billing (Gestionale Sartoria)
"""

from fastapi import APIRouter, Body, Depends, status

from app.core.deps import get_settings_service, get_store
from app.schemas.bill import PayeeDetails
from app.schemas.settings import BusinessSettingsUpdate
from app.services.document_store import PersistenceStore
from app.services.settings_service import BusinessSettingsService

router = APIRouter(
    prefix="/settings",
    tags=["Impostazioni"],
)


@router.get(
    "/payment",
    name="impostazioni_pagamento",
    summary="Dati di pagamento",
    description="UPI ID, nome beneficiario e coordinate bancarie in uso.",
    response_model=PayeeDetails,
    status_code=status.HTTP_200_OK,
)
async def get_payment_settings(
    store: PersistenceStore = Depends(get_store),
    service: BusinessSettingsService = Depends(get_settings_service),
) -> PayeeDetails:
    return await service.get_payment_payee_details(store)


@router.put(
    "/payment",
    name="impostazioni_pagamento_aggiorna",
    summary="Aggiorna dati di pagamento",
    description="Aggiorna UPI ID, nome attività e coordinate bancarie.",
    response_model=PayeeDetails,
    status_code=status.HTTP_200_OK,
)
async def update_payment_settings(
    data: BusinessSettingsUpdate = Body(...),
    store: PersistenceStore = Depends(get_store),
    service: BusinessSettingsService = Depends(get_settings_service),
) -> PayeeDetails:
    return await service.update_payment_settings(store, data)
