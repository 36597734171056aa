"""
Router FastAPI per i Conti
Progetto: Couture Billing (Gestionale Sartoria)

Definisce gli endpoint API per ricalcolo, salvataggio, pagamenti,
link di pagamento UPI e condivisione pubblica dei conti.
"""

import logging

from fastapi import APIRouter, Body, Depends, Path, Query, status

from app.core.deps import get_bill_service, get_sequence_allocator, get_store
from app.core.exceptions import NotFoundError
from app.schemas.bill import (
    BillAggregate,
    BillInputs,
    BillSummary,
    BillSummaryRequest,
    PaymentRecord,
    RequestedAmountUpdate,
    ShareLinkRead,
)
from app.services.bill_service import BillService
from app.services.document_store import PersistenceStore
from app.services.sequence_service import SequenceAllocator

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/bills",
    tags=["Conti"],
)


# -------------------------------------------------------------------
# Calcolo
# -------------------------------------------------------------------

@router.post(
    "/recompute",
    name="conto_ricalcolo",
    summary="Ricalcola un conto",
    description="Ricalcola totali, saldo, stato e importo richiesto senza salvare.",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def recompute_bill(
    data: BillInputs = Body(...),
    validate: bool = Query(True, description="False per le anteprime durante la compilazione"),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    """
    Ricalcola l'intero conto a partire dai dati inseriti.

    Con validate=True restituisce 422 con error_code MISSING_FIELD,
    NO_BILLABLE_CONTENT, INVALID_LINE_ITEM o INCONSISTENT_SPLIT_PAYMENT.
    """
    if validate:
        return service.recompute_bill(data)
    return service.preview(data)


@router.post(
    "/summary",
    name="conto_riepilogo",
    summary="Riepilogo totali",
    description="Calcola imponibile, GST, sconto, totale, saldo e stato.",
    response_model=BillSummary,
    status_code=status.HTTP_200_OK,
)
async def summarize_bill(
    data: BillSummaryRequest = Body(...),
    service: BillService = Depends(get_bill_service),
) -> BillSummary:
    return service.summarize(data)


# -------------------------------------------------------------------
# Bozze e condivisione
# -------------------------------------------------------------------

@router.get(
    "/from-order/{order_id}",
    name="conto_da_ordine",
    summary="Bozza di conto da ordine",
    description="Prepara i dati del conto a partire da un ordine non ancora fatturato.",
    response_model=BillInputs,
    status_code=status.HTTP_200_OK,
)
async def bill_inputs_from_order(
    order_id: str = Path(..., description="Id dell'ordine"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillInputs:
    return await service.create_inputs_from_order(store, order_id)


@router.get(
    "/shared/{token}",
    name="conto_condiviso",
    summary="Conto condiviso",
    description="Vista pubblica del conto tramite token di condivisione.",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def get_shared_bill(
    token: str = Path(..., description="Token di condivisione"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    aggregate = await service.get_bill_by_share_token(store, token)
    if aggregate is None:
        raise NotFoundError("Link di condivisione non valido o scaduto")
    return aggregate


# -------------------------------------------------------------------
# CRUD
# -------------------------------------------------------------------

@router.post(
    "/",
    name="conto_crea",
    summary="Crea conto",
    description="Valida, numera e salva un nuovo conto con link di pagamento.",
    response_model=BillAggregate,
    status_code=status.HTTP_201_CREATED,
)
async def create_bill(
    data: BillInputs = Body(...),
    store: PersistenceStore = Depends(get_store),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    """
    Crea un conto.

    Se il numero conto non è indicato viene assegnato dal contatore
    (Bill001, Bill002, ...). In caso di archivio non disponibile risponde
    503 con il conto calcolato in extra.bill, da ripresentare.
    """
    data = data.model_copy(update={"internal_id": None})
    return await service.save_bill(store, allocator, data)


@router.get(
    "/{bill_ref}",
    name="conto_dettaglio",
    summary="Dettaglio conto",
    description="Recupera un conto per id o per numero conto.",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def get_bill(
    bill_ref: str = Path(..., description="Id del conto o numero conto (es. Bill042)"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    return await service.get_bill(store, bill_ref)


@router.put(
    "/{bill_ref}",
    name="conto_aggiorna",
    summary="Aggiorna conto",
    description=(
        "Sostituisce i dati modificabili del conto e lo ricalcola. "
        "Pagamenti e modalità dell'importo richiesto non inviati restano invariati."
    ),
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def update_bill(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    data: BillInputs = Body(...),
    store: PersistenceStore = Depends(get_store),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    return await service.update_bill(store, allocator, bill_ref, data)


# -------------------------------------------------------------------
# Pagamenti
# -------------------------------------------------------------------

@router.post(
    "/{bill_ref}/payments",
    name="conto_aggiungi_pagamento",
    summary="Registra pagamento",
    description="Aggiunge un pagamento (contanti, online o misto) al conto.",
    response_model=BillAggregate,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    data: PaymentRecord = Body(...),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    """
    Registra un pagamento.

    Per i pagamenti misti contanti + online deve coincidere con l'importo,
    altrimenti 422 INCONSISTENT_SPLIT_PAYMENT.
    """
    return await service.add_payment(store, bill_ref, data)


@router.delete(
    "/{bill_ref}/payments/{payment_id}",
    name="conto_rimuovi_pagamento",
    summary="Elimina pagamento",
    description="Rimuove un pagamento registrato per errore.",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def remove_payment(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    payment_id: str = Path(..., description="Id del pagamento"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    return await service.remove_payment(store, bill_ref, payment_id)


# -------------------------------------------------------------------
# Link di pagamento
# -------------------------------------------------------------------

@router.post(
    "/{bill_ref}/payment-artifact",
    name="conto_rigenera_qr",
    summary="Rigenera link e QR",
    description="Rigenera il link UPI e il QR per l'importo richiesto corrente.",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def regenerate_payment_artifact(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    return await service.regenerate_artifact(store, bill_ref)


@router.put(
    "/{bill_ref}/requested-amount",
    name="conto_importo_richiesto",
    summary="Importo richiesto",
    description="Fissa un importo da richiedere (pinned) o torna al saldo (auto).",
    response_model=BillAggregate,
    status_code=status.HTTP_200_OK,
)
async def set_requested_amount(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    data: RequestedAmountUpdate = Body(...),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> BillAggregate:
    return await service.set_requested_amount(store, bill_ref, data)


@router.post(
    "/{bill_ref}/share",
    name="conto_condividi",
    summary="Condividi conto",
    description="Restituisce (creandolo se serve) il link pubblico del conto.",
    response_model=ShareLinkRead,
    status_code=status.HTTP_200_OK,
)
async def share_bill(
    bill_ref: str = Path(..., description="Id del conto o numero conto"),
    store: PersistenceStore = Depends(get_store),
    service: BillService = Depends(get_bill_service),
) -> ShareLinkRead:
    token = await service.get_or_create_share_token(store, bill_ref)
    return ShareLinkRead(token=token, url=service.public_bill_url(token))
