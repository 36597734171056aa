"""
API v1 Routes
Progetto: Couture Billing (Gestionale Sartoria)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import bills, settings

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(bills.router)
api_v1_router.include_router(settings.router)

# Esportazione
__all__ = ["api_v1_router"]
