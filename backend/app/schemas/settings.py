"""
Schemas Pydantic per le impostazioni di pagamento
Progetto: Couture Billing (Gestionale Sartoria)
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.core.config import IFSC_PATTERN, UPI_ID_PATTERN


class BankDetailsUpdate(BaseModel):
    """Coordinate bancarie (campi facoltativi)."""

    account_name: Optional[str] = Field(default=None, max_length=200)
    account_number: Optional[str] = Field(default=None, max_length=34)
    ifsc: Optional[str] = None
    bank_name: Optional[str] = Field(default=None, max_length=200)

    @field_validator("ifsc")
    @classmethod
    def validate_ifsc(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if not IFSC_PATTERN.match(v):
            raise ValueError("Il codice IFSC deve avere 11 caratteri (es. HDFC0001234)")
        return v


class BusinessSettingsUpdate(BaseModel):
    """Aggiornamento dei dati di pagamento dell'attività."""

    upi_id: Optional[str] = Field(default=None, description="UPI ID (nome@provider)")
    business_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    bank_details: Optional[BankDetailsUpdate] = None

    @field_validator("upi_id")
    @classmethod
    def validate_upi_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not UPI_ID_PATTERN.match(v):
            raise ValueError("L'UPI ID deve avere il formato nome@provider")
        return v
