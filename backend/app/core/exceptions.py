"""
Eccezioni Custom per l'applicazione.
Progetto: Couture Billing (Gestionale Sartoria)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole del conto (gestiti dal nostro handler → 422)
"""

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "ValidationErrorKind",
    "BillValidationError",
    "ConflictError",
    "EncodingError",
    "PersistenceError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    # Default values - overridden in subclasses
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """
    Eccezione sollevata quando una risorsa non viene trovata.

    Utilizzata quando un conto, un ordine o una voce di catalogo non esiste.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "Il nome del cliente è obbligatorio"
        - "Il conto non contiene righe fatturabili"
        - "Pagamento misto: contanti + online diverso dall'importo"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class ValidationErrorKind(str, Enum):
    """Tipologie di errore di validazione del conto."""
    MISSING_FIELD = "MISSING_FIELD"
    NO_BILLABLE_CONTENT = "NO_BILLABLE_CONTENT"
    INVALID_LINE_ITEM = "INVALID_LINE_ITEM"
    INCONSISTENT_SPLIT_PAYMENT = "INCONSISTENT_SPLIT_PAYMENT"


class BillValidationError(BusinessValidationError):
    """
    Errore di validazione del conto con tipologia esplicita.

    L'error_code coincide con la tipologia, mentre `extra` contiene
    i campi o le righe da evidenziare nel frontend, ad esempio:
        {"fields": ["customer_phone"]}
        {"items": [{"id": "...", "reasons": ["quantity"]}]}
    """

    def __init__(
        self,
        kind: ValidationErrorKind,
        detail: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.kind = kind
        super().__init__(detail, kind.value, extra)


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un'operazione non può essere eseguita
    a causa dello stato corrente della risorsa.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class EncodingError(AppException):
    """
    Eccezione sollevata quando la generazione del QR di pagamento fallisce.

    Viene recuperata localmente: il conto si salva comunque senza QR,
    che potrà essere rigenerato in seguito.
    """

    status_code: int = 502
    error_code: str = "QR_ENCODING_FAILED"

    def __init__(
        self,
        detail: str = "Generazione QR non riuscita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class PersistenceError(AppException):
    """
    Eccezione sollevata quando l'archivio documenti non è raggiungibile
    o rifiuta un'operazione.

    È un errore ritentabile: il conto calcolato non viene scartato,
    solo il tentativo di salvataggio.

    Attributes:
        bill: Record persistibile calcolato prima del fallimento (se disponibile)
    """

    status_code: int = 503
    error_code: str = "PERSISTENCE_UNAVAILABLE"

    def __init__(
        self,
        detail: str = "Archivio dati non disponibile, riprovare",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        bill: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.bill = bill
        merged = {"retryable": True}
        if extra:
            merged.update(extra)
        if bill is not None:
            merged["bill"] = bill
        super().__init__(detail, error_code, merged)
