"""
Pytest configuration and fixtures for the billing services.

Collaborators (document store, QR encoder, bill number counter) are
replaced by in-memory fakes; the SQLAlchemy adapters are tested with
AsyncSession mocks.
"""

import copy
import uuid
from decimal import Decimal
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import BillingDefaults
from app.core.exceptions import EncodingError, NotFoundError, PersistenceError
from app.schemas.bill import (
    BillInputs,
    LineItemInput,
    PayeeDetails,
    PaymentMethod,
    PaymentRecord,
)
from app.services.bill_service import BillService
from app.services.document_store import PersistenceStore
from app.services.payment_artifact_service import ScannableCodeEncoder


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.get = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    return db


# ============================================================
# Archivio documenti in memoria
# ============================================================


class InMemoryStore(PersistenceStore):
    """PersistenceStore in memoria con errori attivabili."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.fail_collections: set[str] = set()
        self.writes = 0

    def _check(self, collection: str, write: bool) -> None:
        if collection in self.fail_collections or (self.fail_writes if write else self.fail_reads):
            raise PersistenceError(f"Archivio '{collection}' non disponibile")

    def seed(self, collection: str, data: dict[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or str(uuid.uuid4())
        self.collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        return doc_id

    async def create(self, collection, record):
        self._check(collection, write=True)
        self.writes += 1
        data = copy.deepcopy(record)
        data.pop("id", None)
        return self.seed(collection, data)

    async def update(self, collection, doc_id, partial):
        self._check(collection, write=True)
        documents = self.collections.get(collection, {})
        if doc_id not in documents:
            raise NotFoundError(f"Documento {collection}/{doc_id} non trovato")
        self.writes += 1
        merged = {**documents[doc_id], **copy.deepcopy(partial)}
        merged.pop("id", None)
        documents[doc_id] = {key: value for key, value in merged.items() if value is not None}

    async def get(self, collection, doc_id):
        self._check(collection, write=False)
        document = self.collections.get(collection, {}).get(doc_id)
        if document is None:
            return None
        return {**copy.deepcopy(document), "id": doc_id}

    async def query(self, collection, predicate=None):
        self._check(collection, write=False)
        documents = [
            {**copy.deepcopy(document), "id": doc_id}
            for doc_id, document in self.collections.get(collection, {}).items()
        ]
        if predicate is None:
            return documents
        return [document for document in documents if predicate(document)]


@pytest.fixture
def store():
    """Archivio documenti vuoto."""
    return InMemoryStore()


# ============================================================
# Encoder e contatore
# ============================================================


class FakeEncoder(ScannableCodeEncoder):
    """Encoder che registra i testi ricevuti."""

    def __init__(self):
        self.calls: list[str] = []

    def encode(self, text: str) -> str:
        self.calls.append(text)
        return f"data:image/png;base64,FAKE{len(self.calls)}"


class FailingEncoder(ScannableCodeEncoder):
    """Encoder che fallisce le prime `failures` chiamate (sempre se None)."""

    def __init__(self, failures: Optional[int] = None):
        self.failures = failures
        self.calls = 0

    def encode(self, text: str) -> str:
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise EncodingError("encoder non disponibile")
        return "data:image/png;base64,RECOVERED"


class StubAllocator:
    """Contatore numeri conto in memoria."""

    def __init__(self, start: int = 0):
        self.value = start

    async def next_bill_identifier(self) -> str:
        self.value += 1
        return f"Bill{self.value:03d}"


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def allocator():
    return StubAllocator()


# ============================================================
# Configurazione e service
# ============================================================


@pytest.fixture
def defaults():
    """Parametri di fatturazione di default per i test."""
    return BillingDefaults(
        business_name="Couture Atelier",
        payee_upi_id="couture.atelier@upi",
        bank_account_name="Couture Atelier",
        bank_account_number="1234567890",
        bank_ifsc="HDFC0001234",
        bank_name="HDFC Bank",
    )


@pytest.fixture
def bill_service(defaults, encoder):
    return BillService(defaults=defaults, encoder=encoder)


@pytest.fixture
def payee():
    return PayeeDetails(payee_id="couture.atelier@upi", payee_name="Couture Atelier")


# ============================================================
# Dati di esempio
# ============================================================


def make_item(description="Blouse stitching", quantity="1", rate="100", **kwargs) -> LineItemInput:
    return LineItemInput(
        description=description,
        quantity=Decimal(quantity),
        unit_rate=Decimal(rate),
        **kwargs,
    )


def make_payment(amount, method=PaymentMethod.CASH, **kwargs) -> PaymentRecord:
    return PaymentRecord(amount=Decimal(str(amount)), method=method, **kwargs)


@pytest.fixture
def simple_inputs(payee):
    """Conto base: 2 × 500 + 1 × 250, GST 5%."""
    return BillInputs(
        bill_id="Bill001",
        customer_name="Priya Sharma",
        customer_phone="9876543210",
        items=[
            make_item("Saree blouse", "2", "500", id="item-1"),
            make_item("Fall and pico", "1", "250", id="item-2"),
        ],
        tax_rate_percent=Decimal("5"),
        payee=payee,
    )
