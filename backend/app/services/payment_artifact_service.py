"""
Link di pagamento UPI e QR code
Progetto: Couture Billing (Gestionale Sartoria)

Il link UPI e il QR sono legati a un importo preciso: vengono rigenerati
solo quando cambia uno tra UPI ID, nome beneficiario, importo richiesto
o numero conto. Il fallimento del QR non blocca mai il salvataggio del conto.
"""

import base64
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from io import BytesIO
from typing import NamedTuple, Optional
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError

from app.core.config import BillingDefaults
from app.core.exceptions import EncodingError
from app.core.money import ZERO, quantize_money, to_amount
from app.schemas.bill import OrderContext, PayeeDetails, PaymentArtifact

# Logger per questo modulo
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Link UPI
# ------------------------------------------------------------
def build_payment_note(
    bill_id: str,
    context: Optional[OrderContext] = None,
    business_name: Optional[str] = None,
) -> str:
    """
    Causale del pagamento.

    Formato: "Bill <n> - <ordine> - Made for <destinatario> - Order #<id>
    - Delivery: <data> - <attività>"; i campi assenti vengono saltati.
    """
    parts = [f"Bill {bill_id}"]
    context = context or OrderContext()
    if context.order_name:
        parts.append(context.order_name)
    if context.made_for:
        parts.append(f"Made for {context.made_for}")
    if context.order_id:
        parts.append(f"Order #{context.order_id}")
    if context.delivery_date:
        parts.append(f"Delivery: {context.delivery_date}")
    if business_name:
        parts.append(business_name)
    return " - ".join(parts)


def build_upi_link(
    payee_id: str,
    payee_name: str,
    amount: Decimal,
    bill_id: str,
    context: Optional[OrderContext] = None,
    business_name: Optional[str] = None,
    currency: str = "INR",
) -> str:
    """
    Costruisce il deep link `upi://pay`.

    Nome e causale sono percent-encoded, l'importo ha sempre due decimali.
    Stessi input, stesso link.
    """
    note = build_payment_note(bill_id, context, business_name)
    return (
        f"upi://pay?pa={payee_id}"
        f"&pn={quote(payee_name, safe='')}"
        f"&am={quantize_money(to_amount(amount)):.2f}"
        f"&cu={currency}"
        f"&tn={quote(note, safe='')}"
    )


# ------------------------------------------------------------
# Codifica QR
# ------------------------------------------------------------
class ScannableCodeEncoder(ABC):
    """Converte un testo in un'immagine scansionabile (data URL)."""

    @abstractmethod
    def encode(self, text: str) -> str:
        """
        Raises:
            EncodingError: se l'immagine non può essere generata
        """


class QrCodeEncoder(ScannableCodeEncoder):
    """Encoder QR basato su `qrcode` + Pillow, restituisce un PNG base64."""

    def __init__(self, box_size: int = 8, border: int = 2) -> None:
        self.box_size = box_size
        self.border = border

    def encode(self, text: str) -> str:
        try:
            qr = qrcode.QRCode(
                error_correction=ERROR_CORRECT_M,
                box_size=self.box_size,
                border=self.border,
            )
            qr.add_data(text)
            qr.make(fit=True)
            image = qr.make_image(fill_color="black", back_color="white")
            buffer = BytesIO()
            image.save(buffer, format="PNG")
        except (DataOverflowError, ValueError, OSError) as e:
            raise EncodingError(f"Generazione QR non riuscita: {e}") from e
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


# ------------------------------------------------------------
# Generatore
# ------------------------------------------------------------
class ArtifactKey(NamedTuple):
    """Valori per cui un artefatto è stato generato."""
    payee_id: str
    payee_name: str
    amount: Decimal
    bill_id: str

    @classmethod
    def of(cls, artifact: PaymentArtifact) -> "ArtifactKey":
        return cls(
            artifact.payee_id,
            artifact.payee_name,
            quantize_money(to_amount(artifact.amount)),
            artifact.bill_id,
        )


class PaymentArtifactGenerator:
    """
    Genera e mantiene aggiornato link UPI + QR.

    L'encoder viene ritentato fino a `artifact_encode_attempts` volte;
    se fallisce sempre l'artefatto contiene solo il link e il QR
    potrà essere rigenerato in seguito.
    """

    def __init__(
        self,
        encoder: ScannableCodeEncoder,
        defaults: Optional[BillingDefaults] = None,
    ) -> None:
        self.encoder = encoder
        self.defaults = defaults or BillingDefaults()

    @staticmethod
    def key_for(
        payee: Optional[PayeeDetails],
        amount: Decimal,
        bill_id: Optional[str],
    ) -> Optional[ArtifactKey]:
        """Chiave di generazione; None se mancano i dati per un link valido."""
        if payee is None or not payee.payee_id or not bill_id:
            return None
        amount = quantize_money(to_amount(amount))
        if amount <= ZERO:
            return None
        return ArtifactKey(payee.payee_id, payee.payee_name, amount, bill_id)

    @staticmethod
    def is_current(artifact: Optional[PaymentArtifact], key: Optional[ArtifactKey]) -> bool:
        return artifact is not None and key is not None and ArtifactKey.of(artifact) == key

    def generate(
        self,
        key: ArtifactKey,
        context: Optional[OrderContext] = None,
    ) -> PaymentArtifact:
        """Genera sempre un nuovo artefatto per la chiave indicata."""
        deep_link = build_upi_link(
            key.payee_id,
            key.payee_name,
            key.amount,
            key.bill_id,
            context=context,
            business_name=self.defaults.business_name,
            currency=self.defaults.currency,
        )
        return PaymentArtifact(
            deep_link=deep_link,
            scannable_code_image=self._encode(deep_link, key.bill_id),
            payee_id=key.payee_id,
            payee_name=key.payee_name,
            amount=key.amount,
            bill_id=key.bill_id,
        )

    def ensure(
        self,
        current: Optional[PaymentArtifact],
        payee: Optional[PayeeDetails],
        amount: Decimal,
        bill_id: Optional[str],
        context: Optional[OrderContext] = None,
    ) -> Optional[PaymentArtifact]:
        """
        Restituisce l'artefatto valido per i valori correnti.

        - chiave invariata e QR presente: riusa l'artefatto esistente
        - chiave cambiata o QR mancante: rigenera
        - dati insufficienti (UPI ID, numero conto o importo > 0): None
        """
        key = self.key_for(payee, amount, bill_id)
        if key is None:
            return None
        if self.is_current(current, key) and current.scannable_code_image:
            return current
        logger.debug("Generazione artefatto di pagamento per %s (importo %s)", key.bill_id, key.amount)
        return self.generate(key, context)

    def _encode(self, deep_link: str, bill_id: str) -> Optional[str]:
        attempts = max(1, self.defaults.artifact_encode_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return self.encoder.encode(deep_link)
            except EncodingError as e:
                logger.warning(
                    "QR del conto %s non generato (tentativo %d/%d): %s",
                    bill_id,
                    attempt,
                    attempts,
                    e.detail,
                )
        return None
