"""
Unit tests for the UPI link builder and PaymentArtifactGenerator.
"""

from decimal import Decimal

from app.core.config import BillingDefaults
from app.schemas.bill import OrderContext, PayeeDetails
from app.services.payment_artifact_service import (
    ArtifactKey,
    PaymentArtifactGenerator,
    QrCodeEncoder,
    build_payment_note,
    build_upi_link,
)

from conftest import FailingEncoder, FakeEncoder


CONTEXT = OrderContext(
    order_name="Wedding lehenga",
    made_for="Anjali",
    order_id="ORD-17",
    delivery_date="2024-05-10",
)


class TestUpiLink:
    """Tests for the upi://pay deep link."""

    def test_note_order(self):
        """Test ordine dei campi nella causale."""
        note = build_payment_note("Bill042", CONTEXT, "Couture Atelier")

        assert note == (
            "Bill Bill042 - Wedding lehenga - Made for Anjali - Order #ORD-17"
            " - Delivery: 2024-05-10 - Couture Atelier"
        )

    def test_note_skips_missing_fields(self):
        """Test campi assenti saltati."""
        assert build_payment_note("Bill001", OrderContext(made_for="Ravi")) == "Bill Bill001 - Made for Ravi"

    def test_link_format(self):
        """Test parametri pa, pn, am, cu, tn."""
        link = build_upi_link(
            "couture.atelier@upi",
            "Couture Atelier",
            Decimal("612.5"),
            "Bill001",
            business_name="Couture Atelier",
        )

        assert link == (
            "upi://pay?pa=couture.atelier@upi&pn=Couture%20Atelier&am=612.50&cu=INR"
            "&tn=Bill%20Bill001%20-%20Couture%20Atelier"
        )

    def test_link_is_deterministic(self):
        """Test stessi input, stesso link."""
        args = ("shop@okaxis", "Shop & Co", Decimal("100"), "Bill007", CONTEXT, "Shop")

        assert build_upi_link(*args) == build_upi_link(*args)
        assert "pn=Shop%20%26%20Co" in build_upi_link(*args)


class TestQrCodeEncoder:
    """Tests for the real qrcode based encoder."""

    def test_returns_png_data_url(self):
        """Test output PNG in base64."""
        image = QrCodeEncoder(box_size=2, border=1).encode("upi://pay?pa=a@b&am=1.00")

        assert image.startswith("data:image/png;base64,")
        assert len(image) > len("data:image/png;base64,")


class TestPaymentArtifactGenerator:
    """Tests for generation, reuse and retries."""

    payee = PayeeDetails(payee_id="couture.atelier@upi", payee_name="Couture Atelier")

    def test_key_requires_payee_bill_and_amount(self):
        """Test nessuna chiave senza UPI ID, numero conto o importo."""
        assert PaymentArtifactGenerator.key_for(None, Decimal("10"), "Bill001") is None
        assert PaymentArtifactGenerator.key_for(self.payee, Decimal("10"), None) is None
        assert PaymentArtifactGenerator.key_for(self.payee, Decimal("0"), "Bill001") is None

    def test_generate(self):
        """Test artefatto con link, QR e chiave."""
        encoder = FakeEncoder()
        generator = PaymentArtifactGenerator(encoder, BillingDefaults())
        key = ArtifactKey("couture.atelier@upi", "Couture Atelier", Decimal("500.00"), "Bill001")

        artifact = generator.generate(key, CONTEXT)

        assert artifact.deep_link.startswith("upi://pay?pa=couture.atelier@upi")
        assert "am=500.00" in artifact.deep_link
        assert artifact.scannable_code_image == "data:image/png;base64,FAKE1"
        assert ArtifactKey.of(artifact) == key
        assert encoder.calls == [artifact.deep_link]

    def test_ensure_reuses_current_artifact(self):
        """Test chiave invariata: nessuna rigenerazione."""
        encoder = FakeEncoder()
        generator = PaymentArtifactGenerator(encoder)
        first = generator.ensure(None, self.payee, Decimal("500"), "Bill001")

        second = generator.ensure(first, self.payee, Decimal("500.00"), "Bill001")

        assert second is first
        assert len(encoder.calls) == 1

    def test_ensure_regenerates_on_amount_change(self):
        """Test importo cambiato: nuovo artefatto."""
        encoder = FakeEncoder()
        generator = PaymentArtifactGenerator(encoder)
        first = generator.ensure(None, self.payee, Decimal("500"), "Bill001")

        second = generator.ensure(first, self.payee, Decimal("450"), "Bill001")

        assert second.amount == Decimal("450.00")
        assert "am=450.00" in second.deep_link
        assert len(encoder.calls) == 2

    def test_ensure_regenerates_missing_image(self):
        """Test QR assente: nuovo tentativo anche a chiave invariata."""
        generator = PaymentArtifactGenerator(FailingEncoder())
        without_image = generator.ensure(None, self.payee, Decimal("500"), "Bill001")
        assert without_image.scannable_code_image is None

        generator.encoder = FakeEncoder()
        regenerated = generator.ensure(without_image, self.payee, Decimal("500"), "Bill001")

        assert regenerated.scannable_code_image == "data:image/png;base64,FAKE1"

    def test_ensure_not_eligible(self):
        """Test importo zero: nessun artefatto."""
        generator = PaymentArtifactGenerator(FakeEncoder())

        assert generator.ensure(None, self.payee, Decimal("0"), "Bill001") is None

    def test_encoder_retried(self):
        """Test encoder ritentato fino al numero di tentativi."""
        encoder = FailingEncoder(failures=1)
        generator = PaymentArtifactGenerator(encoder, BillingDefaults(artifact_encode_attempts=2))

        artifact = generator.ensure(None, self.payee, Decimal("100"), "Bill001")

        assert encoder.calls == 2
        assert artifact.scannable_code_image == "data:image/png;base64,RECOVERED"

    def test_encoder_failure_keeps_link(self, caplog):
        """Test QR fallito: link presente, immagine assente, warning nel log."""
        encoder = FailingEncoder()
        generator = PaymentArtifactGenerator(encoder, BillingDefaults(artifact_encode_attempts=3))

        artifact = generator.ensure(None, self.payee, Decimal("100"), "Bill001")

        assert encoder.calls == 3
        assert artifact.deep_link.startswith("upi://pay")
        assert artifact.scannable_code_image is None
        assert "QR del conto Bill001 non generato" in caplog.text
