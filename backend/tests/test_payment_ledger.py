"""
Unit tests for PaymentLedger.
"""

from decimal import Decimal

import pytest

from app.core.exceptions import (
    BillValidationError,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from app.schemas.bill import PaymentMethod, PaymentRecord
from app.services.payment_ledger import PaymentLedger, validate_payment_record

from conftest import make_payment


def split(amount, cash, online, **kwargs):
    return make_payment(
        amount,
        PaymentMethod.SPLIT,
        cash_portion=Decimal(str(cash)),
        online_portion=Decimal(str(online)),
        **kwargs,
    )


class TestValidatePaymentRecord:
    """Tests for single payment validation."""

    def test_consistent_split_accepted(self):
        """Test misto 300 + 200 = 500 accettato."""
        validate_payment_record(split(500, 300, 200))

    def test_inconsistent_split_rejected(self):
        """Test misto 300 + 150 != 500 rifiutato."""
        with pytest.raises(BillValidationError) as exc_info:
            validate_payment_record(split(500, 300, 150, id="pay-x"))

        assert exc_info.value.error_code == "INCONSISTENT_SPLIT_PAYMENT"
        assert exc_info.value.extra["payment_id"] == "pay-x"

    def test_sub_cent_split_mismatch_rejected(self):
        """Test misto 300.004 + 200 != 500: nessun arrotondamento."""
        with pytest.raises(BillValidationError) as exc_info:
            validate_payment_record(split(500, "300.004", 200))

        assert exc_info.value.error_code == "INCONSISTENT_SPLIT_PAYMENT"

    def test_split_without_portions_rejected(self):
        """Test misto senza ripartizione rifiutato."""
        with pytest.raises(BillValidationError):
            validate_payment_record(make_payment(500, PaymentMethod.SPLIT))

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount_rejected(self, amount):
        """Test importo zero o negativo rifiutato."""
        with pytest.raises(BusinessValidationError) as exc_info:
            validate_payment_record(make_payment(amount))

        assert exc_info.value.error_code == "INVALID_PAYMENT_AMOUNT"

    def test_legacy_field_names(self):
        """Test record storico con type / cashAmount / onlineAmount."""
        record = PaymentRecord.model_validate(
            {
                "amount": "500",
                "type": "split",
                "cashAmount": 300,
                "onlineAmount": 200,
                "paymentDate": "2024-03-01T10:00:00Z",
            }
        )

        validate_payment_record(record)
        assert record.method == PaymentMethod.SPLIT
        assert record.cash_portion == Decimal("300")


class TestPaymentLedger:
    """Tests for ledger mutations and aggregates."""

    def test_empty_ledger(self):
        """Test registro vuoto: aggregati a zero."""
        ledger = PaymentLedger()

        totals = ledger.aggregate()

        assert ledger.is_empty()
        assert totals.paid_amount == Decimal("0.00")
        assert totals.cash_received == Decimal("0.00")
        assert totals.online_received == Decimal("0.00")

    def test_aggregate_by_method(self):
        """Test somma per metodo, il misto ripartito."""
        ledger = PaymentLedger(
            [
                make_payment(200, PaymentMethod.CASH),
                make_payment("150.50", PaymentMethod.ONLINE),
                split(500, 300, 200),
            ]
        )

        totals = ledger.aggregate()

        assert totals.paid_amount == Decimal("850.50")
        assert totals.cash_received == Decimal("500.00")
        assert totals.online_received == Decimal("350.50")

    def test_add_record_validates(self):
        """Test un record incoerente non entra nel registro."""
        ledger = PaymentLedger([make_payment(100)])

        with pytest.raises(BillValidationError):
            ledger.add_record(split(500, 300, 150))

        assert len(ledger.records) == 1

    def test_duplicate_id_rejected(self):
        """Test id pagamento duplicato."""
        ledger = PaymentLedger([make_payment(100, id="p1")])

        with pytest.raises(ConflictError):
            ledger.add_record(make_payment(50, id="p1"))

    def test_remove_record(self):
        """Test rimozione per id."""
        ledger = PaymentLedger([make_payment(100, id="p1"), make_payment(40, id="p2")])

        removed = ledger.remove_record("p1")

        assert removed.amount == Decimal("100")
        assert ledger.aggregate().paid_amount == Decimal("40.00")

    def test_remove_missing_record(self):
        """Test rimozione di un pagamento inesistente."""
        with pytest.raises(NotFoundError):
            PaymentLedger().remove_record("missing")

    def test_records_is_a_copy(self):
        """Test l'elenco esposto non modifica il registro."""
        ledger = PaymentLedger([make_payment(100)])

        ledger.records.clear()

        assert not ledger.is_empty()
