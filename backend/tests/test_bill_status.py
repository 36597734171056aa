"""
Unit tests for bill status and balance derivation.
"""

from decimal import Decimal

import pytest

from app.schemas.bill import BillStatus
from app.services.bill_status import derive_balance, derive_status


@pytest.mark.parametrize(
    "total, paid, expected",
    [
        ("100", "100", BillStatus.PAID),
        ("100", "150", BillStatus.PAID),
        ("100", "99.99", BillStatus.PARTIAL),
        ("100", "99.996", BillStatus.PARTIAL),
        ("100", "0", BillStatus.UNPAID),
        ("0", "0", BillStatus.UNPAID),
        ("100", None, BillStatus.UNPAID),
    ],
)
def test_derive_status(total, paid, expected):
    """Test stato derivato da totale e pagato."""
    assert derive_status(total, paid) == expected


class TestDeriveBalance:
    """Tests for the remaining balance."""

    def test_partial_payment(self):
        """Test saldo dopo acconto."""
        assert derive_balance(Decimal("1312.50"), Decimal("700")) == Decimal("612.50")

    def test_overpayment_floors_at_zero(self):
        """Test pagamento in eccesso: saldo 0."""
        assert derive_balance(100, 150) == Decimal("0.00")

    def test_sub_cent_shortfall(self):
        """Test pagato appena sotto il totale: saldo arrotondato solo alla fine."""
        assert derive_balance(Decimal("100"), Decimal("99.996")) == Decimal("0.00")
        assert derive_balance(Decimal("100"), Decimal("99.994")) == Decimal("0.01")

    def test_nan_inputs(self):
        """Test valori non numerici trattati come 0."""
        assert derive_balance(float("nan"), "abc") == Decimal("0.00")
