"""
Unit tests for SequenceAllocator.
"""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from app.core.config import BillingDefaults
from app.models import SequenceCounter
from app.services.sequence_service import SequenceAllocator, timestamp_bill_identifier


def counter_result(counter):
    result = MagicMock()
    result.scalar_one_or_none.return_value = counter
    return result


class TestSequenceAllocator:
    """Tests for the bill number counter."""

    async def test_first_number_creates_counter(self, mock_db):
        """Test primo numero: contatore creato a 1."""
        mock_db.execute.return_value = counter_result(None)

        bill_id = await SequenceAllocator(mock_db).next_bill_identifier()

        assert bill_id == "Bill001"
        added = mock_db.add.call_args[0][0]
        assert isinstance(added, SequenceCounter)
        assert added.name == "bills"
        assert added.value == 1
        mock_db.commit.assert_awaited_once()

    async def test_increments_existing_counter(self, mock_db):
        """Test contatore esistente incrementato."""
        counter = SequenceCounter(name="bills", value=41)
        mock_db.execute.return_value = counter_result(counter)

        bill_id = await SequenceAllocator(mock_db).next_bill_identifier()

        assert bill_id == "Bill042"
        assert counter.value == 42
        mock_db.add.assert_not_called()

    async def test_custom_prefix_and_padding(self, mock_db):
        """Test prefisso e cifre configurabili."""
        allocator = SequenceAllocator(mock_db, BillingDefaults(bill_id_prefix="INV-", bill_id_padding=5))

        assert allocator.format_identifier(42) == "INV-00042"
        assert allocator.format_identifier(123456) == "INV-123456"

    async def test_database_error_falls_back_to_timestamp(self, mock_db, caplog):
        """Test database non disponibile: numero da timestamp."""
        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        bill_id = await SequenceAllocator(mock_db).next_bill_identifier()

        assert bill_id.startswith("BILL")
        assert bill_id[4:].isdigit()
        mock_db.rollback.assert_awaited_once()
        assert "non disponibile" in caplog.text


def test_timestamp_bill_identifier():
    """Test ultime 6 cifre dei millisecondi."""
    assert timestamp_bill_identifier(clock=lambda: 1700000123.456) == "BILL123456"
    assert timestamp_bill_identifier("TMP", clock=lambda: 1.5) == "TMP1500"
