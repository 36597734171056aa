"""
Unit tests for BusinessSettingsService.
"""

import pytest
from pydantic import ValidationError

from app.schemas.settings import BankDetailsUpdate, BusinessSettingsUpdate
from app.services.settings_service import SETTINGS_COLLECTION, BusinessSettingsService


@pytest.fixture
def settings_service(defaults):
    return BusinessSettingsService(defaults)


class TestGetPaymentPayeeDetails:
    """Tests for reading payee details."""

    async def test_defaults_without_document(self, settings_service, store):
        """Test nessun documento: valori di configurazione."""
        payee = await settings_service.get_payment_payee_details(store)

        assert payee.payee_id == "couture.atelier@upi"
        assert payee.payee_name == "Couture Atelier"
        assert payee.bank_details.ifsc == "HDFC0001234"

    async def test_partial_document_merged(self, settings_service, store):
        """Test documento parziale con nomi storici in camelCase."""
        store.seed(
            SETTINGS_COLLECTION,
            {
                "key": "business",
                "upiId": "boutique@okicici",
                "businessName": "  ",
                "bankDetails": {"accountNumber": "99887766", "bankName": "ICICI Bank"},
            },
        )

        payee = await settings_service.get_payment_payee_details(store)

        assert payee.payee_id == "boutique@okicici"
        assert payee.payee_name == "Couture Atelier"
        assert payee.bank_details.account_number == "99887766"
        assert payee.bank_details.bank_name == "ICICI Bank"
        assert payee.bank_details.ifsc == "HDFC0001234"

    async def test_other_documents_ignored(self, settings_service, store):
        """Test solo il documento "business" conta."""
        store.seed(SETTINGS_COLLECTION, {"key": "printing", "upi_id": "other@upi"})

        payee = await settings_service.get_payment_payee_details(store)

        assert payee.payee_id == "couture.atelier@upi"

    async def test_read_failure_uses_defaults(self, settings_service, store, caplog):
        """Test archivio non leggibile: default e warning."""
        store.fail_reads = True

        payee = await settings_service.get_payment_payee_details(store)

        assert payee == settings_service.default_payee()
        assert "uso i default" in caplog.text


class TestUpdatePaymentSettings:
    """Tests for saving payee details."""

    async def test_creates_document(self, settings_service, store):
        """Test primo salvataggio."""
        payee = await settings_service.update_payment_settings(
            store, BusinessSettingsUpdate(upi_id="boutique@okicici", business_name="Boutique Noor")
        )

        assert payee.payee_id == "boutique@okicici"
        assert payee.payee_name == "Boutique Noor"
        (document,) = store.collections[SETTINGS_COLLECTION].values()
        assert document["key"] == "business"

    async def test_merges_bank_details(self, settings_service, store):
        """Test aggiornamenti successivi fusi, un solo documento."""
        await settings_service.update_payment_settings(
            store,
            BusinessSettingsUpdate(bank_details=BankDetailsUpdate(account_number="111", bank_name="SBI")),
        )

        payee = await settings_service.update_payment_settings(
            store,
            BusinessSettingsUpdate(bank_details=BankDetailsUpdate(ifsc="sbin0004567")),
        )

        assert len(store.collections[SETTINGS_COLLECTION]) == 1
        assert payee.bank_details.account_number == "111"
        assert payee.bank_details.bank_name == "SBI"
        assert payee.bank_details.ifsc == "SBIN0004567"


class TestSettingsValidation:
    """Tests for UPI ID and IFSC formats."""

    @pytest.mark.parametrize("upi_id", ["no-at-sign", "@bank", "name@"])
    def test_invalid_upi_id(self, upi_id):
        """Test formato UPI ID non valido."""
        with pytest.raises(ValidationError):
            BusinessSettingsUpdate(upi_id=upi_id)

    def test_invalid_ifsc(self):
        """Test IFSC non valido."""
        with pytest.raises(ValidationError):
            BankDetailsUpdate(ifsc="HDFC123")
