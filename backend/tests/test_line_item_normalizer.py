"""
Unit tests for LineItemNormalizer.
"""

from decimal import Decimal

from app.core.config import BillingDefaults
from app.schemas.bill import LineItemInput, ProductInput
from app.services.line_item_normalizer import (
    FlatItems,
    GroupedProducts,
    LineItemNormalizer,
    resolve_item_source,
)

from conftest import make_item


def product(name, *descriptions, product_id="p-1"):
    return ProductInput(id=product_id, name=name, descriptions=list(descriptions))


class TestResolveItemSource:
    """Tests for choosing between flat items and grouped products."""

    def test_flat_when_no_products(self):
        """Test senza prodotti vale l'elenco piatto."""
        source = resolve_item_source([make_item()], [])

        assert isinstance(source, FlatItems)

    def test_grouped_wins_with_priced_description(self):
        """Test i prodotti vincono se almeno una descrizione ha importo."""
        source = resolve_item_source(
            [make_item("Old line")],
            [product("Lehenga", make_item("Stitching", "1", "1500"))],
        )

        assert isinstance(source, GroupedProducts)
        assert len(source.legacy_items) == 1

    def test_flat_when_products_have_no_amount(self):
        """Test prodotti a importo zero: vale l'elenco piatto."""
        source = resolve_item_source(
            [make_item()],
            [product("Lehenga", make_item("Stitching", "1", "0"))],
        )

        assert isinstance(source, FlatItems)

    def test_flat_when_priced_description_is_not_billable(self):
        """Test descrizione vuota con importo: non rende autorevoli i prodotti."""
        source = resolve_item_source(
            [make_item("Kurti")],
            [product("Lehenga", make_item("  ", "1", "1500"), make_item("Stitching", "0", "800"))],
        )

        assert isinstance(source, FlatItems)


class TestFlatNormalization:
    """Tests for flat line items."""

    def test_amount_recomputed(self):
        """Test importo sempre quantità × tariffa."""
        raw = LineItemInput.model_validate(
            {"id": "a", "description": "Kurti", "qty": 3, "rate": "120.50", "amount": 99999}
        )

        result = LineItemNormalizer().normalize_inputs([raw])

        assert result.billable[0].amount == Decimal("361.50")
        assert result.items_total == Decimal("361.50")

    def test_fractional_rate_not_rounded(self):
        """Test tariffa al centimetro: si arrotonda solo l'importo."""
        raw = LineItemInput(id="lace", description="Lace", quantity=8, unit_rate="0.125")

        result = LineItemNormalizer().normalize_inputs([raw])

        assert result.billable[0].unit_rate == Decimal("0.125")
        assert result.billable[0].amount == Decimal("1.00")

    def test_empty_description_excluded(self):
        """Test riga senza descrizione esclusa e segnalata."""
        result = LineItemNormalizer().normalize_inputs(
            [make_item("   ", id="blank"), make_item("Kurti", id="ok")]
        )

        assert [item.id for item in result.billable] == ["ok"]
        assert result.invalid[0].id == "blank"
        assert "description" in result.invalid[0].reasons

    def test_non_positive_quantity_excluded(self):
        """Test quantità zero o negativa: riga esclusa dal calcolo."""
        result = LineItemNormalizer().normalize_inputs(
            [make_item("Zero", "0", id="z"), make_item("Neg", "-2", id="n")]
        )

        assert result.billable == ()
        assert {problem.id for problem in result.invalid} == {"z", "n"}

    def test_nan_quantity_excluded(self):
        """Test quantità NaN trattata come 0."""
        raw = LineItemInput(id="nan", description="Kurti", quantity=float("nan"), unit_rate=100)

        result = LineItemNormalizer().normalize_inputs([raw])

        assert result.billable == ()
        assert result.invalid[0].reasons == ("quantity",)

    def test_tiny_quantity_clamped_to_default(self):
        """Test quantità sotto il minimo riportata a 1."""
        result = LineItemNormalizer().normalize_inputs([make_item("Kurti", "0.05", "200")])

        assert result.billable[0].quantity == Decimal("1")
        assert result.billable[0].amount == Decimal("200.00")

    def test_custom_minimum_quantity(self):
        """Test minimo e default configurabili."""
        defaults = BillingDefaults(min_line_quantity=Decimal("0.5"), default_line_quantity=Decimal("2"))

        result = LineItemNormalizer(defaults).normalize_inputs([make_item("Lace", "0.25", "10")])

        assert result.billable[0].quantity == Decimal("2")

    def test_zero_rate_included_but_invalid(self):
        """Test tariffa zero: riga inclusa con importo 0 ma segnalata."""
        result = LineItemNormalizer().normalize_inputs([make_item("To price", "1", "0", id="r")])

        assert result.billable[0].amount == Decimal("0.00")
        assert result.invalid[0].reasons == ("unit_rate",)


class TestGroupedNormalization:
    """Tests for grouped products with sub-items."""

    def test_sub_items_counted_once(self):
        """Test sotto-righe sommate una sola volta."""
        grouped = product(
            "Bridal lehenga",
            make_item("Stitching", "1", "2500", id="s1"),
            make_item("Embroidery", "2", "750", id="s2"),
        )

        result = LineItemNormalizer().normalize_inputs([make_item("Legacy", "1", "999")], [grouped])

        assert result.source == "grouped"
        assert [item.id for item in result.billable] == ["s1", "s2"]
        assert result.items_total == Decimal("4000.00")
        parent = result.display[0]
        assert parent.amount == Decimal("4000.00")
        assert [child.id for child in parent.sub_items] == ["s1", "s2"]
        assert result.legacy[0].description == "Legacy"

    def test_invalid_sub_item_reports_parent(self):
        """Test sotto-riga non valida segnalata con il prodotto."""
        grouped = product(
            "Gown",
            make_item("Stitching", "1", "1200", id="s1"),
            make_item("", "1", "100", id="s2"),
            product_id="gown",
        )

        result = LineItemNormalizer().normalize_inputs([], [grouped])

        assert result.invalid[0].as_dict() == {
            "id": "s2",
            "reasons": ["description"],
            "parent_id": "gown",
        }
        assert result.items_total == Decimal("1200.00")
