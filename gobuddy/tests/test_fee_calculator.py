"""
Unit tests for the errand fee calculator and item catalog.
"""
import pytest
from decimal import Decimal

from gobuddy.core.exceptions import ValidationError
from gobuddy.utils.catalog import lookup_price, printing_price, printing_price_lookup
from gobuddy.utils.money import round_decimal, to_decimal
from gobuddy.utils.fee_calculator import (
    CATEGORIES,
    CategoryFee,
    FeeTable,
    calculate_breakdown,
    commission_system_fee,
    delivery_fee,
    reverse_subtotal,
    service_fee,
    system_fee,
)


def ten_pesos(name):
    return Decimal("10")


@pytest.mark.unit
class TestCalculateBreakdown:
    """Test the additive price breakdown."""

    def test_printing_example(self):
        """Two printed pages at ₱10 total ₱38.20."""
        breakdown = calculate_breakdown("Printing", [{"name": "Yellowpad", "qty": 2}], price_lookup=ten_pesos)

        assert breakdown.subtotal == Decimal("20.00")
        assert breakdown.delivery_fee == Decimal("7.00")
        assert breakdown.service_fee == Decimal("11.20")
        assert breakdown.total == Decimal("38.20")
        assert len(breakdown.item_rows) == 1
        assert breakdown.item_rows[0].total == Decimal("20.00")

    def test_catalog_prices_are_used_by_default(self):
        """Items without a price use the catalog."""
        breakdown = calculate_breakdown("Food Delivery", [
            {"name": "Rice Bowl", "quantity": 1},
            {"name": "Real Leaf", "quantity": 2},
        ])
        # 60 + 2 × 30
        assert breakdown.subtotal == Decimal("120.00")
        # 15 + 5 × (3 - 1)
        assert breakdown.delivery_fee == Decimal("25.00")
        assert breakdown.total == Decimal("156.20")

    def test_explicit_item_price_wins(self):
        """An item's own price overrides the catalog."""
        breakdown = calculate_breakdown("Deliver Items", [{"name": "Package", "quantity": 1, "price": "49.50"}])
        assert breakdown.subtotal == Decimal("49.50")
        assert breakdown.delivery_fee == Decimal("20.00")

    def test_unknown_items_cost_nothing(self):
        """Items missing from the catalog are free."""
        breakdown = calculate_breakdown("School Materials", [{"name": "Stapler", "quantity": 3}])
        assert breakdown.subtotal == Decimal("0.00")
        # Quantity still drives the delivery add-on
        assert breakdown.delivery_fee == Decimal("20.00")

    def test_blank_and_zero_quantity_items_are_skipped(self):
        """Nameless and zero quantity items produce no rows."""
        breakdown = calculate_breakdown("School Materials", [
            {"name": "", "quantity": 4},
            {"name": "Ballpen", "quantity": 0},
            {"name": "Yellowpad", "quantity": 1},
        ])
        assert [row.name for row in breakdown.item_rows] == ["Yellowpad"]
        assert breakdown.delivery_fee == Decimal("10.00")

    def test_no_items(self):
        """An empty errand still pays delivery and service."""
        breakdown = calculate_breakdown("Deliver Items", [])
        assert breakdown.subtotal == Decimal("0.00")
        assert breakdown.delivery_fee == Decimal("20.00")
        assert breakdown.total == Decimal("31.20")

    def test_unknown_category_has_no_delivery_fee(self):
        """Unknown categories pay no delivery."""
        breakdown = calculate_breakdown("Laundry", [{"name": "Ballpen", "quantity": 2}])
        assert breakdown.delivery_fee == Decimal("0.00")
        assert breakdown.total == Decimal("31.20")

    def test_custom_fee_table(self):
        """A custom fee table replaces the defaults."""
        table = FeeTable(fees={"Printing": CategoryFee(Decimal("8"), Decimal("1"))})
        breakdown = calculate_breakdown("Printing", [{"name": "Page", "quantity": 3}], price_lookup=ten_pesos, fee_table=table)
        assert breakdown.delivery_fee == Decimal("10.00")

    @pytest.mark.parametrize("item", [
        {"name": "Ballpen", "quantity": -1},
        {"name": "Ballpen", "quantity": 1, "price": "-5"},
        {"name": "Ballpen", "quantity": "abc"},
        {"name": "Ballpen", "quantity": "NaN"},
    ])
    def test_invalid_input(self, item):
        """Negative or non-numeric input is rejected."""
        with pytest.raises(ValidationError):
            calculate_breakdown("School Materials", [item])

    def test_validation_error_is_a_value_error(self):
        """Callers can catch ValueError."""
        with pytest.raises(ValueError):
            calculate_breakdown("School Materials", [{"name": "Ballpen", "quantity": -2}])


@pytest.mark.unit
class TestFees:
    """Test delivery and service fees."""

    @pytest.mark.parametrize("category", CATEGORIES)
    def test_delivery_fee_is_monotonic(self, category):
        """More items never cost less delivery."""
        fees = [delivery_fee(category, Decimal(n)) for n in range(0, 12)]
        assert fees == sorted(fees)

    def test_single_item_pays_base_only(self):
        """Zero or one item pays the base fee."""
        assert delivery_fee("Deliver Items", Decimal("1")) == Decimal("20.00")
        assert delivery_fee("Deliver Items", Decimal("0")) == Decimal("20.00")

    def test_service_fee_applies_vat_to_fee_only(self):
        """VAT is charged on the service fee alone."""
        assert service_fee() == Decimal("11.20")
        assert service_fee(Decimal("20"), Decimal("0.12")) == Decimal("22.40")

    def test_system_fee_is_service_fee(self):
        """The platform keeps the service fee."""
        breakdown = calculate_breakdown("Printing", [{"name": "Page", "quantity": 1}], price_lookup=ten_pesos)
        assert system_fee(breakdown) == breakdown.service_fee


@pytest.mark.unit
class TestCommissionSystemFee:
    """Test the fee taken from commission invoices."""

    def test_fee_from_invoice_total(self):
        """₱117 is ₱100 of work plus the ₱5 base and 12% VAT on the work."""
        assert commission_system_fee(Decimal("117")) == Decimal("17.00")
        assert commission_system_fee("61.00") == Decimal("11.00")

    def test_totals_at_or_below_base_carry_no_fee(self):
        """Invoices that do not exceed the flat fee are fee free."""
        assert commission_system_fee(Decimal("5")) == Decimal("0.00")
        assert commission_system_fee(Decimal("0")) == Decimal("0.00")

    def test_custom_base_and_vat(self):
        """Fee base and VAT rate are configurable."""
        assert commission_system_fee(Decimal("110"), fee_base=Decimal("10"), vat_rate=Decimal("0")) == Decimal("10.00")

    def test_negative_total(self):
        """A negative invoice is rejected."""
        with pytest.raises(ValidationError):
            commission_system_fee(Decimal("-1"))


@pytest.mark.unit
class TestReverseSubtotal:
    """Test the display-only reverse derivation."""

    def test_reverse_subtotal(self):
        """Totals are divided back by 1.22."""
        assert reverse_subtotal(Decimal("122")) == Decimal("100.00")
        assert reverse_subtotal("38.20") == Decimal("31.31")

    def test_negative_total(self):
        """Negative totals are rejected."""
        with pytest.raises(ValidationError):
            reverse_subtotal(Decimal("-1"))


@pytest.mark.unit
class TestCatalog:
    """Test the static price catalog."""

    def test_food_and_school_items(self):
        """Catalog lookups ignore surrounding whitespace."""
        assert lookup_price("Toppings") == Decimal("55")
        assert lookup_price("Water (500ml)") == Decimal("25")
        assert lookup_price(" Yellowpad ") == Decimal("10")

    def test_unknown_item(self):
        """Unknown and blank names cost nothing."""
        assert lookup_price("Unicorn") == Decimal("0")
        assert lookup_price("") == Decimal("0")

    def test_printing_prices(self):
        """Printing prices depend on size and color only."""
        assert printing_price("A3", "Colored") == Decimal("25")
        assert printing_price("A4", "Not Colored") == Decimal("2")
        assert printing_price("Letter", "Colored") == Decimal("0")
        assert printing_price_lookup("A4", "Colored")("anything.pdf") == Decimal("5")


@pytest.mark.unit
class TestMoney:
    """Test the shared Decimal helpers."""

    def test_round_half_up(self):
        """Half cents round up."""
        assert round_decimal(Decimal("100.005")) == Decimal("100.01")
        assert round_decimal(Decimal("4.714285")) == Decimal("4.71")

    def test_to_decimal(self):
        """Numbers and numeric strings convert; words do not."""
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(" 12.50 ") == Decimal("12.50")
        with pytest.raises(ValueError):
            to_decimal("twelve")
