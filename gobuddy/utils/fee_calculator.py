"""
Errand Fee Calculator

Computes the price breakdown of an errand from its category and line items:

    item total     = price × quantity
    subtotal       = Σ item totals
    delivery fee   = base(category) + add_on(category) × max(total_quantity − 1, 0)
    service fee    = SERVICE_FEE_BASE × (1 + VAT_RATE)         (₱10 + 12% VAT = ₱11.20)
    total          = subtotal + delivery fee + service fee

This additive model is the canonical one: it is what callers are quoted and
what settlements are built from. `reverse_subtotal()` only exists to display a
subtotal for invoices where nothing but the final total is known; never feed
its result back into `calculate_breakdown()` for the same transaction.

Example Usage:
    from gobuddy.utils.fee_calculator import calculate_breakdown

    breakdown = calculate_breakdown(
        "Printing",
        [{"name": "Yellowpad", "quantity": 2}],
        price_lookup=lambda name: Decimal("10"),
    )
    # subtotal=20.00 delivery_fee=7.00 service_fee=11.20 total=38.20
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from gobuddy.core.exceptions import ValidationError
from gobuddy.utils.catalog import PriceLookup, lookup_price
from gobuddy.utils.money import ZERO, round_decimal, to_decimal

CATEGORIES = ("Deliver Items", "Food Delivery", "School Materials", "Printing")

SERVICE_FEE_BASE = Decimal("10")
COMMISSION_FEE_BASE = Decimal("5")
VAT_RATE = Decimal("0.12")
INVOICE_REVERSE_MULTIPLIER = Decimal("1.22")


@dataclass(frozen=True)
class CategoryFee:
    base: Decimal
    add_on: Decimal


@dataclass(frozen=True)
class FeeTable:
    """Category -> (base flat fee, add-on per extra item). Unknown categories cost nothing."""
    fees: Dict[str, CategoryFee]
    default: CategoryFee = CategoryFee(ZERO, ZERO)

    def for_category(self, category: Optional[str]) -> CategoryFee:
        return self.fees.get((category or "").strip(), self.default)


DEFAULT_FEE_TABLE = FeeTable(fees={
    "Deliver Items": CategoryFee(Decimal("20"), Decimal("5")),
    "Food Delivery": CategoryFee(Decimal("15"), Decimal("5")),
    "School Materials": CategoryFee(Decimal("10"), Decimal("5")),
    "Printing": CategoryFee(Decimal("5"), Decimal("2")),  # add-on is per extra page
})


@dataclass
class ItemRow:
    name: str
    quantity: Decimal
    price: Decimal
    total: Decimal


@dataclass
class PriceBreakdown:
    item_rows: List[ItemRow] = field(default_factory=list)
    subtotal: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    service_fee: Decimal = ZERO
    total: Decimal = ZERO


def _read_item(item: Any) -> Tuple[str, Any, Any]:
    """Accept plain dicts as well as ErrandItem models."""
    if isinstance(item, dict):
        name = item.get("name")
        quantity = item.get("quantity", item.get("qty"))
        price = item.get("price")
    else:
        name = getattr(item, "name", None)
        quantity = getattr(item, "quantity", None)
        price = getattr(item, "price", None)
    return (name or "").strip(), quantity, price


def _non_negative(value: Any, what: str, item_name: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {what} for item '{item_name}': {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"Invalid {what} for item '{item_name}': {value!r}")
    if amount < 0:
        raise ValidationError(f"Negative {what} for item '{item_name}': {amount}")
    return amount


def delivery_fee(
    category: Optional[str],
    total_quantity: Decimal,
    fee_table: FeeTable = DEFAULT_FEE_TABLE,
) -> Decimal:
    """Base flat fee plus the add-on for every item beyond the first."""
    fee = fee_table.for_category(category)
    extra_items = max(to_decimal(total_quantity) - 1, ZERO)
    return round_decimal(fee.base + fee.add_on * extra_items)


def service_fee(base: Decimal = SERVICE_FEE_BASE, vat_rate: Decimal = VAT_RATE) -> Decimal:
    """Flat per-transaction service fee with VAT applied to the fee only."""
    return round_decimal(base + base * vat_rate)


def calculate_breakdown(
    category: Optional[str],
    items: Iterable[Any],
    price_lookup: PriceLookup = lookup_price,
    fee_table: FeeTable = DEFAULT_FEE_TABLE,
    service_fee_base: Decimal = SERVICE_FEE_BASE,
    vat_rate: Decimal = VAT_RATE,
) -> PriceBreakdown:
    """
    Compute the full price breakdown of an errand.

    Args:
        category: Errand category, unknown categories get no delivery fee
        items: Sequence of {name, quantity[, price]} records (dicts or models)
        price_lookup: item name -> unit price; used when an item carries no price
        fee_table: Delivery fee table per category
        service_fee_base: Flat service fee before VAT
        vat_rate: VAT applied to the service fee

    Returns:
        PriceBreakdown with item rows, subtotal, delivery fee, service fee, total

    Raises:
        ValidationError: If any quantity or price is negative or not a number
    """
    rows: List[ItemRow] = []
    subtotal = ZERO
    total_quantity = ZERO

    for item in items or []:
        name, raw_quantity, raw_price = _read_item(item)
        quantity = _non_negative(raw_quantity, "quantity", name)
        if raw_price is not None:
            price = _non_negative(raw_price, "price", name)
        else:
            price = _non_negative(price_lookup(name) if name else ZERO, "price", name)

        if not name:
            continue
        total_quantity += quantity
        if quantity == 0:
            continue

        item_total = round_decimal(price * quantity)
        rows.append(ItemRow(name=name, quantity=quantity, price=round_decimal(price), total=item_total))
        subtotal += item_total

    delivery = delivery_fee(category, total_quantity, fee_table)
    service = service_fee(service_fee_base, vat_rate)
    subtotal = round_decimal(subtotal)

    return PriceBreakdown(
        item_rows=rows,
        subtotal=subtotal,
        delivery_fee=delivery,
        service_fee=service,
        total=round_decimal(subtotal + delivery + service),
    )


def reverse_subtotal(total: Any, multiplier: Decimal = INVOICE_REVERSE_MULTIPLIER) -> Decimal:
    """
    Display-only subtotal for an invoice whose final total is all we know.

    Raises:
        ValidationError: If the total is negative or not a number
    """
    amount = _non_negative(total, "total", "invoice")
    if multiplier <= 0:
        raise ValidationError(f"Reverse multiplier must be positive, got {multiplier}")
    return round_decimal(amount / multiplier)


def system_fee(breakdown: PriceBreakdown) -> Decimal:
    """Platform share of a transaction: the service fee collected on it."""
    return breakdown.service_fee


def commission_system_fee(
    invoice_total: Any,
    fee_base: Decimal = COMMISSION_FEE_BASE,
    vat_rate: Decimal = VAT_RATE,
) -> Decimal:
    """
    Platform share of a commission invoice.

    Commission invoices are billed as subtotal × (1 + VAT) + fee base, so the
    subtotal is recovered from the total first:

        subtotal = (total − fee_base) / (1 + vat_rate)
        fee      = fee_base + vat_rate × subtotal

    Totals at or below the fee base carry no fee.

    Example:
        >>> commission_system_fee(Decimal("117"))
        Decimal('17.00')
    """
    total = _non_negative(invoice_total, "total", "commission invoice")
    if total <= fee_base:
        return round_decimal(ZERO)
    subtotal = (total - fee_base) / (1 + vat_rate)
    return round_decimal(fee_base + vat_rate * subtotal)
