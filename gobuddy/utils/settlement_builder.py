"""
Builds per-runner, per-period settlement aggregates from completed errands
and commissions.

Each completed transaction is bucketed with the period calculator; all
transactions of one runner in one period roll up into a single
CalculatedSettlement.

    errand      earnings = amount_price (accepted invoice)
                fee      = service fee of the errand's price breakdown
    commission  earnings = accepted invoice amount, else the latest invoice
                fee      = commission_system_fee(earnings)

Transactions without a positive invoiced amount are not settled. A row that
cannot be read (bad date, bad amount) is skipped with a warning so the other
runners still settle; an errand whose items cannot be priced is settled with
a zero fee.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from gobuddy.core.exceptions import InvalidDateError, ValidationError
from gobuddy.utils.catalog import PriceLookup, lookup_price, printing_price_lookup
from gobuddy.utils.fee_calculator import (
    COMMISSION_FEE_BASE,
    SERVICE_FEE_BASE,
    VAT_RATE,
    calculate_breakdown,
    commission_system_fee,
    system_fee,
)
from gobuddy.utils.money import ZERO, round_decimal, to_decimal
from gobuddy.utils.period_calculator import (
    DEFAULT_EPOCH_DATE,
    DEFAULT_PERIOD_DAYS,
    calculate_period,
)

logger = logging.getLogger(__name__)

COMPLETED_STATUS = "completed"
ACCEPTED_INVOICE_STATUS = "accepted"

SettlementKey = Tuple[str, date, date]


@dataclass
class CalculatedSettlement:
    user_id: str
    period_start_date: date
    period_end_date: date
    total_earnings: Decimal = ZERO
    total_transactions: int = 0
    system_fees: Decimal = ZERO
    errand_ids: List[str] = field(default_factory=list)
    commission_ids: List[str] = field(default_factory=list)

    @property
    def key(self) -> SettlementKey:
        return (self.user_id, self.period_start_date, self.period_end_date)

    @property
    def net_amount(self) -> Decimal:
        return round_decimal(self.total_earnings - self.system_fees)

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "period_start_date": self.period_start_date,
            "period_end_date": self.period_end_date,
            "total_earnings": round_decimal(self.total_earnings),
            "total_transactions": self.total_transactions,
            "system_fees": round_decimal(self.system_fees),
            "errand_ids": list(self.errand_ids),
            "commission_ids": list(self.commission_ids),
        }


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def errand_price_lookup(errand: Any, default: PriceLookup = lookup_price) -> PriceLookup:
    """Printing errands are priced by paper size/color, everything else by the catalog."""
    if _field(errand, "category") == "Printing":
        return printing_price_lookup(_field(errand, "printing_size"), _field(errand, "printing_color"))
    return default


def transaction_date(row: Any) -> Any:
    return _field(row, "completed_at") or _field(row, "created_at")


def errand_earnings(errand: Any) -> Decimal:
    """
    Invoiced amount of an errand; no invoice means nothing to settle.

    Raises:
        ValueError: If amount_price is not a number
    """
    return round_decimal(to_decimal(_field(errand, "amount_price")))


def errand_system_fee(
    errand: Any,
    price_lookup: PriceLookup = lookup_price,
    service_fee_base: Decimal = SERVICE_FEE_BASE,
    vat_rate: Decimal = VAT_RATE,
) -> Decimal:
    """Service fee of the errand's breakdown, 0 when its items cannot be priced."""
    try:
        breakdown = calculate_breakdown(
            _field(errand, "category"),
            _field(errand, "items") or [],
            price_lookup=errand_price_lookup(errand, price_lookup),
            service_fee_base=service_fee_base,
            vat_rate=vat_rate,
        )
    except ValidationError as e:
        logger.warning(f"Errand {_field(errand, 'id')} has unpriceable items, settling with no fee: {e}")
        return round_decimal(ZERO)
    return system_fee(breakdown)


def _invoice_recency(invoice: Any):
    created_at = _field(invoice, "created_at")
    return (created_at is not None, created_at)


def commission_invoice_amounts(invoices: Iterable[Any]) -> Dict[str, Decimal]:
    """
    commission_id -> invoiced amount.

    The latest accepted invoice wins; without one, the latest invoice is used.
    """
    by_commission: Dict[str, List[Any]] = {}
    for invoice in invoices:
        commission_id = _field(invoice, "commission_id")
        if commission_id is None:
            continue
        by_commission.setdefault(str(commission_id), []).append(invoice)

    amounts = {}
    for commission_id, rows in by_commission.items():
        rows = sorted(rows, key=_invoice_recency, reverse=True)
        accepted = [
            r for r in rows
            if _field(r, "accepted_at") is not None or _field(r, "status") == ACCEPTED_INVOICE_STATUS
        ]
        chosen = accepted[0] if accepted else rows[0]
        amounts[commission_id] = _field(chosen, "amount")
    return amounts


class _SettlementGrouper:
    """Accumulates transactions into one CalculatedSettlement per (runner, period)."""

    def __init__(self, epoch_date: date, period_days: int):
        self.epoch_date = epoch_date
        self.period_days = period_days
        self.by_key: Dict[SettlementKey, CalculatedSettlement] = {}

    def settlement_for(self, runner_id: str, when: Any) -> CalculatedSettlement:
        period = calculate_period(when, self.epoch_date, self.period_days)
        key = (str(runner_id), period.start, period.end)
        settlement = self.by_key.get(key)
        if settlement is None:
            settlement = CalculatedSettlement(
                user_id=str(runner_id),
                period_start_date=period.start,
                period_end_date=period.end,
            )
            self.by_key[key] = settlement
        return settlement

    def result(self) -> List[CalculatedSettlement]:
        result = sorted(self.by_key.values(), key=lambda s: (s.user_id, s.period_start_date))
        for settlement in result:
            settlement.errand_ids.sort()
            settlement.commission_ids.sort()
        return result


def _settleable(row: Any, tracked: Set[str]) -> Optional[str]:
    """Row id when the row is a completed, assigned, not yet settled transaction."""
    if _field(row, "status") != COMPLETED_STATUS:
        return None
    if not _field(row, "runner_id"):
        return None
    row_id = str(_field(row, "id"))
    if row_id in tracked:
        return None
    return row_id


def build_calculated_settlements(
    errands: Iterable[Any],
    price_lookup: PriceLookup = lookup_price,
    epoch_date: date = DEFAULT_EPOCH_DATE,
    period_days: int = DEFAULT_PERIOD_DAYS,
    tracked_errand_ids: Optional[Set[str]] = None,
    service_fee_base: Decimal = SERVICE_FEE_BASE,
    vat_rate: Decimal = VAT_RATE,
    commissions: Iterable[Any] = (),
    invoice_amounts: Optional[Mapping[str, Any]] = None,
    tracked_commission_ids: Optional[Set[str]] = None,
    commission_fee_base: Decimal = COMMISSION_FEE_BASE,
) -> List[CalculatedSettlement]:
    """
    Group completed errands and commissions into one settlement per (runner, period).

    Args:
        errands: Errand rows (dicts or models)
        price_lookup: Catalog used to price non-printing items
        epoch_date: Period epoch
        period_days: Period length in days
        tracked_errand_ids: Errands already counted in a persisted settlement;
            these are skipped so nothing is paid out twice
        service_fee_base: Flat errand service fee before VAT
        vat_rate: VAT applied to service and commission fees
        commissions: Commission rows (dicts or models)
        invoice_amounts: commission_id -> invoiced amount, see commission_invoice_amounts()
        tracked_commission_ids: Commissions already counted in a persisted settlement
        commission_fee_base: Flat part of the commission fee

    Returns:
        CalculatedSettlement list ordered by (user_id, period_start_date)
    """
    grouper = _SettlementGrouper(epoch_date, period_days)
    tracked_errands = {str(e) for e in (tracked_errand_ids or ())}
    tracked_commissions = {str(c) for c in (tracked_commission_ids or ())}
    invoice_amounts = invoice_amounts or {}

    for errand in errands:
        errand_id = _settleable(errand, tracked_errands)
        if errand_id is None:
            continue
        try:
            earnings = errand_earnings(errand)
            if earnings <= 0:
                continue
            settlement = grouper.settlement_for(_field(errand, "runner_id"), transaction_date(errand))
        except (InvalidDateError, ValueError) as e:
            logger.warning(f"Skipping errand {errand_id}: {e}")
            continue

        settlement.total_earnings += earnings
        settlement.total_transactions += 1
        settlement.system_fees += errand_system_fee(errand, price_lookup, service_fee_base, vat_rate)
        settlement.errand_ids.append(errand_id)
        tracked_errands.add(errand_id)

    for commission in commissions:
        commission_id = _settleable(commission, tracked_commissions)
        if commission_id is None:
            continue
        try:
            earnings = round_decimal(to_decimal(invoice_amounts.get(commission_id)))
            if earnings <= 0:
                continue
            fee = commission_system_fee(earnings, commission_fee_base, vat_rate)
            settlement = grouper.settlement_for(_field(commission, "runner_id"), transaction_date(commission))
        except (InvalidDateError, ValueError) as e:
            logger.warning(f"Skipping commission {commission_id}: {e}")
            continue

        settlement.total_earnings += earnings
        settlement.total_transactions += 1
        settlement.system_fees += fee
        settlement.commission_ids.append(commission_id)
        tracked_commissions.add(commission_id)

    return grouper.result()
