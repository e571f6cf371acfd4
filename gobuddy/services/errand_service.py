from decimal import Decimal

from gobuddy.core.config import settings
from gobuddy.schemas.errand_schema import ErrandQuoteRequest, InvoiceDisplayBreakdown
from gobuddy.utils.fee_calculator import PriceBreakdown, calculate_breakdown, reverse_subtotal
from gobuddy.utils.money import round_decimal
from gobuddy.utils.settlement_builder import errand_price_lookup


def quote_errand(request: ErrandQuoteRequest) -> PriceBreakdown:
    """Price breakdown shown to a BuddyCaller before posting an errand"""
    return calculate_breakdown(
        request.category,
        request.items,
        price_lookup=errand_price_lookup(request),
        service_fee_base=settings.SERVICE_FEE_BASE,
        vat_rate=settings.VAT_RATE,
    )


def invoice_display_breakdown(total: Decimal) -> InvoiceDisplayBreakdown:
    """Subtotal/fees split of an invoice total, for display only"""
    subtotal = reverse_subtotal(total, settings.INVOICE_REVERSE_MULTIPLIER)
    total = round_decimal(total)
    return InvoiceDisplayBreakdown(total=total, subtotal=subtotal, fees=total - subtotal)
