from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query

from gobuddy.api.v1.dependencies import get_current_user_id
from gobuddy.core.exceptions import ValidationError
from gobuddy.schemas.errand_schema import ErrandQuoteRequest, InvoiceDisplayBreakdown, PriceBreakdownOut
from gobuddy.services.errand_service import invoice_display_breakdown, quote_errand

router = APIRouter(prefix="/errands", tags=["errands"])


@router.post("/quote", response_model=PriceBreakdownOut)
def get_errand_quote(
    request: ErrandQuoteRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Price breakdown for an errand before it is posted"""
    try:
        return quote_errand(request)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/invoice-breakdown", response_model=InvoiceDisplayBreakdown)
def get_invoice_breakdown(
    total: Decimal = Query(..., ge=0),
    user_id: str = Depends(get_current_user_id),
):
    """Subtotal and fees of an invoice total, for display"""
    return invoice_display_breakdown(total)
