from fastapi import APIRouter, Depends, HTTPException
from ..schemas import AmortizationRequest, AmortizationResponse
from ..services.amortization import amortize, down_payment_percent, loan_amount
from ..core.errors import InvalidAmortizationInput
from ..core.security import require_api_key, rate_limit

router = APIRouter()

@router.post("/amortization", response_model=AmortizationResponse)
def post_amortization(
    body: AmortizationRequest,
    _auth = Depends(require_api_key),
    _lim  = Depends(rate_limit),
):
    try:
        if body.principal is not None:
            principal = body.principal
            dp_percent = None
        else:
            principal = loan_amount(body.property_price, body.down_payment)
            dp_percent = down_payment_percent(body.property_price, body.down_payment)
        result = amortize(principal, body.annual_rate_percent, body.term_years)
    except InvalidAmortizationInput as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return {
        "principal": principal,
        "monthly_payment": round(result.monthly_payment, 2),
        "total_payment": round(result.total_payment, 2),
        "total_interest": round(result.total_interest, 2),
        "number_of_payments": result.number_of_payments,
        "down_payment_percent": dp_percent,
    }
