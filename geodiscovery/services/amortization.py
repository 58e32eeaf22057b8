import math
from dataclasses import dataclass

from ..core.errors import InvalidAmortizationInput


@dataclass(frozen=True)
class AmortizationResult:
    monthly_payment: float
    total_payment: float
    total_interest: float
    number_of_payments: int


def _finite(name: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidAmortizationInput(f"{name} must be a finite number, got {value!r}")
    return float(value)


def amortize(principal: float, annual_rate_percent: float, term_years: float) -> AmortizationResult:
    """
    Fixed monthly payment for a fully amortizing loan.

    Uses the annuity formula ``P * r * (1+r)^n / ((1+r)^n - 1)`` with
    ``r = annual_rate_percent / 100 / 12`` and ``n = term_years * 12``.
    A zero rate falls back to ``P / n``.

    Raises
    ------
    InvalidAmortizationInput
        If principal or term is not positive, or the rate is negative.
    """
    principal = _finite("principal", principal)
    annual_rate_percent = _finite("annual_rate_percent", annual_rate_percent)
    term_years = _finite("term_years", term_years)

    if principal <= 0:
        raise InvalidAmortizationInput("principal must be positive")
    if term_years <= 0:
        raise InvalidAmortizationInput("term_years must be positive")
    if annual_rate_percent < 0:
        raise InvalidAmortizationInput("annual_rate_percent must not be negative")

    n = int(round(term_years * 12))
    if n < 1:
        raise InvalidAmortizationInput("term must cover at least one monthly payment")
    r = annual_rate_percent / 100.0 / 12.0

    if r == 0:
        monthly = principal / n
    else:
        growth = (1.0 + r) ** n
        monthly = principal * r * growth / (growth - 1.0)

    total = monthly * n
    return AmortizationResult(
        monthly_payment=monthly,
        total_payment=total,
        total_interest=total - principal,
        number_of_payments=n,
    )


def loan_amount(property_price: float, down_payment: float) -> float:
    """Principal left to finance after the down payment."""
    property_price = _finite("property_price", property_price)
    down_payment = _finite("down_payment", down_payment)
    if property_price <= 0:
        raise InvalidAmortizationInput("property_price must be positive")
    if down_payment < 0:
        raise InvalidAmortizationInput("down_payment must not be negative")
    if down_payment >= property_price:
        raise InvalidAmortizationInput("down_payment must be less than property_price")
    return property_price - down_payment


def down_payment_percent(property_price: float, down_payment: float) -> int:
    property_price = _finite("property_price", property_price)
    if property_price <= 0:
        raise InvalidAmortizationInput("property_price must be positive")
    return int(round(_finite("down_payment", down_payment) / property_price * 100))
