"""
Price and EMI arithmetic.

Amounts are plain floats in a single currency. Nothing here rounds; use
``round_money`` or ``EmiBreakdown.rounded()`` when presenting a value.
"""
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel

NETPAY = "Netpay"
EMI = "EMI"
PAYMENT_TYPES = (NETPAY, EMI)


class PricingError(ValueError):
    pass


class EmiBreakdown(BaseModel):
    down_payment: float = 0.0
    remaining: float = 0.0
    monthly: float = 0.0
    months: int = 0

    def rounded(self) -> "EmiBreakdown":
        return EmiBreakdown(
            down_payment=round_money(self.down_payment),
            remaining=round_money(self.remaining),
            monthly=round_money(self.monthly),
            months=self.months,
        )


class Quote(BaseModel):
    payment_type: str
    amount: float
    units: int = 1
    emi: Optional[EmiBreakdown] = None


def round_money(value: float) -> float:
    return round(float(value or 0), 2)


def compute_emi(total_amount: float, down_payment: Optional[float] = 0, months: Optional[int] = 0) -> EmiBreakdown:
    total_amount = float(total_amount or 0)
    down_payment = float(down_payment or 0)
    months = int(months or 0)
    if total_amount < 0 or down_payment < 0 or months < 0:
        raise PricingError("Amounts and month count must not be negative")
    remaining = max(0.0, total_amount - down_payment)
    monthly = remaining / months if months > 0 else 0.0
    return EmiBreakdown(down_payment=down_payment, remaining=remaining, monthly=monthly, months=months)


def select_months_from_plan_string(plan: Optional[str]) -> int:
    """First month count of a "3,6,9" style plan, or 0 if there is none."""
    if not plan:
        return 0
    try:
        return int(str(plan).split(",")[0].strip())
    except ValueError:
        return 0


def parse_emi_plan(value: Union[None, str, Iterable]) -> List[int]:
    """
    Validate an admin-entered EMI plan.

    Accepts "3,6,9" or a sequence of ints and returns the month counts in
    ascending order without duplicates. Raises PricingError on anything that
    is not a positive integer.
    """
    if value is None or value == "":
        return []
    tokens = str(value).split(",") if isinstance(value, str) else list(value)
    months = set()
    for token in tokens:
        if isinstance(token, str):
            token = token.strip()
            if not token:
                continue
        try:
            month = int(token)
        except (TypeError, ValueError):
            raise PricingError(f"Invalid EMI month count: {token!r}")
        if isinstance(token, float) and token != month:
            raise PricingError(f"Invalid EMI month count: {token!r}")
        if month <= 0:
            raise PricingError(f"EMI month count must be positive: {month}")
        months.add(month)
    return sorted(months)


def offer_price(price: Optional[float], percent: Optional[float]) -> Optional[float]:
    """Price after a percentage discount, clamped to 0-100%."""
    if price is None:
        return None
    percent = min(max(float(percent or 0), 0.0), 100.0)
    return float(price) * (100.0 - percent) / 100.0


def charge_amount(product: dict) -> float:
    amount = product.get("netpay_price")
    if amount is None:
        amount = product.get("price")
    if amount is None:
        raise PricingError("Product has no price")
    return float(amount)


def effective_down_payment(product: dict, down_payment: Optional[float]) -> float:
    """The product's fixed down payment wins over what the buyer typed."""
    fixed = product.get("down_payment_amount")
    if fixed is not None:
        return float(fixed)
    return float(down_payment or 0)


def quote(product: dict, payment_type: str = NETPAY, months: Optional[int] = None,
          down_payment: Optional[float] = None) -> Quote:
    if payment_type not in PAYMENT_TYPES:
        raise PricingError(f"Unknown payment type: {payment_type}")
    amount = charge_amount(product)
    if payment_type == NETPAY:
        units = 2 if product.get("buy_one_get_one") else 1
        return Quote(payment_type=NETPAY, amount=amount, units=units)
    emi = compute_emi(amount, effective_down_payment(product, down_payment), months or 0)
    return Quote(payment_type=EMI, amount=amount, emi=emi)
