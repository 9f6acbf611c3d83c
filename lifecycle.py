"""
Order delivery lifecycle.

    Pending ------------\
                         +--> Confirmed --> Delivered
    EMI Pending --------/
    (any non-terminal) -----> Cancelled

Transitions return the fields to ``$set`` on the stored order; persisting
them is the caller's job. Confirming an order that is already confirmed,
delivered or cancelled raises TransitionError and leaves it untouched.
"""
import enum
import logging
from datetime import datetime, timedelta
from typing import Optional

from clock import as_utc
from pricing import EMI, compute_emi

logger = logging.getLogger(__name__)

DEFAULT_LEAD_DAYS = 15


class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    EMI_PENDING = "EMI Pending"
    CONFIRMED = "Confirmed"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @property
    def is_open(self) -> bool:
        return self in (OrderStatus.PENDING, OrderStatus.EMI_PENDING)


class TransitionError(Exception):
    def __init__(self, status, action):
        self.status = OrderStatus(status)
        self.action = action
        super().__init__(f"Cannot {action} an order that is {self.status.value}")


def initial_status(payment_type: str) -> OrderStatus:
    return OrderStatus.EMI_PENDING if payment_type == EMI else OrderStatus.PENDING


def status_of(order: dict) -> OrderStatus:
    return OrderStatus(order.get("delivery_status") or OrderStatus.PENDING.value)


def delivery_date_for(now: datetime, lead_days: int = DEFAULT_LEAD_DAYS) -> str:
    return (as_utc(now) + timedelta(days=lead_days)).date().isoformat()


def confirm_delivery(order: dict, now: datetime, lead_days: int = DEFAULT_LEAD_DAYS) -> dict:
    """The delivery window starts at confirmation, not at order placement."""
    status = status_of(order)
    if not status.is_open:
        logger.info("Rejected confirm for order %s in state %s", order.get("_id", order.get("id")), status.value)
        raise TransitionError(status, "confirm")
    return {
        "delivery_status": OrderStatus.CONFIRMED.value,
        "delivery_date": delivery_date_for(now, lead_days),
    }


def cancel(order: dict) -> dict:
    status = status_of(order)
    if not status.is_open:
        raise TransitionError(status, "cancel")
    return {"delivery_status": OrderStatus.CANCELLED.value}


def mark_delivered(order: dict, now: datetime) -> Optional[dict]:
    """Confirmed orders count as delivered once their estimated date arrives."""
    if status_of(order) != OrderStatus.CONFIRMED or not order.get("delivery_date"):
        return None
    if as_utc(now).date().isoformat() < order["delivery_date"]:
        return None
    return {"delivery_status": OrderStatus.DELIVERED.value}


def refresh(order: dict, now: datetime) -> dict:
    update = mark_delivered(order, now)
    if update:
        order = {**order, **update}
    return order


def derive_emi_fields(order: dict) -> dict:
    """Remaining balance and monthly installment, computed on every read."""
    if order.get("payment_type") != EMI:
        return order
    emi = compute_emi(order.get("amount") or 0, order.get("down_payment") or 0, order.get("emi_months") or 0)
    rounded = emi.rounded()
    return {**order, "remaining": rounded.remaining, "monthly_emi": rounded.monthly}
