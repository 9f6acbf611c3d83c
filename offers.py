"""
Offer countdowns.

A product's discount runs until ``offer_end_date_time`` (an absolute instant)
or, for products configured the older way, until a daily ``offer_time``
("HH:MM", UTC) that rolls over to the next day once passed. Whether an offer
is still running has no effect on checkout unless ENFORCE_OFFER_EXPIRY is set.
"""
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from clock import as_utc, parse_timestamp

ZERO = timedelta(0)


class OfferWindow(BaseModel):
    active: bool
    remaining: timedelta = ZERO
    ends_at: Optional[datetime] = None

    @property
    def remaining_seconds(self) -> int:
        return int(self.remaining.total_seconds())

    @property
    def display(self) -> str:
        return format_remaining(self.remaining)


def evaluate(offer_end: Optional[datetime], now: datetime) -> OfferWindow:
    if offer_end is None:
        return OfferWindow(active=False)
    offer_end = as_utc(offer_end)
    remaining = offer_end - as_utc(now)
    if remaining <= ZERO:
        return OfferWindow(active=False, ends_at=offer_end)
    return OfferWindow(active=True, remaining=remaining, ends_at=offer_end)


def format_remaining(remaining: timedelta) -> str:
    """mm:ss, zero padded. Minutes keep counting past 59."""
    total = max(0, int(remaining.total_seconds()))
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"


def daily_offer_end(offer_time: Optional[str], now: datetime) -> Optional[datetime]:
    if not offer_time:
        return None
    try:
        hours, minutes = (int(p) for p in str(offer_time).split(":")[:2])
        end = as_utc(now).replace(hour=hours, minute=minutes, second=0, microsecond=0)
    except ValueError:
        return None
    if as_utc(now) > end:
        end += timedelta(days=1)
    return end


def resolve_offer_end(product: dict, now: datetime) -> Optional[datetime]:
    end = parse_timestamp(product.get("offer_end_date_time"))
    if end is not None:
        return end
    offer_time = product.get("offer_time")
    # offer_time may also hold a full timestamp
    end = parse_timestamp(offer_time) if offer_time and "T" in str(offer_time) else None
    return end or daily_offer_end(offer_time, now)


def evaluate_product(product: dict, now: datetime) -> OfferWindow:
    if not product.get("offer"):
        return OfferWindow(active=False)
    return evaluate(resolve_offer_end(product, now), now)


def offer_expired(product: dict, now: datetime) -> bool:
    """True only for a discounted product whose window has closed."""
    if not product.get("offer"):
        return False
    end = resolve_offer_end(product, now)
    return end is not None and not evaluate(end, now).active
