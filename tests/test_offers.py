from datetime import datetime, timedelta, timezone

from clock import FrozenClock
from offers import evaluate, evaluate_product, format_remaining, offer_expired, resolve_offer_end

NOW = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


def test_no_offer_end_means_inactive():
    window = evaluate(None, NOW)
    assert not window.active
    assert window.remaining == timedelta(0)


def test_countdown_runs_out():
    clock = FrozenClock(NOW)
    end = NOW + timedelta(seconds=90)

    window = evaluate(end, clock.now())
    assert window.active
    assert window.remaining_seconds == 90
    assert window.display == "01:30"

    clock.advance(91)
    window = evaluate(end, clock.now())
    assert not window.active
    assert window.remaining == timedelta(0)
    assert window.display == "00:00"


def test_remaining_never_grows_and_never_comes_back():
    end = NOW + timedelta(minutes=5)
    clock = FrozenClock(NOW)
    previous = evaluate(end, clock.now()).remaining
    for _ in range(400):
        clock.advance(1)
        window = evaluate(end, clock.now())
        assert window.remaining <= previous
        assert window.remaining >= timedelta(0)
        previous = window.remaining
    assert not window.active
    for seconds in (1, 60, 86400):
        assert not evaluate(end, end + timedelta(seconds=seconds)).active


def test_naive_end_time_is_treated_as_utc():
    end = (NOW + timedelta(seconds=30)).replace(tzinfo=None)
    assert evaluate(end, NOW).remaining_seconds == 30


def test_format_keeps_counting_minutes_past_an_hour():
    assert format_remaining(timedelta(hours=1, minutes=30, seconds=5)) == "90:05"
    assert format_remaining(timedelta(seconds=-5)) == "00:00"


def test_daily_offer_time_rolls_to_tomorrow():
    assert resolve_offer_end({"offer_time": "18:00"}, NOW) == NOW.replace(hour=18)
    late = NOW.replace(hour=19)
    assert resolve_offer_end({"offer_time": "18:00"}, late) == NOW.replace(hour=18) + timedelta(days=1)
    assert resolve_offer_end({"offer_time": "garbage"}, NOW) is None


def test_absolute_end_beats_daily_time():
    product = {"offer_time": "18:00", "offer_end_date_time": "2026-01-15T10:05:00Z"}
    assert resolve_offer_end(product, NOW) == NOW + timedelta(minutes=5)


def test_product_without_discount_has_no_offer():
    product = {"offer": None, "offer_end_date_time": NOW + timedelta(hours=1)}
    assert not evaluate_product(product, NOW).active
    product["offer"] = 10
    assert evaluate_product(product, NOW).active


def test_offer_expired():
    product = {"offer": 10, "offer_end_date_time": NOW - timedelta(seconds=1)}
    assert offer_expired(product, NOW)
    assert not offer_expired({**product, "offer": 0}, NOW)
    assert not offer_expired({"offer": 10}, NOW)
    assert not offer_expired({"offer": 10, "offer_time": "09:00"}, NOW)
