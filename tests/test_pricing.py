import pytest

import pricing
from pricing import EMI, NETPAY, PricingError, compute_emi, parse_emi_plan, select_months_from_plan_string


def test_emi_breakdown_for_six_months():
    emi = compute_emi(12000, 2000, 6)
    assert emi.remaining == 10000
    assert emi.monthly == pytest.approx(1666.6667, rel=1e-6)
    assert emi.rounded().monthly == 1666.67


def test_emi_defaults_to_no_down_payment_and_no_plan():
    emi = compute_emi(4199)
    assert emi.down_payment == 0
    assert emi.remaining == 4199
    assert emi.monthly == 0


def test_overpayment_leaves_nothing_to_finance():
    emi = compute_emi(1000, 2500, 3)
    assert emi.remaining == 0
    assert emi.monthly == 0


def test_emi_arithmetic_holds_across_inputs():
    for total in (0, 1, 999.99, 4199, 12000):
        for down in (0, total / 3, total, total * 2):
            for months in (0, 1, 3, 7, 12):
                emi = compute_emi(total, down, months)
                assert emi.remaining == max(0, total - down)
                if down <= total:
                    assert emi.remaining + min(down, total) == pytest.approx(total)
                if months:
                    assert emi.monthly * months <= emi.remaining + 1e-9
                else:
                    assert emi.monthly == 0


def test_compute_emi_is_deterministic():
    assert compute_emi(12000, 2000, 7) == compute_emi(12000, 2000, 7)


def test_negative_input_is_rejected():
    with pytest.raises(PricingError):
        compute_emi(-1, 0, 3)
    with pytest.raises(PricingError):
        compute_emi(100, 0, -3)


@pytest.mark.parametrize("plan,expected", [
    ("3,6,9", 3),
    (" 6 , 12", 6),
    ("12", 12),
    ("", 0),
    (None, 0),
    ("six,12", 0),
])
def test_first_month_of_plan_string(plan, expected):
    assert select_months_from_plan_string(plan) == expected


def test_plan_is_sorted_and_deduplicated():
    assert parse_emi_plan("9,3,6,3") == [3, 6, 9]
    assert parse_emi_plan([12, 6]) == [6, 12]
    assert parse_emi_plan("3, ,6,") == [3, 6]
    assert parse_emi_plan(None) == []


@pytest.mark.parametrize("bad", ["3,x", "0", "-6", [2.5]])
def test_invalid_plan_rejected(bad):
    with pytest.raises(PricingError):
        parse_emi_plan(bad)


def test_offer_price():
    assert pricing.offer_price(5000, 16) == 4200
    assert pricing.offer_price(5000, 150) == 0
    assert pricing.offer_price(5000, None) == 5000
    assert pricing.offer_price(None, 10) is None


def test_netpay_quote_uses_netpay_price():
    q = pricing.quote({"price": 5000, "netpay_price": 4199}, NETPAY)
    assert q.amount == 4199
    assert q.units == 1
    assert q.emi is None


def test_netpay_quote_falls_back_to_base_price():
    assert pricing.quote({"price": 5000}).amount == 5000
    with pytest.raises(PricingError):
        pricing.quote({})


def test_buy_one_get_one_doubles_units_for_netpay_only():
    product = {"netpay_price": 999, "buy_one_get_one": True}
    assert pricing.quote(product, NETPAY).units == 2
    assert pricing.quote(product, EMI, 3, 0).units == 1


def test_fixed_down_payment_wins_over_buyer_input():
    product = {"netpay_price": 12000, "down_payment_amount": 2000}
    q = pricing.quote(product, EMI, 6, 500)
    assert q.emi.down_payment == 2000
    assert q.emi.remaining == 10000


def test_buyer_down_payment_used_when_product_has_none():
    q = pricing.quote({"netpay_price": 12000}, EMI, 12, 3000)
    assert q.emi.remaining == 9000
    assert q.emi.monthly == 750


def test_unknown_payment_type():
    with pytest.raises(PricingError):
        pricing.quote({"netpay_price": 1}, "COD")
