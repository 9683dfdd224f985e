from decimal import Decimal

from enrichment.amounts import format_decimal, from_base_units, is_present, quantize, to_decimal
from enrichment.savings import compute_savings
from storage.models import ValuationSnapshot


def test_savings_gain_is_relative_to_amount_in():
    created = ValuationSnapshot(amount_in="100", amount_out_min="95")
    executed = ValuationSnapshot(amount_out_min="95", received="110")

    savings = compute_savings(created, executed)

    assert savings is not None
    assert savings.percentage == "10.00000"
    assert savings.amount == "10"


def test_savings_loss_uses_amount_in_as_denominator():
    created = ValuationSnapshot(amount_in="50", amount_out_min="45")
    executed = ValuationSnapshot(received="40")

    savings = compute_savings(created, executed)

    # (40 - 50) / 50, not (40 - 50) / 40
    assert savings.percentage == "-20.00000"
    assert savings.amount == "-10"


def test_savings_rounds_half_up_to_five_places():
    created = ValuationSnapshot(amount_in="3")
    executed = ValuationSnapshot(received="4")

    savings = compute_savings(created, executed)

    assert savings.percentage == "33.33333"
    assert Decimal(savings.amount) == Decimal(1)


def test_savings_missing_inputs_return_none():
    created = ValuationSnapshot(amount_in="100")

    assert compute_savings(None, ValuationSnapshot(received="1")) is None
    assert compute_savings(created, None) is None
    assert compute_savings(created, ValuationSnapshot()) is None
    assert compute_savings(ValuationSnapshot(amount_in="0"), ValuationSnapshot(received="5")) is None
    assert compute_savings(ValuationSnapshot(amount_in="abc"), ValuationSnapshot(received="5")) is None


def test_zero_received_is_unresolved_not_a_total_loss():
    created = ValuationSnapshot(amount_in="100")

    assert compute_savings(created, ValuationSnapshot(received="0")) is None
    assert compute_savings(created, ValuationSnapshot(received="0.000")) is None


def test_amount_helpers():
    assert to_decimal("") is None
    assert to_decimal("not-a-number") is None
    assert to_decimal("NaN") is None
    assert to_decimal("1.50") == Decimal("1.5")

    assert is_present("0") is False
    assert is_present("0.000") is False
    assert is_present(None) is False
    assert is_present("0.01") is True

    assert format_decimal(Decimal("0E-10")) == "0"
    assert format_decimal(Decimal("1.2300")) == "1.23"
    assert format_decimal(Decimal("1E+3")) == "1000"

    assert from_base_units("1500000", 6) == Decimal("1.5")
    max_uint = str(2**256 - 1)
    assert from_base_units(max_uint, 18) == Decimal(max_uint[:-18] + "." + max_uint[-18:])
    assert quantize(Decimal("0.125"), 2) == Decimal("0.13")
