from decimal import Decimal

import pytest

from payroll_api.common.errors import ValidationFailed
from payroll_api.common.money import percent_of, prorate, round_paisa, to_paisa, to_rate


def test_to_paisa_accepts_non_negative_ints():
    assert to_paisa(0) == 0
    assert to_paisa(50000, "base") == 50000


@pytest.mark.parametrize("bad", [-1, 1.5, "100", True])
def test_to_paisa_rejects_non_integer_or_negative(bad):
    with pytest.raises(ValidationFailed):
        to_paisa(bad, "amount")


def test_to_paisa_default_for_missing():
    assert to_paisa(None, "hra", default=0) == 0
    with pytest.raises(ValidationFailed):
        to_paisa(None, "hra")


def test_percent_of_rounds_half_up():
    assert percent_of(10000, 15) == 1500
    assert percent_of(60000, 15) == 9000
    # 333 * 12.5% = 41.625 -> 42
    assert percent_of(333, Decimal("12.5")) == 42
    assert round_paisa(Decimal("0.5")) == 1


def test_prorate():
    assert prorate(30000, 3, 30) == 3000
    assert prorate(31000, Decimal("0.5"), 31) == 500
    assert prorate(1000, 1, 0) == 0


def test_to_rate():
    assert to_rate("1.50", "m") == Decimal("1.50")
    with pytest.raises(ValidationFailed):
        to_rate(-1, "m")
    with pytest.raises(ValidationFailed):
        to_rate("abc", "m")
