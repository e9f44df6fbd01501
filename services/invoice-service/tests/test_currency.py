from decimal import Decimal

import pytest

from invoice_studio import currency
from invoice_studio.core.errors import UnknownCurrencyError


def test_resolve_known_currency():
    euro = currency.resolve("eur")
    assert euro.code == "EUR"
    assert euro.symbol == "€"
    assert euro.name == "Euro"


def test_resolve_unknown_currency():
    with pytest.raises(UnknownCurrencyError) as exc_info:
        currency.resolve("QQQ")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Unknown currency code: QQQ"


def test_popular_currencies_come_first():
    codes = [item.code for item in currency.list_currencies()]
    assert codes[:3] == ["USD", "EUR", "GBP"]
    assert len(codes) > len(currency.POPULAR_CURRENCIES)
    assert len(codes) == len(set(codes))


def test_symbol_fallbacks():
    assert currency.symbol_for("GBP") == "£"
    assert currency.symbol_for("qqq") == "QQQ"
    assert currency.symbol_for(None) == "$"


@pytest.mark.parametrize(
    "amount,code,expected",
    [
        (Decimal("1800"), "USD", "$1,800.00"),
        (Decimal("-230"), "EUR", "-€230.00"),
        (Decimal("2380.505"), "USD", "$2,380.51"),
        (Decimal("0"), "GBP", "£0.00"),
    ],
)
def test_format_amount(amount, code, expected):
    assert currency.format_amount(amount, code) == expected


def test_round_money_half_up():
    assert currency.round_money(Decimal("0.125")) == Decimal("0.13")
    assert currency.round_money("2.675") == Decimal("2.68")
