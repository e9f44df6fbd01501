"""Currency registry backed by the CLDR data shipped with Babel."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import List, Optional, Union

from babel import numbers  # type: ignore

from .core.errors import UnknownCurrencyError

DISPLAY_LOCALE = "en_US"

# Presented first when a user picks a currency
POPULAR_CURRENCIES = [
    "USD", "EUR", "GBP", "JPY", "AUD", "CAD", "CHF", "CNY", "SEK", "NZD",
    "MXN", "SGD", "HKD", "NOK", "TRY", "RUB", "INR", "BRL", "ZAR", "KRW",
]

FALLBACK_SYMBOL = "$"
CENT = Decimal("0.01")


@dataclass(frozen=True)
class Currency:
    code: str
    name: str
    symbol: str


@lru_cache(maxsize=1)
def _known_codes() -> frozenset:
    return frozenset(code.upper() for code in numbers.list_currencies())


@lru_cache(maxsize=None)
def resolve(code: str) -> Currency:
    """Look up a currency by ISO 4217 code.

    Raises UnknownCurrencyError when the code is not part of the registry.
    """
    normalized = (code or "").strip().upper()
    if normalized not in _known_codes():
        raise UnknownCurrencyError(normalized or str(code))
    return Currency(
        code=normalized,
        name=numbers.get_currency_name(normalized, locale=DISPLAY_LOCALE),
        symbol=numbers.get_currency_symbol(normalized, locale=DISPLAY_LOCALE) or normalized,
    )


def is_known(code: Optional[str]) -> bool:
    return bool(code) and code.strip().upper() in _known_codes()


def symbol_for(code: Optional[str]) -> str:
    """Symbol for display; unknown codes fall back to the code itself, or "$"."""
    try:
        return resolve(code or "").symbol
    except UnknownCurrencyError:
        return (code or "").strip().upper() or FALLBACK_SYMBOL


@lru_cache(maxsize=1)
def list_currencies() -> List[Currency]:
    """Every known currency, popular ones first, the rest alphabetically."""
    popular = [resolve(code) for code in POPULAR_CURRENCIES if is_known(code)]
    others = [resolve(code) for code in sorted(_known_codes()) if code not in POPULAR_CURRENCIES]
    return popular + others


def round_money(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Round to 2 decimal places for display."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Union[Decimal, int, float, str], currency_code: Optional[str]) -> str:
    """Format an amount with its currency symbol, e.g. ``$1,800.00`` or ``-€230.00``."""
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol_for(currency_code)}{abs(value):,.2f}"
