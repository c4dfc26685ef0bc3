"""Money formatting for cart and confirmation displays."""

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}

# Currencies Stripe charges without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "UGX"})

CENTS = Decimal("0.01")


def format_price(amount: Decimal, currency: str = "usd") -> str:
    """Format a major-unit amount, e.g. ``Decimal("12.5")`` -> ``"$12.50"``."""
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        number = f"{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"
    else:
        number = f"{amount.quantize(CENTS, rounding=ROUND_HALF_UP):,}"

    if number.startswith("-"):
        return "-" + _with_symbol(number[1:], code)
    return _with_symbol(number, code)


def format_amount(amount_minor: int, currency: str) -> str:
    """
    Format an amount given in minor currency units.

    Examples:
        format_amount(4599, "usd") -> "$45.99"
        format_amount(1200, "jpy") -> "¥1,200"
    """
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return format_price(Decimal(amount_minor), code)
    return format_price(Decimal(amount_minor) / 100, code)


def _with_symbol(number: str, code: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{number}"
    return f"{code} {number}"
