"""
Currency symbols and price formatting.

The set of supported currencies is small and fixed, so this is a plain
lookup table rather than a locale library.
"""

from decimal import Decimal

from giftfinder.agents.state import PriceRange

DEFAULT_SYMBOL = "$"

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "CAD": "C$",
    "AUD": "A$",
    "JPY": "¥",
    "CNY": "¥",
    "KRW": "₩",
    "BRL": "R$",
    "MXN": "MX$",
    "INR": "₹",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "TRY": "₺",
    "THB": "฿",
    "CHF": "CHF",
}


def currency_symbol(currency: str) -> str:
    """Map an ISO-like currency code to its display symbol ($ if unknown)."""
    return CURRENCY_SYMBOLS.get((currency or "").strip().upper(), DEFAULT_SYMBOL)


def format_amount(amount: Decimal) -> str:
    """Whole amounts print without decimals, anything else with two."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def format_price(amount: Decimal, currency: str) -> str:
    """Format a single amount, e.g. ``format_price(50, "GBP") -> "£50"``."""
    return f"{currency_symbol(currency)}{format_amount(amount)}"


def format_price_range(price_range: PriceRange, currency: str) -> str:
    """Format a range, e.g. ``"£50 - £75"``."""
    return (
        f"{format_price(price_range.min_amount, currency)} - "
        f"{format_price(price_range.max_amount, currency)}"
    )
