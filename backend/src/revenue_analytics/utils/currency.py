"""Currency formatting for amounts quoted in insight and alert messages."""

# Currencies that don't use decimal places (smallest unit is whole currency)
zero_decimal_currencies = [
    "JPY",  # Japanese Yen
    "KRW",  # South Korean Won
    "VND",  # Vietnamese Đồng
    "CLP",  # Chilean Peso
    "ISK",  # Icelandic Króna
    "TWD",  # Taiwan Dollar
]

currency_symbols = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "CHF": "CHF",
    "KRW": "₩",
}


def format_amount_for_currency(amount: int, currency: str) -> str:
    """
    Format an amount in cents/smallest unit to a human-readable string.

    Args:
        amount: Amount in smallest currency unit (cents for USD/EUR, whole yen for JPY)
        currency: ISO 4217 currency code

    Returns:
        Formatted string with currency symbol and amount

    Examples:
        >>> format_amount_for_currency(5000, "USD")
        '$50.00'
        >>> format_amount_for_currency(-120050, "EUR")
        '-€1,200.50'
        >>> format_amount_for_currency(1000, "JPY")
        '¥1,000'
    """
    currency_upper = currency.upper()
    symbol = currency_symbols.get(currency_upper, f"{currency_upper} ")
    sign = "-" if amount < 0 else ""

    if currency_upper in zero_decimal_currencies:
        return f"{sign}{symbol}{abs(amount):,}"
    return f"{sign}{symbol}{abs(amount) / 100:,.2f}"


def format_percent(value: float) -> str:
    """
    Format a percentage with one decimal place.

    Example:
        >>> format_percent(12.345)
        '12.3%'
    """
    return f"{value:.1f}%"
