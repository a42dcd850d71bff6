"""Currency utilities — money rounding, static conversion and display formatting."""

from decimal import ROUND_HALF_UP, Decimal

from app.exceptions import UnsupportedCurrencyError

CENT = Decimal("0.01")

# Major airports → currency mapping (used to pick a quote currency for mock searches)
AIRPORT_CURRENCIES: dict[str, str] = {
    # Canada
    "YYZ": "CAD", "YVR": "CAD", "YUL": "CAD", "YOW": "CAD", "YYC": "CAD",
    # United States
    "JFK": "USD", "LAX": "USD", "ORD": "USD", "ATL": "USD", "DFW": "USD",
    "SFO": "USD", "SEA": "USD", "MIA": "USD", "BOS": "USD", "DEN": "USD",
    "IAH": "USD", "EWR": "USD", "LGA": "USD", "IAD": "USD", "DCA": "USD",
    # United Kingdom
    "LHR": "GBP", "LGW": "GBP", "MAN": "GBP", "EDI": "GBP",
    # Eurozone
    "CDG": "EUR", "FRA": "EUR", "MUC": "EUR", "AMS": "EUR", "MAD": "EUR",
    "BCN": "EUR", "FCO": "EUR", "DUB": "EUR", "LIS": "EUR", "VIE": "EUR",
}

# Static exchange rates to USD (can be updated periodically)
EXCHANGE_RATES_TO_USD: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "CAD": Decimal("0.74"),
    "GBP": Decimal("1.27"),
    "EUR": Decimal("1.08"),
    "JPY": Decimal("0.0067"),
    "AUD": Decimal("0.65"),
    "SGD": Decimal("0.75"),
    "INR": Decimal("0.012"),
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$", "CAD": "CA$", "GBP": "£", "EUR": "€",
    "JPY": "¥", "AUD": "A$", "SGD": "S$", "INR": "₹",
}


def to_money(amount: Decimal | float | int | str) -> Decimal:
    """Quantize to cents. Floats go through ``str`` so 0.1 stays 0.10."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def get_currency_for_airport(iata_code: str) -> str:
    """Get local currency for an airport. Defaults to USD for unknown airports."""
    return AIRPORT_CURRENCIES.get(iata_code.upper(), "USD")


def normalize_currency(code: str | None) -> str:
    """Canonical three-letter code; anything without a known rate is refused."""
    normalized = str(code).strip().upper() if code is not None else ""
    if normalized not in EXCHANGE_RATES_TO_USD:
        raise UnsupportedCurrencyError(code)
    return normalized


def rate_to_usd(currency: str) -> Decimal:
    return EXCHANGE_RATES_TO_USD[normalize_currency(currency)]


def convert_to_usd(amount: Decimal, from_currency: str) -> Decimal:
    """Convert an amount to USD using static exchange rates."""
    return to_money(amount * rate_to_usd(from_currency))


def format_price(amount: Decimal, currency: str = "USD") -> str:
    """Format a price with currency symbol for display."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{to_money(amount):,.2f}"


def convert(amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
    """Convert between two currencies through USD."""
    if normalize_currency(from_currency) == normalize_currency(to_currency):
        return to_money(amount)
    to_rate = rate_to_usd(to_currency)
    return to_money(convert_to_usd(amount, from_currency) / to_rate)
