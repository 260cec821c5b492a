CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "CAD": "C$",
    "AUD": "A$",
    "NZD": "NZ$",
    "CHF": "CHF",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "BRL": "R$",
    "MXN": "$",
    "ZAR": "R",
    "KRW": "₩",
    "SGD": "S$",
    "HKD": "HK$",
    "TRY": "₺",
    "AED": "د.إ",
    "SAR": "﷼",
    "ILS": "₪",
    "NGN": "₦",
    "PHP": "₱",
    "THB": "฿",
    "IDR": "Rp",
    "RUB": "₽",
}

DEFAULT_CURRENCY_SYMBOL = "$"


def currency_symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code.strip().upper(), DEFAULT_CURRENCY_SYMBOL)
