from decimal import Decimal, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.01")
TENTH_QUANT = Decimal("0.1")


def money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def tenth(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(TENTH_QUANT, rounding=ROUND_HALF_UP)


def safe_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def format_amount(value: float) -> str:
    if value == 0:
        return "-"
    return f"{money(value):,.2f}"
