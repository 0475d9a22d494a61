"""Арифметика строк счёта: суммы округляются вниз до целых иен."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

TAX_RATE = Decimal("0.10")
# точность колонки invoiceitem.quantity
QUANTITY_STEP = Decimal("0.001")


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # через str, чтобы 0.1 не превращалось в 0.1000000000000000055...
        return Decimal(str(value))
    return Decimal(value)


def round_quantity(value) -> Decimal:
    """Количество с точностью хранения, до расчёта суммы строки."""
    return to_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def line_amount(quantity, unit_price) -> int:
    """floor(quantity × unit_price)."""
    return _floor(to_decimal(quantity) * to_decimal(unit_price))


def subtotal(amounts: Iterable[int]) -> int:
    return sum(amounts)


def tax(subtotal_amount: int, rate: Decimal = TAX_RATE) -> int:
    return _floor(Decimal(subtotal_amount) * rate)


def total(subtotal_amount: int, rate: Decimal = TAX_RATE) -> int:
    return subtotal_amount + tax(subtotal_amount, rate)


@dataclass(frozen=True)
class InvoiceTotals:
    line_amounts: list[int]
    subtotal: int
    tax: int
    total: int


def calculate_totals(items: Sequence[tuple[object, object]]) -> InvoiceTotals:
    """Итоги по парам ``(quantity, unit_price)``.

    >>> calculate_totals([(1, 3000), (Decimal("0.333"), 2000)]).total
    4032
    """
    amounts = [line_amount(quantity, unit_price) for quantity, unit_price in items]
    sub = subtotal(amounts)
    return InvoiceTotals(line_amounts=amounts, subtotal=sub, tax=tax(sub), total=sub + tax(sub))
