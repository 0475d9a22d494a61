"""Подмодуль сервисов, связанных со счетами."""

from .calculation import InvoiceTotals, calculate_totals, line_amount, subtotal, tax, total

__all__ = [
    "InvoiceTotals",
    "calculate_totals",
    "line_amount",
    "subtotal",
    "tax",
    "total",
]
