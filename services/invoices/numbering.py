"""Номера счетов вида ``INV-2024-0001`` с отдельной нумерацией на каждый год."""

from __future__ import annotations

from datetime import date

from peewee import IntegrityError

from database.db import db
from database.models import InvoiceSequence

PREFIX = "INV"
_MAX_SEQUENCE_RETRIES = 5


def format_invoice_number(year: int, number: int) -> str:
    return f"{PREFIX}-{year}-{number:04d}"


def next_invoice_number(issue_date: date | None = None) -> str:
    """Следующий номер за год ``issue_date``.

    Счётчик увеличивается одним UPDATE; если строки года ещё нет, она
    создаётся, а при гонке вставки попытка повторяется.
    """
    year = (issue_date or date.today()).year
    for _ in range(_MAX_SEQUENCE_RETRIES):
        with db.atomic():
            updated = (
                InvoiceSequence.update(last_number=InvoiceSequence.last_number + 1)
                .where(InvoiceSequence.year == year)
                .execute()
            )
            if updated:
                seq = InvoiceSequence.get(InvoiceSequence.year == year)
                return format_invoice_number(year, seq.last_number)
            try:
                with db.atomic():
                    InvoiceSequence.create(year=year, last_number=1)
                return format_invoice_number(year, 1)
            except IntegrityError:
                continue
    raise RuntimeError("next_invoice_number: слишком много повторов при конкурентной вставке")
