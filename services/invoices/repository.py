"""Хранилище счетов и их строк."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Sequence

from peewee import fn

from database.db import db
from database.models import Invoice, InvoiceItem
from services.invoices.dto import InvoiceDTO, InvoiceItemDTO
from services.query_utils import apply_order, apply_text_search, paginate
from services.repositories import store_errors
from utils.time_utils import utc_now

INVOICE_TEXT_FIELDS = (Invoice.invoice_number, Invoice.billing_name, Invoice.billing_address)

INVOICE_SORT_FIELDS = {
    "issue_date": Invoice.issue_date,
    "total_amount": Invoice.total_amount,
    "invoice_number": Invoice.invoice_number,
    "billing_name": Invoice.billing_name,
    "created_at": Invoice.created_at,
}


class InvoiceRepository:
    def _items(self, invoice_ids: Sequence[uuid.UUID]) -> dict[str, list[InvoiceItemDTO]]:
        result: dict[str, list[InvoiceItemDTO]] = {str(i): [] for i in invoice_ids}
        if not invoice_ids:
            return result
        query = (
            InvoiceItem.active()
            .where(InvoiceItem.invoice.in_(list(invoice_ids)))
            .order_by(InvoiceItem.display_order, InvoiceItem.created_at)
        )
        for item in query:
            result[str(item.invoice_id)].append(InvoiceItemDTO.from_model(item))
        return result

    def _insert_items(self, invoice_id: uuid.UUID, rows: Sequence[dict[str, Any]]) -> None:
        now = utc_now()
        payload = [
            {**row, "invoice": invoice_id, "display_order": position, "created_at": now, "updated_at": now}
            for position, row in enumerate(rows)
        ]
        for row in payload:
            row.setdefault("id", uuid.uuid4())
        if payload:
            InvoiceItem.insert_many(payload).execute()

    def get(self, invoice_id: uuid.UUID) -> InvoiceDTO | None:
        with store_errors("получение счёта"):
            invoice = Invoice.active().where(Invoice.id == invoice_id).first()
            if invoice is None:
                return None
            items = self._items([invoice.id])[str(invoice.id)]
        return InvoiceDTO.from_model(invoice, items)

    def list_active(self) -> list[InvoiceDTO]:
        query = Invoice.active().order_by(Invoice.issue_date.desc(), Invoice.created_at.desc())
        with store_errors("список счетов"):
            return [InvoiceDTO.from_model(invoice) for invoice in query]

    def list_with_items(self, invoice_ids: Sequence[uuid.UUID]) -> list[InvoiceDTO]:
        """Активные счета по id со строками, по возрастанию номера."""
        if not invoice_ids:
            return []
        query = (
            Invoice.active()
            .where(Invoice.id.in_(list(invoice_ids)))
            .order_by(Invoice.invoice_number)
        )
        with store_errors("выгрузка счетов"):
            invoices = list(query)
            items = self._items([invoice.id for invoice in invoices])
        return [InvoiceDTO.from_model(invoice, items[str(invoice.id)]) for invoice in invoices]

    def create(
        self, header: dict[str, Any], items: Sequence[dict[str, Any]], number_factory
    ) -> InvoiceDTO:
        """Создаёт счёт и строки в одной транзакции; номер выдаёт ``number_factory``."""
        with store_errors("создание счёта"):
            with db.atomic():
                invoice = Invoice.create(invoice_number=number_factory(header["issue_date"]), **header)
                self._insert_items(invoice.id, items)
        return self.get(invoice.id)

    def update(
        self,
        invoice_id: uuid.UUID,
        header: dict[str, Any],
        items: Sequence[dict[str, Any]] | None,
    ) -> InvoiceDTO | None:
        with store_errors("обновление счёта"):
            with db.atomic():
                invoice = Invoice.active().where(Invoice.id == invoice_id).first()
                if invoice is None:
                    return None
                for key, value in header.items():
                    setattr(invoice, key, value)
                if items is not None:
                    (
                        InvoiceItem.update(deleted_at=utc_now())
                        .where((InvoiceItem.invoice == invoice.id) & InvoiceItem.deleted_at.is_null(True))
                        .execute()
                    )
                    self._insert_items(invoice.id, items)
                invoice.touch()
                invoice.save()
        return self.get(invoice_id)

    # ───── Удаление ─────

    def active_ids(self, invoice_ids: Sequence[uuid.UUID]) -> set[uuid.UUID]:
        if not invoice_ids:
            return set()
        query = Invoice.active().select(Invoice.id).where(Invoice.id.in_(list(invoice_ids))).tuples()
        with store_errors("проверка счетов"):
            return {invoice_id for (invoice_id,) in query}

    def soft_delete_invoices(self, invoice_ids: Sequence[uuid.UUID]) -> int:
        with store_errors("удаление счетов"):
            with db.atomic():
                return (
                    Invoice.update(deleted_at=utc_now())
                    .where(Invoice.id.in_(list(invoice_ids)) & Invoice.deleted_at.is_null(True))
                    .execute()
                )

    def soft_delete_items(self, invoice_ids: Sequence[uuid.UUID]) -> int:
        with store_errors("мягкое удаление строк счетов"):
            with db.atomic():
                return (
                    InvoiceItem.update(deleted_at=utc_now())
                    .where(InvoiceItem.invoice.in_(list(invoice_ids)) & InvoiceItem.deleted_at.is_null(True))
                    .execute()
                )

    def hard_delete_items(self, invoice_ids: Sequence[uuid.UUID]) -> int:
        with store_errors("удаление строк счетов"):
            with db.atomic():
                return InvoiceItem.delete().where(InvoiceItem.invoice.in_(list(invoice_ids))).execute()

    # ───── Поиск ─────

    def search(
        self,
        *,
        search_text: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        amount_min: int | None = None,
        amount_max: int | None = None,
        customer_ids: Sequence[uuid.UUID] | None = None,
        sort_by: str = "issue_date",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[InvoiceDTO], int, int]:
        """Страница счетов, их общее число и сумма ``total_amount`` по фильтру."""
        query = Invoice.active()
        query = apply_text_search(query, INVOICE_TEXT_FIELDS, search_text)
        if date_from is not None:
            query = query.where(Invoice.issue_date >= date_from)
        if date_to is not None:
            query = query.where(Invoice.issue_date <= date_to)
        if amount_min is not None:
            query = query.where(Invoice.total_amount >= amount_min)
        if amount_max is not None:
            query = query.where(Invoice.total_amount <= amount_max)
        if customer_ids is not None:
            query = query.where(Invoice.customer.in_(list(customer_ids)))

        with store_errors("поиск счетов"):
            amount_sum = (
                query.select(fn.COALESCE(fn.SUM(Invoice.total_amount), 0)).order_by().scalar()
            )
            ordered = apply_order(query, INVOICE_SORT_FIELDS[sort_by], sort_order, Invoice.id)
            rows, total = paginate(ordered, page, limit)
        return [InvoiceDTO.from_model(row) for row in rows], total, int(amount_sum or 0)
