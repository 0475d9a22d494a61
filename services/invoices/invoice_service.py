"""Счета: создание, изменение, удаление (в том числе массовое) и поиск."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Sequence

from database.db import db
from services.errors import (
    AppError,
    FieldError,
    NotFoundError,
    StoreError,
    ValidationError,
    first_message,
)
from services.invoices.calculation import line_amount, round_quantity, subtotal, to_decimal, total
from services.invoices.dto import (
    InvoiceCreateCommand,
    InvoiceDTO,
    InvoiceItemInput,
    InvoiceUpdateCommand,
)
from services.invoices.numbering import next_invoice_number
from services.invoices.repository import INVOICE_SORT_FIELDS, InvoiceRepository
from services.query_utils import normalize_order, normalize_pagination, total_pages
from services.validators import clean_str, parse_date, parse_uuid

logger = logging.getLogger(__name__)

INVOICE_NOT_FOUND = "請求書が見つかりません"
BULK_BATCH_SIZE = 10
BULK_MAX_IDS = 100
SORT_ALIASES = {"amount": "total_amount"}


def _parse_items(items: Sequence[InvoiceItemInput]) -> tuple[list[dict[str, Any]], list[FieldError]]:
    rows: list[dict[str, Any]] = []
    errors: list[FieldError] = []
    for position, item in enumerate(items):
        prefix = f"items[{position}]"
        name = clean_str(item.item_name)
        if not name:
            errors.append(FieldError(f"{prefix}.item_name", "品目名は必須です"))
        try:
            quantity = round_quantity(item.quantity)
            if not quantity.is_finite() or quantity <= 0:
                raise InvalidOperation
        except (InvalidOperation, TypeError, ValueError):
            errors.append(FieldError(f"{prefix}.quantity", "数量は0より大きい数値を入力してください"))
            quantity = None
        try:
            unit_price = to_decimal(item.unit_price)
            if not unit_price.is_finite() or unit_price < 0 or unit_price != unit_price.to_integral_value():
                raise InvalidOperation
            unit_price = int(unit_price)
        except (InvalidOperation, TypeError, ValueError):
            errors.append(FieldError(f"{prefix}.unit_price", "単価は0以上の整数を入力してください"))
            unit_price = None
        product_id = None
        if clean_str(item.product_id):
            product_id = parse_uuid(item.product_id)
            if product_id is None:
                errors.append(FieldError(f"{prefix}.product_id", "商品IDが不正です"))
        if quantity is None or unit_price is None or not name:
            continue
        rows.append(
            {
                "item_name": name,
                "quantity": quantity,
                "unit_price": unit_price,
                "amount": line_amount(quantity, unit_price),
                "unit": clean_str(item.unit) or "個",
                "description": clean_str(item.description),
                "product": product_id,
            }
        )
    return rows, errors


def _with_total(rows: list[dict[str, Any]]) -> int:
    return total(subtotal(row["amount"] for row in rows))


def _unique_ids(raw_ids: Sequence[Any]) -> list[Any]:
    """Повторы одного счёта схлопываются, порядок первых вхождений сохраняется."""
    unique: dict[Any, Any] = {}
    for raw in raw_ids:
        unique.setdefault(parse_uuid(raw) or str(raw), raw)
    return list(unique.values())


class _BatchFailure(AppError):
    """Пакет массового удаления откатывается целиком."""


@dataclass
class BulkDeleteResult:
    success: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    def fail(self, invoice_id: Any, error: str) -> None:
        self.failed.append({"id": str(invoice_id), "error": error})

    @property
    def message(self) -> str:
        text = f"{len(self.success)}件の請求書を削除しました"
        if self.failed:
            text += f"（{len(self.failed)}件失敗）"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {"success": list(self.success), "failed": list(self.failed)}


@dataclass
class InvoiceSearchParams:
    q: str | None = None
    date_from: Any = None
    date_to: Any = None
    amount_min: Any = None
    amount_max: Any = None
    customer_ids: Sequence[str] = ()
    sort_by: str | None = "issue_date"
    sort_order: str | None = "desc"
    page: Any = 1
    limit: Any = 20


@dataclass
class InvoiceSearchResult:
    invoices: list[InvoiceDTO]
    total_count: int
    total_amount: int
    page: int
    limit: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoices": [invoice.to_dict(with_items=False) for invoice in self.invoices],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total_count,
                "totalPages": total_pages(self.total_count, self.limit),
            },
            "stats": {"total_count": self.total_count, "total_amount": self.total_amount},
        }


def _optional_int(value: Any, field_name: str, errors: list[FieldError]) -> int | None:
    text = clean_str(value)
    if text is None:
        return None
    try:
        return int(Decimal(text))
    except (InvalidOperation, ValueError):
        errors.append(FieldError(field_name, "数値を指定してください"))
        return None


def _optional_date(value: Any, field_name: str, errors: list[FieldError]):
    try:
        return parse_date(value)
    except ValueError:
        errors.append(FieldError(field_name, "日付の形式が不正です"))
        return None


class InvoiceService:
    def __init__(
        self,
        invoice_repository: InvoiceRepository,
        number_factory: Callable = next_invoice_number,
    ) -> None:
        self._invoices = invoice_repository
        self._number_factory = number_factory

    def _require_id(self, invoice_id: Any) -> uuid.UUID:
        parsed = parse_uuid(invoice_id)
        if parsed is None:
            raise NotFoundError(INVOICE_NOT_FOUND)
        return parsed

    # ───── Получение ─────

    def get(self, invoice_id: Any) -> InvoiceDTO:
        invoice = self._invoices.get(self._require_id(invoice_id))
        if invoice is None:
            raise NotFoundError(INVOICE_NOT_FOUND)
        return invoice

    def list(self) -> list[InvoiceDTO]:
        return self._invoices.list_active()

    # ───── Создание и изменение ─────

    def _header(self, values: dict[str, Any], errors: list[FieldError], *, partial: bool) -> dict[str, Any]:
        header: dict[str, Any] = {}
        if not partial or "issue_date" in values:
            try:
                issue_date = parse_date(values.get("issue_date"))
            except ValueError:
                issue_date = None
            if issue_date is None:
                errors.append(FieldError("issue_date", "発行日は必須です"))
            header["issue_date"] = issue_date
        if not partial or "billing_name" in values:
            billing_name = clean_str(values.get("billing_name"))
            if not billing_name:
                errors.append(FieldError("billing_name", "請求先名は必須です"))
            header["billing_name"] = billing_name
        if "billing_address" in values:
            header["billing_address"] = clean_str(values.get("billing_address"))
        if not partial or "billing_honorific" in values:
            header["billing_honorific"] = clean_str(values.get("billing_honorific")) or "様"
        if "customer_id" in values:
            raw = clean_str(values.get("customer_id"))
            customer_id = parse_uuid(raw) if raw else None
            if raw and customer_id is None:
                errors.append(FieldError("customer_id", "顧客IDが不正です"))
            header["customer"] = customer_id
        return header

    def create(self, command: InvoiceCreateCommand) -> InvoiceDTO:
        errors: list[FieldError] = []
        header = self._header(
            {
                "issue_date": command.issue_date,
                "billing_name": command.billing_name,
                "billing_address": command.billing_address,
                "billing_honorific": command.billing_honorific,
                "customer_id": command.customer_id,
            },
            errors,
            partial=False,
        )
        if not command.items:
            errors.append(FieldError("items", "明細を1件以上入力してください"))
        rows, item_errors = _parse_items(command.items)
        errors.extend(item_errors)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)

        header["total_amount"] = _with_total(rows)
        invoice = self._invoices.create(header, rows, self._number_factory)
        logger.info(
            "✅ Счёт %s создан (id=%s, сумма=%s)", invoice.invoice_number, invoice.id, invoice.total_amount
        )
        return invoice

    def update(self, command: InvoiceUpdateCommand) -> InvoiceDTO:
        uid = self._require_id(command.id)
        if self._invoices.get(uid) is None:
            raise NotFoundError(INVOICE_NOT_FOUND)

        errors: list[FieldError] = []
        values = {k: v for k, v in command.values.items() if k != "invoice_number"}
        header = self._header(values, errors, partial=True)
        rows = None
        if command.items is not None:
            if not command.items:
                errors.append(FieldError("items", "明細を1件以上入力してください"))
            rows, item_errors = _parse_items(command.items)
            errors.extend(item_errors)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)

        if rows is not None:
            header["total_amount"] = _with_total(rows)
        invoice = self._invoices.update(uid, header, rows)
        if invoice is None:
            raise NotFoundError(INVOICE_NOT_FOUND)
        logger.info("✏️ Счёт %s обновлён", invoice.invoice_number)
        return invoice

    # ───── Удаление ─────

    def delete(self, invoice_id: Any) -> None:
        uid = self._require_id(invoice_id)
        if not self._invoices.active_ids([uid]):
            raise NotFoundError(INVOICE_NOT_FOUND)
        with db.atomic():
            self._invoices.soft_delete_invoices([uid])
            self._invoices.soft_delete_items([uid])
        logger.info("🗑 Счёт id=%s помечен удалённым", uid)

    def _delete_items(self, invoice_ids: list[uuid.UUID]) -> None:
        try:
            self._invoices.soft_delete_items(invoice_ids)
        except StoreError:
            logger.warning(
                "⚠️ Мягкое удаление строк не удалось, удаляем физически: %s",
                [str(i) for i in invoice_ids],
            )
            self._invoices.hard_delete_items(invoice_ids)

    def _delete_batch(self, batch: Sequence[Any], result: BulkDeleteResult) -> None:
        parsed: list[uuid.UUID] = []
        for raw in batch:
            uid = parse_uuid(raw)
            if uid is None:
                result.fail(raw, "無効な請求書IDです")
            else:
                parsed.append(uid)
        if not parsed:
            return

        try:
            existing = self._invoices.active_ids(parsed)
        except StoreError:
            for uid in parsed:
                result.fail(uid, "請求書の削除に失敗しました")
            return
        found = []
        for uid in parsed:
            if uid in existing:
                found.append(uid)
            else:
                result.fail(uid, INVOICE_NOT_FOUND)
        if not found:
            return

        try:
            with db.atomic():
                try:
                    self._delete_items(found)
                except StoreError as exc:
                    raise _BatchFailure("明細の削除に失敗しました") from exc
                try:
                    self._invoices.soft_delete_invoices(found)
                except StoreError as exc:
                    raise _BatchFailure("請求書の削除に失敗しました") from exc
        except _BatchFailure as failure:
            logger.error("❌ Пакет из %s счетов не удалён: %s", len(found), failure.message)
            for uid in found:
                result.fail(uid, failure.message)
            return
        result.success.extend(str(uid) for uid in found)

    def bulk_delete(self, invoice_ids: Any) -> BulkDeleteResult:
        """Удаляет счета пакетами по 10; сбой одного пакета не трогает остальные."""
        if not isinstance(invoice_ids, (list, tuple)) or not invoice_ids:
            raise ValidationError("削除する請求書を選択してください")
        if len(invoice_ids) > BULK_MAX_IDS:
            raise ValidationError(f"一度に削除できるのは{BULK_MAX_IDS}件までです")

        result = BulkDeleteResult()
        unique_ids = _unique_ids(invoice_ids)
        for start in range(0, len(unique_ids), BULK_BATCH_SIZE):
            self._delete_batch(unique_ids[start:start + BULK_BATCH_SIZE], result)
        logger.info(
            "🗑 Массовое удаление счетов: успешно=%s, ошибок=%s",
            len(result.success),
            len(result.failed),
        )
        return result

    # ───── Поиск ─────

    def search(self, params: InvoiceSearchParams) -> InvoiceSearchResult:
        errors: list[FieldError] = []
        date_from = _optional_date(params.date_from, "date_from", errors)
        date_to = _optional_date(params.date_to, "date_to", errors)
        amount_min = _optional_int(params.amount_min, "amount_min", errors)
        amount_max = _optional_int(params.amount_max, "amount_max", errors)
        if errors:
            raise ValidationError(first_message(errors, "検索条件が不正です"), errors)

        customer_ids = None
        raw_ids = [value for value in params.customer_ids if clean_str(value)]
        if raw_ids:
            customer_ids = [uid for uid in map(parse_uuid, raw_ids) if uid is not None]

        page, limit = normalize_pagination(params.page, params.limit)
        sort_key = SORT_ALIASES.get(params.sort_by or "", params.sort_by)
        sort_by, sort_order = normalize_order(
            sort_key, params.sort_order, INVOICE_SORT_FIELDS, "issue_date"
        )
        invoices, count, amount = self._invoices.search(
            search_text=params.q,
            date_from=date_from,
            date_to=date_to,
            amount_min=amount_min,
            amount_max=amount_max,
            customer_ids=customer_ids,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
        return InvoiceSearchResult(
            invoices=invoices, total_count=count, total_amount=amount, page=page, limit=limit
        )

