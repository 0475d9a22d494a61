"""Выгрузка клиентов и счетов в CSV (UTF-8 с BOM для Excel)."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Sequence

from database.models import CustomerType, InvoiceMethod
from services.customers.dto import CustomerDTO
from services.errors import NotFoundError, ValidationError
from services.invoices.calculation import tax, to_decimal
from services.invoices.dto import InvoiceDTO, InvoiceItemDTO
from services.invoices.repository import InvoiceRepository
from services.repositories import CustomerRepository, TagRepository
from services.validators import parse_uuid
from utils.time_utils import filename_stamp, format_iso, format_japanese

logger = logging.getLogger(__name__)

BOM = "\ufeff"
TAG_JOINER = "、"
DATE_FORMATS: dict[str, Callable[[date | datetime | None], str]] = {
    "iso": format_iso,
    "japanese": format_japanese,
}
CUSTOMER_TYPE_LABELS = {CustomerType.COMPANY: "法人", CustomerType.PERSONAL: "個人"}
INVOICE_METHOD_LABELS = {InvoiceMethod.MAIL: "郵送", InvoiceMethod.EMAIL: "メール"}

# (заголовок, атрибут CustomerDTO, признак даты)
EXPORT_COLUMNS: list[tuple[str, str, bool]] = [
    ("顧客ID", "id", False),
    ("顧客種別", "customer_type", False),
    ("会社名", "company_name", False),
    ("氏名", "name", False),
    ("フリガナ", "name_kana", False),
    ("クラス", "customer_class", False),
    ("生年月日", "birth_date", True),
    ("郵便番号", "postal_code", False),
    ("都道府県", "prefecture", False),
    ("市区町村", "city", False),
    ("番地・建物名", "address", False),
    ("電話番号", "phone", False),
    ("メールアドレス", "email", False),
    ("契約開始日", "contract_start_date", True),
    ("請求書送付方法", "invoice_method", False),
    ("支払い条件", "payment_terms", False),
    ("タグ", "tags", False),
    ("備考", "memo", False),
    ("登録日", "created_at", True),
    ("更新日", "updated_at", True),
]
EXPORT_HEADERS = [header for header, _, _ in EXPORT_COLUMNS]


@dataclass(frozen=True)
class ExportOptions:
    date_format: str = "japanese"
    include_deleted: bool = False

    @classmethod
    def from_raw(cls, date_format: Any = None, include_deleted: Any = None) -> "ExportOptions":
        fmt = str(date_format or "japanese").strip().lower()
        if fmt not in DATE_FORMATS:
            fmt = "japanese"
        if isinstance(include_deleted, str):
            include_deleted = include_deleted.strip().lower() in {"1", "true", "yes", "on"}
        return cls(date_format=fmt, include_deleted=bool(include_deleted))


@dataclass
class ExportStats:
    total_count: int
    exported_count: int
    deleted_count: int
    company_count: int
    personal_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalCount": self.total_count,
            "exportedCount": self.exported_count,
            "deletedCount": self.deleted_count,
            "companyCount": self.company_count,
            "personalCount": self.personal_count,
        }


def escape_csv_value(value: Any) -> str:
    """Кавычки вокруг значения, если в нём есть ``"``, запятая или перевод строки."""
    if value is None:
        return ""
    text = str(value)
    if any(ch in text for ch in ('"', ",", "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def _cell(customer: CustomerDTO, attr: str, is_date: bool, options: ExportOptions) -> str:
    value = getattr(customer, attr)
    if attr == "tags":
        return TAG_JOINER.join(tag.name for tag in value)
    if attr == "customer_type":
        return CUSTOMER_TYPE_LABELS.get(value, CUSTOMER_TYPE_LABELS[CustomerType.PERSONAL])
    if attr == "invoice_method":
        return INVOICE_METHOD_LABELS.get(value, "")
    if is_date:
        return DATE_FORMATS[options.date_format](value)
    return "" if value is None else str(value)


def generate_customer_csv(
    customers: Sequence[CustomerDTO], options: ExportOptions | None = None
) -> str:
    """CSV-текст по клиентам; удалённые отбрасываются без ``include_deleted``."""
    options = options or ExportOptions()
    rows = [customer for customer in customers if options.include_deleted or not customer.is_deleted]
    lines = [",".join(escape_csv_value(header) for header in EXPORT_HEADERS)]
    for customer in rows:
        cells = [_cell(customer, attr, is_date, options) for _, attr, is_date in EXPORT_COLUMNS]
        lines.append(",".join(escape_csv_value(cell) for cell in cells))
    logger.debug("Строк CSV для выгрузки: %d", len(rows))
    return BOM + "\n".join(lines)


def generate_csv_filename(prefix: str = "customers", moment: datetime | None = None) -> str:
    return f"{prefix}_{filename_stamp(moment)}.csv"


def export_stats(customers: Sequence[CustomerDTO], options: ExportOptions) -> ExportStats:
    deleted = sum(1 for c in customers if c.is_deleted)
    exported = [c for c in customers if options.include_deleted or not c.is_deleted]
    return ExportStats(
        total_count=len(customers),
        exported_count=len(exported),
        deleted_count=deleted,
        company_count=sum(1 for c in exported if c.customer_type == CustomerType.COMPANY),
        personal_count=sum(1 for c in exported if c.customer_type != CustomerType.COMPANY),
    )


@dataclass
class CsvExport:
    content: str
    filename: str
    stats: ExportStats


class CustomerExportService:
    def __init__(
        self,
        customer_repository: CustomerRepository,
        tag_repository: TagRepository,
    ) -> None:
        self._customers = customer_repository
        self._tags = tag_repository

    def _load(
        self, customer_ids: Sequence[uuid.UUID] | None, options: ExportOptions
    ) -> list[CustomerDTO]:
        customers = self._customers.list_for_export(
            customer_ids, include_deleted=options.include_deleted
        )
        tags = self._tags.tags_for_customers([uuid.UUID(c.id) for c in customers])
        for customer in customers:
            customer.tags = tags.get(customer.id, [])
        return customers

    def export(
        self,
        options: ExportOptions,
        *,
        customer_ids: Sequence[uuid.UUID] | None = None,
        prefix: str = "customers",
    ) -> CsvExport:
        customers = self._load(customer_ids, options)
        if not customers:
            raise NotFoundError("エクスポートする顧客データがありません")
        result = CsvExport(
            content=generate_customer_csv(customers, options),
            filename=generate_csv_filename(prefix),
            stats=export_stats(customers, options),
        )
        logger.info(
            "📤 Выгрузка клиентов %s: %s строк", result.filename, result.stats.exported_count
        )
        return result

    def stats(self, options: ExportOptions) -> ExportStats:
        customers = self._customers.list_for_export(None, include_deleted=True)
        return export_stats(customers, options)


# ───── Счета ─────


def _quantity_text(item: InvoiceItemDTO) -> str:
    return format(to_decimal(item.quantity).normalize(), "f")


# поле запроса → (заголовок, значение ячейки)
INVOICE_EXPORT_FIELDS: dict[str, tuple[str, Callable[[InvoiceDTO], Any]]] = {
    "invoice_number": ("請求書番号", lambda invoice: invoice.invoice_number),
    "issue_date": ("発行日", lambda invoice: format_iso(invoice.issue_date)),
    "billing_name": ("請求先", lambda invoice: invoice.billing_name),
    "billing_address": ("請求先住所", lambda invoice: invoice.billing_address or ""),
    "billing_honorific": ("敬称", lambda invoice: invoice.billing_honorific),
    "subtotal": ("小計", lambda invoice: invoice.subtotal),
    "tax_amount": ("消費税", lambda invoice: tax(invoice.subtotal)),
    "total_amount": ("合計金額", lambda invoice: invoice.total_amount),
    "items_count": ("明細数", lambda invoice: len(invoice.items)),
    "items": (
        "明細",
        lambda invoice: ", ".join(f"{item.item_name}×{_quantity_text(item)}" for item in invoice.items),
    ),
}
DEFAULT_INVOICE_FIELDS = ("invoice_number", "issue_date", "billing_name", "total_amount")


def normalize_invoice_fields(fields: Any) -> list[str]:
    """Список полей выгрузки; пустой запрос даёт набор по умолчанию."""
    if fields is None or fields == []:
        return list(DEFAULT_INVOICE_FIELDS)
    if not isinstance(fields, list) or not all(isinstance(name, str) for name in fields):
        raise ValidationError("出力項目の指定が不正です")
    unknown = [name for name in fields if name not in INVOICE_EXPORT_FIELDS]
    if unknown:
        raise ValidationError(f"不明な出力項目です: {', '.join(unknown)}")
    return list(dict.fromkeys(fields))


def invoice_export_rows(invoices: Sequence[InvoiceDTO], fields: Sequence[str]) -> list[dict[str, Any]]:
    rows = []
    for invoice in invoices:
        row = {}
        for name in fields:
            header, value = INVOICE_EXPORT_FIELDS[name]
            row[header] = value(invoice)
        rows.append(row)
    return rows


def generate_invoice_csv(invoices: Sequence[InvoiceDTO], fields: Sequence[str] = DEFAULT_INVOICE_FIELDS) -> str:
    headers = [INVOICE_EXPORT_FIELDS[name][0] for name in fields]
    lines = [",".join(escape_csv_value(header) for header in headers)]
    for row in invoice_export_rows(invoices, fields):
        lines.append(",".join(escape_csv_value(row[header]) for header in headers))
    return BOM + "\n".join(lines)


@dataclass
class InvoiceExport:
    invoices: list[InvoiceDTO]
    fields: list[str]
    filename: str

    def rows(self) -> list[dict[str, Any]]:
        return invoice_export_rows(self.invoices, self.fields)

    def to_csv(self) -> str:
        return generate_invoice_csv(self.invoices, self.fields)


class InvoiceExportService:
    def __init__(self, invoice_repository: InvoiceRepository) -> None:
        self._invoices = invoice_repository

    def export(self, invoice_ids: Any, fields: Any = None) -> InvoiceExport:
        if not isinstance(invoice_ids, list) or not invoice_ids:
            raise ValidationError("エクスポートする請求書を選択してください")
        selected = normalize_invoice_fields(fields)
        ids = list(dict.fromkeys(uid for uid in map(parse_uuid, invoice_ids) if uid is not None))
        invoices = self._invoices.list_with_items(ids)
        if not invoices:
            raise NotFoundError("指定された請求書が見つかりません")
        result = InvoiceExport(
            invoices=invoices, fields=selected, filename=generate_csv_filename("invoices")
        )
        logger.info("📤 Выгрузка счетов %s: %s строк", result.filename, len(invoices))
        return result
