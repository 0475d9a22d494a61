"""Импорт клиентов из CSV с проверкой строк и поиском дублей."""

from __future__ import annotations

import csv
import io
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic_core import PydanticCustomError

from database.models import CustomerType, InvoiceMethod
from services.customers.customer_service import CustomerService
from services.customers.dto import CustomerCreateCommand
from services.errors import StoreError, ValidationError
from services.tags.tag_service import TagService
from services.validators import (
    clean_str,
    is_valid_email,
    is_valid_phone,
    is_valid_postal_code,
    normalize_date,
    normalize_email_key,
    normalize_phone_key,
)

logger = logging.getLogger(__name__)

HEADER_MAPPING = {
    "顧客種別": "customer_type",
    "会社名": "company_name",
    "氏名": "name",
    "フリガナ": "name_kana",
    "クラス": "customer_class",
    "生年月日": "birth_date",
    "郵便番号": "postal_code",
    "都道府県": "prefecture",
    "市区町村": "city",
    "番地・建物名": "address",
    "電話番号": "phone",
    "メールアドレス": "email",
    "契約開始日": "contract_start_date",
    "請求書送付方法": "invoice_method",
    "支払い条件": "payment_terms",
    "タグ": "tags",
    "備考": "memo",
}
# внутренние имена полей тоже принимаются в качестве заголовков
FIELD_ALIASES = {name: name for name in HEADER_MAPPING.values()} | {"class": "customer_class"}

REQUIRED_HEADERS = {"氏名": "name", "顧客種別": "customer_type"}

CUSTOMER_TYPE_VALUES = {
    "個人": CustomerType.PERSONAL,
    "personal": CustomerType.PERSONAL,
    "法人": CustomerType.COMPANY,
    "company": CustomerType.COMPANY,
}
INVOICE_METHOD_VALUES = {
    "郵送": InvoiceMethod.MAIL,
    "mail": InvoiceMethod.MAIL,
    "メール": InvoiceMethod.EMAIL,
    "email": InvoiceMethod.EMAIL,
}
TAG_SEPARATORS = ("、", ",")

TEMPLATE_SAMPLE_ROWS = [
    [
        "個人", "", "山田太郎", "ヤマダタロウ", "A", "1980/1/15", "123-4567",
        "東京都", "千代田区", "千代田1-1-1", "03-1234-5678", "yamada@example.com",
        "2024/4/1", "郵送", "月末締め翌月末払い", "VIP、紹介", "サンプルデータ",
    ],
    [
        "法人", "株式会社サンプル", "佐藤花子", "サトウハナコ", "B", "", "530-0001",
        "大阪府", "大阪市北区", "梅田2-2-2", "06-9876-5432", "sato@sample.co.jp",
        "2024/5/1", "メール", "20日締め翌月10日払い", "法人", "",
    ],
]


def _format_error(message: str) -> PydanticCustomError:
    return PydanticCustomError("format", message)


class CustomerImportRow(BaseModel):
    """Одна строка CSV после сопоставления заголовков."""

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_type: str
    company_name: str | None = None
    name: str
    name_kana: str | None = None
    customer_class: str | None = None
    birth_date: str | None = None
    postal_code: str | None = None
    prefecture: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contract_start_date: str | None = None
    invoice_method: str | None = None
    payment_terms: str | None = None
    memo: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name_required(cls, value: Any) -> Any:
        if value is None:
            raise _format_error("氏名は必須です")
        return value

    @field_validator("customer_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        normalized = CUSTOMER_TYPE_VALUES.get(str(value or "").strip())
        if normalized is None:
            raise _format_error("顧客種別は「個人」または「法人」を指定してください")
        return normalized

    @field_validator("invoice_method", mode="before")
    @classmethod
    def _normalize_invoice_method(cls, value: Any) -> str | None:
        if value is None:
            return None
        normalized = INVOICE_METHOD_VALUES.get(str(value).strip())
        if normalized is None:
            raise _format_error("請求書送付方法は「郵送」または「メール」を指定してください")
        return normalized

    @field_validator("birth_date", "contract_start_date", mode="before")
    @classmethod
    def _normalize_dates(cls, value: Any) -> str | None:
        try:
            return normalize_date(value)
        except ValueError:
            raise _format_error("日付の形式が不正です") from None

    @field_validator("postal_code")
    @classmethod
    def _check_postal_code(cls, value: str | None) -> str | None:
        if value and not is_valid_postal_code(value):
            raise _format_error("郵便番号の形式が不正です")
        return value

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str | None) -> str | None:
        if value and not is_valid_phone(value):
            raise _format_error("電話番号の形式が不正です")
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str | None) -> str | None:
        if value and not is_valid_email(value):
            raise _format_error("メールアドレスの形式が不正です")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        text = str(value)
        for sep in TAG_SEPARATORS[1:]:
            text = text.replace(sep, TAG_SEPARATORS[0])
        return [part.strip() for part in text.split(TAG_SEPARATORS[0]) if part.strip()]

    def to_command(self, tag_ids: tuple[str, ...] = ()) -> CustomerCreateCommand:
        data = self.model_dump(exclude={"tags"})
        return CustomerCreateCommand(**data, tag_ids=tag_ids)


@dataclass
class ImportRowError:
    row: int
    field: str
    message: str


@dataclass
class DuplicateCluster:
    indices: list[int]
    rows: list[int]
    field: str
    value: str


@dataclass
class ValidatedRow:
    index: int
    row: int
    data: CustomerImportRow


@dataclass
class ParseResult:
    data: list[ValidatedRow] = field(default_factory=list)
    errors: list[ImportRowError] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    duplicates: list[DuplicateCluster] = field(default_factory=list)
    total_rows: int = 0


@dataclass
class ImportSummary:
    total: int
    success: int
    failed: int
    skipped: int
    errors: list[ImportRowError]
    duplicates: list[DuplicateCluster]

    @property
    def message(self) -> str:
        text = f"{self.success}件のデータをインポートしました"
        if self.failed:
            text += f"（{self.failed}件失敗）"
        if self.skipped:
            text += f"（{self.skipped}件の重複をスキップ）"
        return text

    @property
    def status_code(self) -> int:
        return 200 if self.success > 0 or self.failed == 0 else 400

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.status_code == 200,
            "message": self.message,
            "summary": {
                "total": self.total,
                "success": self.success,
                "failed": self.failed,
                "skipped": self.skipped,
            },
            "errors": [asdict(error) for error in self.errors],
            "duplicates": [asdict(cluster) for cluster in self.duplicates],
        }


def _api_field(name: str) -> str:
    return "class" if name == "customer_class" else name


def _read_rows(text: str) -> list[tuple[int, list[str]]]:
    """Непустые записи CSV с номером строки файла, на которой запись начинается."""
    if text.startswith("\ufeff"):
        text = text[1:]
    reader = csv.reader(io.StringIO(text))
    rows: list[tuple[int, list[str]]] = []
    next_line = 1
    for cells in reader:
        start, next_line = next_line, reader.line_num + 1
        if any(cell.strip() for cell in cells):
            rows.append((start, cells))
    return rows


def _map_headers(headers: list[str]) -> dict[int, str]:
    mapping: dict[int, str] = {}
    for position, header in enumerate(headers):
        key = HEADER_MAPPING.get(header) or FIELD_ALIASES.get(header)
        if key and key not in mapping.values():
            mapping[position] = key
    return mapping


def detect_duplicates(rows: list[dict[str, Any]]) -> list[DuplicateCluster]:
    """Группы строк с одинаковым email или телефоном.

    Email сравнивается без регистра, телефон без дефисов.
    """
    keys: list[tuple[str, Callable[[Any], str]]] = [
        ("email", normalize_email_key),
        ("phone", normalize_phone_key),
    ]
    clusters: list[DuplicateCluster] = []
    for field_name, normalize in keys:
        groups: dict[str, list[int]] = defaultdict(list)
        for index, row in enumerate(rows):
            value = normalize(row.get(field_name))
            if value:
                groups[value].append(index)
        for value, indices in groups.items():
            if len(indices) > 1:
                clusters.append(
                    DuplicateCluster(
                        indices=indices,
                        rows=[rows[i]["__row__"] for i in indices],
                        field=field_name,
                        value=value,
                    )
                )
    return clusters


def parse_customer_csv(text: str) -> ParseResult:
    """Разбирает CSV клиентов.

    Ошибки уровня файла (пустой файл, нет обязательных колонок) поднимают
    :class:`ValidationError`; ошибки строк собираются в ``errors``.
    """
    rows = _read_rows(text)
    if not rows:
        raise ValidationError("CSVファイルが空です")

    headers = [header.strip() for header in rows[0][1]]
    mapping = _map_headers(headers)
    missing = [
        header for header, key in REQUIRED_HEADERS.items() if key not in mapping.values()
    ]
    if missing:
        raise ValidationError(f"必須列が不足しています: {', '.join(missing)}")

    result = ParseResult(headers=headers, total_rows=len(rows) - 1)
    mapped_rows: list[dict[str, Any]] = []
    for index, (row_number, cells) in enumerate(rows[1:]):
        mapped: dict[str, Any] = {"__row__": row_number}
        for position, key in mapping.items():
            mapped[key] = cells[position] if position < len(cells) else ""
        mapped_rows.append(mapped)

        payload = {k: clean_str(v) for k, v in mapped.items() if k != "__row__"}
        try:
            validated = CustomerImportRow.model_validate(payload)
        except PydanticValidationError as exc:
            for error in exc.errors():
                loc = error["loc"][0] if error["loc"] else "row"
                result.errors.append(
                    ImportRowError(row=row_number, field=_api_field(str(loc)), message=error["msg"])
                )
            continue
        result.data.append(ValidatedRow(index=index, row=row_number, data=validated))

    result.duplicates = detect_duplicates(mapped_rows)
    return result


def generate_template() -> str:
    """Шаблон CSV для импорта: BOM, заголовки и две строки-примера."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(list(HEADER_MAPPING))
    writer.writerows(TEMPLATE_SAMPLE_ROWS)
    return "\ufeff" + buffer.getvalue()


class CustomerImportService:
    def __init__(self, customer_service: CustomerService, tag_service: TagService) -> None:
        self._customers = customer_service
        self._tags = tag_service

    def import_csv(self, text: str) -> ImportSummary:
        parsed = parse_customer_csv(text)
        valid_indices = {item.index for item in parsed.data}
        skip_indices: set[int] = set()
        for cluster in parsed.duplicates:
            # первая валидная строка группы импортируется, остальные пропускаются
            kept = [index for index in cluster.indices if index in valid_indices]
            skip_indices.update(kept[1:])
        errors = list(parsed.errors)
        failed_rows = {error.row for error in parsed.errors}
        success = skipped = 0

        for item in parsed.data:
            if item.index in skip_indices:
                skipped += 1
                continue
            try:
                tag_ids = tuple(tag.id for tag in self._tags.create_or_find(item.data.tags))
                self._customers.create(item.data.to_command(tag_ids))
            except ValidationError as exc:
                failed_rows.add(item.row)
                if exc.errors:
                    errors.extend(
                        ImportRowError(item.row, _api_field(e.field), e.message) for e in exc.errors
                    )
                else:
                    errors.append(ImportRowError(item.row, "row", exc.message))
                continue
            except StoreError:
                failed_rows.add(item.row)
                errors.append(ImportRowError(item.row, "row", "登録に失敗しました"))
                continue
            success += 1

        summary = ImportSummary(
            total=parsed.total_rows,
            success=success,
            failed=len(failed_rows),
            skipped=skipped,
            errors=sorted(errors, key=lambda e: e.row),
            duplicates=parsed.duplicates,
        )
        logger.info(
            "📥 Импорт клиентов: всего=%s, успешно=%s, ошибок=%s, дублей пропущено=%s",
            summary.total,
            summary.success,
            summary.failed,
            summary.skipped,
        )
        return summary
