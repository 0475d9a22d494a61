import uuid
from datetime import date
from decimal import Decimal

import pytest

from database.models import Invoice, InvoiceItem
from services.errors import NotFoundError, StoreError, ValidationError
from services.invoices.dto import InvoiceCreateCommand, InvoiceItemInput, InvoiceUpdateCommand
from services.invoices.invoice_service import InvoiceSearchParams
from services.invoices.numbering import format_invoice_number, next_invoice_number


def _items():
    return [
        InvoiceItemInput(item_name="作業費", quantity=1, unit_price=3000),
        InvoiceItemInput(item_name="部品", quantity="0.333", unit_price=2000, unit="式"),
    ]


def test_numbering_per_year(in_memory_db):
    assert format_invoice_number(2024, 7) == "INV-2024-0007"
    assert next_invoice_number(date(2024, 1, 1)) == "INV-2024-0001"
    assert next_invoice_number(date(2024, 6, 1)) == "INV-2024-0002"
    assert next_invoice_number(date(2025, 1, 1)) == "INV-2025-0001"


def test_create_invoice_computes_totals(in_memory_db, make_invoice):
    invoice = make_invoice(items=_items(), issue_date="2024/4/1")

    assert invoice.invoice_number == "INV-2024-0001"
    assert invoice.issue_date == date(2024, 4, 1)
    assert invoice.total_amount == 4032
    data = invoice.to_dict()
    assert data["subtotal"] == 3666
    assert data["tax_amount"] == 366
    assert [item["amount"] for item in data["items"]] == [3000, 666]
    assert [item["display_order"] for item in data["items"]] == [0, 1]
    assert data["items"][1]["quantity"] == pytest.approx(0.333)
    assert data["items"][1]["unit"] == "式"
    assert data["billing_honorific"] == "様"


@pytest.mark.parametrize(
    "items, field",
    [
        ([], "items"),
        ([InvoiceItemInput(item_name="", quantity=1, unit_price=1)], "items[0].item_name"),
        ([InvoiceItemInput(item_name="x", quantity=0, unit_price=1)], "items[0].quantity"),
        ([InvoiceItemInput(item_name="x", quantity="abc", unit_price=1)], "items[0].quantity"),
        ([InvoiceItemInput(item_name="x", quantity="0.0004", unit_price=1)], "items[0].quantity"),
        ([InvoiceItemInput(item_name="x", quantity=1, unit_price=-1)], "items[0].unit_price"),
        ([InvoiceItemInput(item_name="x", quantity=1, unit_price="10.5")], "items[0].unit_price"),
    ],
)
def test_create_validation(in_memory_db, invoice_service, items, field):
    command = InvoiceCreateCommand(issue_date="2024-04-01", billing_name="A社", items=tuple(items))

    with pytest.raises(ValidationError) as exc_info:
        invoice_service.create(command)

    assert field in [e.field for e in exc_info.value.errors]
    assert Invoice.select().count() == 0


def test_create_requires_header(in_memory_db, invoice_service):
    command = InvoiceCreateCommand(issue_date="", billing_name=" ", items=tuple(_items()))

    with pytest.raises(ValidationError) as exc_info:
        invoice_service.create(command)

    assert {e.field for e in exc_info.value.errors} == {"issue_date", "billing_name"}


def test_update_replaces_items_and_keeps_number(in_memory_db, invoice_service, make_invoice):
    invoice = make_invoice()

    updated = invoice_service.update(
        InvoiceUpdateCommand(
            id=invoice.id,
            values={"billing_name": "新しい請求先", "invoice_number": "HACKED"},
            items=(InvoiceItemInput(item_name="保守", quantity=2, unit_price=5000),),
        )
    )

    assert updated.invoice_number == invoice.invoice_number
    assert updated.billing_name == "新しい請求先"
    assert updated.total_amount == 11000
    assert [item.item_name for item in updated.items] == ["保守"]
    assert InvoiceItem.select().where(InvoiceItem.deleted_at.is_null(False)).count() == 1


def test_update_header_only(in_memory_db, invoice_service, make_invoice):
    invoice = make_invoice()

    updated = invoice_service.update(
        InvoiceUpdateCommand(id=invoice.id, values={"billing_address": "東京都"})
    )

    assert updated.billing_address == "東京都"
    assert updated.total_amount == invoice.total_amount
    assert len(updated.items) == 1


def test_delete_and_missing(in_memory_db, invoice_service, make_invoice):
    invoice = make_invoice()

    invoice_service.delete(invoice.id)

    with pytest.raises(NotFoundError, match="請求書が見つかりません"):
        invoice_service.get(invoice.id)
    assert invoice_service.list() == []
    assert InvoiceItem.active().count() == 0


def test_bulk_delete_partial_success(in_memory_db, invoice_service, make_invoice):
    existing = [make_invoice(billing_name=f"請求先{i}").id for i in range(3)]
    missing = [str(uuid.uuid4()), str(uuid.uuid4())]

    result = invoice_service.bulk_delete(existing + missing)

    assert sorted(result.success) == sorted(existing)
    assert sorted(f["id"] for f in result.failed) == sorted(missing)
    assert result.message == "3件の請求書を削除しました（2件失敗）"
    assert Invoice.active().count() == 0


def test_bulk_delete_reports_malformed_ids(in_memory_db, invoice_service, make_invoice):
    invoice = make_invoice()

    result = invoice_service.bulk_delete([invoice.id, "not-a-uuid"])

    assert result.success == [invoice.id]
    assert result.failed == [{"id": "not-a-uuid", "error": "無効な請求書IDです"}]


def test_bulk_delete_processes_all_batches(in_memory_db, invoice_service, make_invoice):
    ids = [make_invoice(billing_name=f"請求先{i}").id for i in range(23)]

    result = invoice_service.bulk_delete(ids)

    assert len(result.success) == 23
    assert result.failed == []


def test_quantity_is_rounded_before_amount(in_memory_db, make_invoice):
    invoice = make_invoice(items=[InvoiceItemInput(item_name="作業", quantity="2.3335", unit_price=3000)])

    item = InvoiceItem.get(InvoiceItem.invoice == invoice.id)
    assert item.quantity == Decimal("2.334")
    assert item.amount == 7002
    assert invoice.total_amount == 7702


def test_bulk_delete_collapses_repeated_ids(in_memory_db, invoice_service, make_invoice):
    invoice = make_invoice()

    result = invoice_service.bulk_delete([invoice.id, invoice.id, invoice.id.upper()])

    assert result.success == [invoice.id]
    assert result.failed == []
    assert result.message == "1件の請求書を削除しました"


@pytest.mark.parametrize("payload", [None, [], "abc", [str(uuid.uuid4())] * 101])
def test_bulk_delete_rejects_bad_input(in_memory_db, invoice_service, payload):
    with pytest.raises(ValidationError):
        invoice_service.bulk_delete(payload)


def test_bulk_delete_falls_back_to_hard_delete(in_memory_db, invoice_service, invoice_repo, make_invoice,
                                               monkeypatch, caplog):
    invoice = make_invoice()

    def broken(invoice_ids):
        raise StoreError("soft delete unsupported", context="мягкое удаление строк счетов")

    monkeypatch.setattr(invoice_repo, "soft_delete_items", broken)

    with caplog.at_level("WARNING"):
        result = invoice_service.bulk_delete([invoice.id])

    assert result.success == [invoice.id]
    assert InvoiceItem.select().count() == 0
    assert any(record.levelname == "WARNING" for record in caplog.records)


def test_bulk_delete_batch_failure_marks_items(in_memory_db, invoice_service, invoice_repo, make_invoice,
                                               monkeypatch):
    invoice = make_invoice()

    def broken(invoice_ids):
        raise StoreError("disk full", context="удаление счетов")

    monkeypatch.setattr(invoice_repo, "soft_delete_invoices", broken)

    result = invoice_service.bulk_delete([invoice.id])

    assert result.success == []
    assert result.failed == [{"id": invoice.id, "error": "請求書の削除に失敗しました"}]
    assert InvoiceItem.active().count() == 1


def test_search_filters_and_sums(in_memory_db, invoice_service, make_invoice, make_customer):
    customer = make_customer()
    make_invoice(
        billing_name="株式会社アルファ",
        issue_date="2024-01-10",
        items=[InvoiceItemInput(item_name="a", quantity=1, unit_price=1000)],
        customer_id=customer.id,
    )
    make_invoice(
        billing_name="株式会社ベータ",
        issue_date="2024-02-10",
        items=[InvoiceItemInput(item_name="b", quantity=1, unit_price=5000)],
    )
    make_invoice(
        billing_name="ガンマ商店",
        issue_date="2024-03-10",
        items=[InvoiceItemInput(item_name="c", quantity=1, unit_price=10000)],
    )

    everything = invoice_service.search(InvoiceSearchParams())
    assert everything.total_count == 3
    assert everything.total_amount == 1100 + 5500 + 11000
    assert [i.billing_name for i in everything.invoices][0] == "ガンマ商店"

    companies = invoice_service.search(InvoiceSearchParams(q="株式会社", sort_by="amount", sort_order="asc"))
    assert [i.total_amount for i in companies.invoices] == [1100, 5500]

    window = invoice_service.search(InvoiceSearchParams(date_from="2024-02-01", date_to="2024/3/1"))
    assert [i.billing_name for i in window.invoices] == ["株式会社ベータ"]

    amounts = invoice_service.search(InvoiceSearchParams(amount_min="5000", amount_max=6000))
    assert amounts.total_amount == 5500

    by_customer = invoice_service.search(InvoiceSearchParams(customer_ids=[customer.id]))
    assert [i.billing_name for i in by_customer.invoices] == ["株式会社アルファ"]

    paged = invoice_service.search(InvoiceSearchParams(limit=2, page=2))
    assert len(paged.invoices) == 1
    assert paged.to_dict()["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


def test_search_rejects_bad_filters(in_memory_db, invoice_service):
    with pytest.raises(ValidationError):
        invoice_service.search(InvoiceSearchParams(date_from="yesterday"))
    with pytest.raises(ValidationError):
        invoice_service.search(InvoiceSearchParams(amount_min="lots"))


def test_quantity_decimal_is_stored(in_memory_db, make_invoice):
    make_invoice(items=[InvoiceItemInput(item_name="x", quantity=Decimal("1.25"), unit_price=100)])

    item = InvoiceItem.get()
    assert item.quantity == Decimal("1.250")
    assert item.amount == 125
