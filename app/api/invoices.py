from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from services.container import get_invoice_export_service, get_invoice_service
from services.errors import ValidationError
from services.export_service import InvoiceExportService
from services.invoices.dto import InvoiceCreateCommand, InvoiceItemInput, InvoiceUpdateCommand
from services.invoices.invoice_service import InvoiceSearchParams, InvoiceService
from ..schemas import (
    BulkDeleteRequest,
    InvoiceCreate,
    InvoiceExportRequest,
    InvoiceItemPayload,
    InvoiceUpdate,
)
from .responses import csv_response

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _items(payload: list[InvoiceItemPayload]) -> tuple[InvoiceItemInput, ...]:
    return tuple(InvoiceItemInput(**item.model_dump()) for item in payload)


@router.get("")
def list_invoices(service: InvoiceService = Depends(get_invoice_service)):
    invoices = service.list()
    return {"success": True, "data": [invoice.to_dict(with_items=False) for invoice in invoices]}


@router.get("/search")
def search_invoices(
    q: str | None = None,
    date_from: str | None = Query(default=None, alias="dateFrom"),
    date_to: str | None = Query(default=None, alias="dateTo"),
    amount_min: str | None = Query(default=None, alias="amountMin"),
    amount_max: str | None = Query(default=None, alias="amountMax"),
    customer_ids: list[str] = Query(default=[], alias="customerIds"),
    sort_by: str | None = Query(default="issue_date", alias="sortBy"),
    sort_order: str | None = Query(default="desc", alias="sortOrder"),
    page: str | None = None,
    limit: str | None = None,
    service: InvoiceService = Depends(get_invoice_service),
):
    ids: list[str] = []
    for value in customer_ids:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    params = InvoiceSearchParams(
        q=q,
        date_from=date_from,
        date_to=date_to,
        amount_min=amount_min,
        amount_max=amount_max,
        customer_ids=ids,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {"success": True, "data": service.search(params).to_dict()}


@router.post("", status_code=201)
def create_invoice(payload: InvoiceCreate, service: InvoiceService = Depends(get_invoice_service)):
    command = InvoiceCreateCommand(
        issue_date=payload.issue_date,
        billing_name=payload.billing_name,
        items=_items(payload.items),
        billing_address=payload.billing_address,
        billing_honorific=payload.billing_honorific,
        customer_id=payload.customer_id,
    )
    invoice = service.create(command)
    return {"success": True, "data": invoice.to_dict(), "message": "請求書を作成しました"}


@router.post("/bulk/delete")
def bulk_delete_invoices(
    payload: BulkDeleteRequest,
    service: InvoiceService = Depends(get_invoice_service),
):
    result = service.bulk_delete(payload.invoice_ids)
    if not result.success:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "請求書の削除に失敗しました",
                "details": result.failed,
            },
        )
    return {"success": True, "message": result.message, "results": result.to_dict()}


@router.post("/bulk/export")
def bulk_export_invoices(
    payload: InvoiceExportRequest,
    service: InvoiceExportService = Depends(get_invoice_export_service),
):
    fmt = payload.format.strip().lower()
    if fmt not in {"csv", "json"}:
        raise ValidationError("対応していない出力形式です")
    result = service.export(payload.invoice_ids, payload.selected_fields)
    if fmt == "json":
        rows = result.rows()
        return {"success": True, "data": rows, "count": len(rows)}
    return csv_response(result.to_csv(), result.filename)


@router.get("/{invoice_id}")
def read_invoice(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    return {"success": True, "data": service.get(invoice_id).to_dict()}


@router.put("/{invoice_id}")
def edit_invoice(
    invoice_id: str,
    payload: InvoiceUpdate,
    service: InvoiceService = Depends(get_invoice_service),
):
    values = payload.model_dump(exclude_unset=True, exclude={"items"})
    items = None if payload.items is None else _items(payload.items)
    invoice = service.update(InvoiceUpdateCommand(id=invoice_id, values=values, items=items))
    return {"success": True, "data": invoice.to_dict(), "message": "請求書を更新しました"}


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: str, service: InvoiceService = Depends(get_invoice_service)):
    service.delete(invoice_id)
    return {"success": True, "message": "請求書を削除しました"}
