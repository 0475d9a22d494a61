"""Импорт и выгрузка клиентов в CSV."""

import logging

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import JSONResponse

from services.container import get_customer_export_service, get_customer_import_service
from services.customers.import_service import CustomerImportService, generate_template
from services.errors import ValidationError
from services.export_service import CustomerExportService, ExportOptions, generate_csv_filename
from services.validators import parse_uuid
from ..schemas import ExportRequest
from .responses import csv_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customer-csv"])


@router.get("/export")
def export_customers(
    date_format: str | None = Query(default=None, alias="dateFormat"),
    include_deleted: str | None = Query(default=None, alias="includeDeleted"),
    service: CustomerExportService = Depends(get_customer_export_service),
):
    options = ExportOptions.from_raw(date_format, include_deleted)
    result = service.export(options)
    return csv_response(result.content, result.filename)


@router.post("/export")
def export_selected_customers(
    payload: ExportRequest,
    service: CustomerExportService = Depends(get_customer_export_service),
):
    if not isinstance(payload.customer_ids, list):
        raise ValidationError("顧客IDの配列を指定してください")
    ids = [uid for uid in map(parse_uuid, payload.customer_ids) if uid is not None]
    raw = payload.options or None
    options = ExportOptions.from_raw(
        raw.date_format if raw else None,
        raw.include_deleted if raw else None,
    )
    result = service.export(options, customer_ids=ids, prefix="selected_customers")
    return csv_response(result.content, result.filename)


@router.get("/export/stats")
def export_statistics(
    date_format: str | None = Query(default=None, alias="dateFormat"),
    include_deleted: str | None = Query(default=None, alias="includeDeleted"),
    service: CustomerExportService = Depends(get_customer_export_service),
):
    options = ExportOptions.from_raw(date_format, include_deleted)
    return {"success": True, "data": service.stats(options).to_dict()}


@router.post("/import")
async def import_customers(
    file: UploadFile | None = File(default=None),
    service: CustomerImportService = Depends(get_customer_import_service),
):
    if file is None:
        raise ValidationError("ファイルが選択されていません")
    if not (file.filename or "").lower().endswith(".csv"):
        raise ValidationError("CSVファイルを選択してください")
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("ファイルの文字コードはUTF-8で保存してください")
    logger.info("📥 Импорт клиентов из файла %s (%s байт)", file.filename, len(raw))
    summary = service.import_csv(text)
    return JSONResponse(status_code=summary.status_code, content=summary.to_dict())


@router.get("/template")
def download_template():
    return csv_response(generate_template(), generate_csv_filename("customer_import_template"))
