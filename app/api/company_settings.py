from fastapi import APIRouter, Depends

from services.company_settings_service import CompanySettingsService
from services.container import get_company_settings_service
from ..schemas import CompanySettingsPayload

router = APIRouter(prefix="/company-settings", tags=["company-settings"])


@router.get("")
def read_settings(service: CompanySettingsService = Depends(get_company_settings_service)):
    return {"success": True, "data": service.get().to_dict()}


@router.put("")
def update_settings(
    payload: CompanySettingsPayload,
    service: CompanySettingsService = Depends(get_company_settings_service),
):
    settings = service.update(payload.model_dump())
    return {"success": True, "data": settings.to_dict(), "message": "会社情報を更新しました"}
