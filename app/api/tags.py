from fastapi import APIRouter, Depends

from services.container import get_tag_service
from services.tags.tag_service import TagService
from ..schemas import TagPayload

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("")
def list_tags(service: TagService = Depends(get_tag_service)):
    return {"success": True, "data": [tag.to_dict() for tag in service.list()]}


@router.post("", status_code=201)
def create_tag(payload: TagPayload, service: TagService = Depends(get_tag_service)):
    tag = service.create(payload.name)
    return {"success": True, "data": tag.to_dict(), "message": "タグを作成しました"}


@router.get("/stats")
def tag_stats(service: TagService = Depends(get_tag_service)):
    return {"success": True, "data": service.stats().to_dict()}


@router.get("/{tag_id}")
def read_tag(tag_id: str, service: TagService = Depends(get_tag_service)):
    return {"success": True, "data": service.get(tag_id).to_dict()}


@router.put("/{tag_id}")
def rename_tag(tag_id: str, payload: TagPayload, service: TagService = Depends(get_tag_service)):
    tag = service.rename(tag_id, payload.name)
    return {"success": True, "data": tag.to_dict(), "message": "タグを更新しました"}


@router.delete("/{tag_id}")
def delete_tag(tag_id: str, service: TagService = Depends(get_tag_service)):
    detached = service.delete(tag_id)
    return {
        "success": True,
        "message": f"タグを削除しました（{detached}件の顧客から関連付けを解除）",
    }
