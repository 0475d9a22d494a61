from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from services.container import (
    get_customer_search_service,
    get_customer_service,
    get_customer_tag_service,
)
from services.customers.customer_service import CustomerService
from services.customers.dto import CustomerCreateCommand, CustomerUpdateCommand
from services.customers.search_service import CustomerSearchParams, CustomerSearchService
from services.tags.tag_service import CustomerTagService
from ..schemas import AttachTagsPayload, CustomerCreate, CustomerUpdate, TagIdsPayload

router = APIRouter(prefix="/customers", tags=["customers"])


def _split_ids(values: list[str]) -> list[str]:
    ids: list[str] = []
    for value in values:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


# ───── Поиск ─────


@router.get("")
@router.get("/search")
def search_customers(
    search_text: str | None = Query(default=None, alias="searchText"),
    customer_type: str | None = Query(default=None, alias="customerType"),
    customer_class: str | None = Query(default=None, alias="class"),
    tag_ids: list[str] = Query(default=[], alias="tagIds"),
    tag_id: str | None = Query(default=None, alias="tagId"),
    page: str | None = None,
    limit: str | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    service: CustomerSearchService = Depends(get_customer_search_service),
):
    ids = _split_ids(tag_ids)
    if tag_id:
        ids.append(tag_id)
    params = CustomerSearchParams(
        search_text=search_text,
        customer_type=customer_type,
        customer_class=customer_class,
        tag_ids=ids,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return service.search(params).to_dict()


@router.get("/classes")
def list_classes(service: CustomerSearchService = Depends(get_customer_search_service)):
    return {"success": True, "data": service.list_classes()}


@router.get("/suggestions")
def suggestions(
    q: str | None = None,
    limit: str | None = None,
    service: CustomerSearchService = Depends(get_customer_search_service),
):
    customers = service.suggestions(q, limit or 10)
    data = [
        {"id": c.id, "name": c.name, "name_kana": c.name_kana, "company_name": c.company_name}
        for c in customers
    ]
    return {"success": True, "data": data}


# ───── CRUD ─────


@router.post("", status_code=201)
def create_customer(
    payload: CustomerCreate,
    service: CustomerService = Depends(get_customer_service),
):
    values = payload.model_dump(exclude={"tag_ids"})
    command = CustomerCreateCommand(**values, tag_ids=tuple(payload.tag_ids or ()))
    customer = service.create(command)
    return {"success": True, "data": customer.to_dict()}


@router.post("/attach-tags")
def attach_tags(
    payload: AttachTagsPayload,
    service: CustomerTagService = Depends(get_customer_tag_service),
):
    tags = service.replace(payload.customer_id, payload.tag_ids)
    return {
        "success": True,
        "message": f"{len(tags)}個のタグを付与しました",
        "data": [tag.to_dict() for tag in tags],
    }


@router.get("/{customer_id}")
def read_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    return {"success": True, "data": service.get(customer_id).to_dict()}


@router.put("/{customer_id}")
def edit_customer(
    customer_id: str,
    payload: CustomerUpdate,
    service: CustomerService = Depends(get_customer_service),
):
    values = payload.model_dump(exclude_unset=True, exclude={"tag_ids"})
    tag_ids = None
    if "tag_ids" in payload.model_fields_set:
        tag_ids = tuple(payload.tag_ids or ())
    command = CustomerUpdateCommand(id=customer_id, values=values, tag_ids=tag_ids)
    customer = service.update(command)
    return {"success": True, "data": customer.to_dict(), "message": "顧客情報を更新しました"}


@router.delete("/{customer_id}")
def remove_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    service.delete(customer_id)
    return {"success": True, "message": "顧客を削除しました"}


@router.post("/{customer_id}/restore")
def restore_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    customer = service.restore(customer_id)
    return {"success": True, "data": customer.to_dict(), "message": "顧客を復元しました"}


# ───── Теги клиента ─────


@router.get("/{customer_id}/tags")
def read_customer_tags(
    customer_id: str,
    service: CustomerTagService = Depends(get_customer_tag_service),
):
    return {"success": True, "data": [tag.to_dict() for tag in service.list(customer_id)]}


@router.put("/{customer_id}/tags")
def replace_customer_tags(
    customer_id: str,
    payload: TagIdsPayload,
    service: CustomerTagService = Depends(get_customer_tag_service),
):
    tags = service.replace(customer_id, payload.tag_ids)
    return {
        "success": True,
        "data": [tag.to_dict() for tag in tags],
        "message": "タグを更新しました",
    }


@router.post("/{customer_id}/tags")
def add_customer_tags(
    customer_id: str,
    payload: TagIdsPayload,
    service: CustomerTagService = Depends(get_customer_tag_service),
):
    tags, added = service.add(customer_id, payload.tag_ids)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "data": [tag.to_dict() for tag in tags],
            "message": f"{added}個のタグを追加しました",
        },
    )


@router.delete("/{customer_id}/tags/{tag_id}")
def remove_customer_tag(
    customer_id: str,
    tag_id: str,
    service: CustomerTagService = Depends(get_customer_tag_service),
):
    tags = service.remove(customer_id, tag_id)
    return {
        "success": True,
        "data": [tag.to_dict() for tag in tags],
        "message": "タグを解除しました",
    }
