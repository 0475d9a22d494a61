from fastapi import APIRouter, Depends

from services.container import get_product_service
from services.products.product_service import ProductService
from ..schemas import ProductPayload

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
def list_products(
    search: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    service: ProductService = Depends(get_product_service),
):
    return service.list(search, page, limit).to_dict()


@router.post("", status_code=201)
def create_product(payload: ProductPayload, service: ProductService = Depends(get_product_service)):
    product = service.create(payload.model_dump())
    return {"success": True, "data": product.to_dict(), "message": "商品を登録しました"}


@router.get("/{product_id}")
def read_product(product_id: str, service: ProductService = Depends(get_product_service)):
    return {"success": True, "data": service.get(product_id).to_dict()}


@router.put("/{product_id}")
def edit_product(
    product_id: str,
    payload: ProductPayload,
    service: ProductService = Depends(get_product_service),
):
    product = service.update(product_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": product.to_dict(), "message": "商品を更新しました"}


@router.delete("/{product_id}")
def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    service.delete(product_id)
    return {"success": True, "message": "商品を削除しました"}
