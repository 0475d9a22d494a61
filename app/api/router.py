from fastapi import APIRouter

from .company_settings import router as company_settings_router
from .customer_csv import router as customer_csv_router
from .customers import router as customers_router
from .invoices import router as invoices_router
from .products import router as products_router
from .tags import router as tags_router

router = APIRouter()
# маршруты CSV раньше /customers/{customer_id}
router.include_router(customer_csv_router)
router.include_router(customers_router)
router.include_router(tags_router)
router.include_router(invoices_router)
router.include_router(products_router)
router.include_router(company_settings_router)


@router.get("/status")
def status():
    return {"status": "ok"}
