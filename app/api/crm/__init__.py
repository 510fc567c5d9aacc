from fastapi import APIRouter

from app.api.crm.tickets import router as tickets_router
from app.api.crm.views import router as views_router

router = APIRouter()
router.include_router(tickets_router)
router.include_router(views_router)
