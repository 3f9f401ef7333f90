from fastapi import APIRouter

from nyay_sahayak.api.v1.endpoints.applications import router as applications_router
from nyay_sahayak.api.v1.endpoints.review import router as review_router

router = APIRouter()


@router.get("/ping")
async def ping():
    return {"ping": "pong"}


router.include_router(applications_router)
router.include_router(review_router)
