from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.media import router as media_router
from app.api.messages import router as messages_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(messages_router)
router.include_router(media_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the PairChat API"}
