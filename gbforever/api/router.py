from fastapi import APIRouter
from gbforever.api.routes.health import router as health
from gbforever.api.routes.playlist import router as playlist

router = APIRouter()
router.include_router(health)
router.include_router(playlist)
