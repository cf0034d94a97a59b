from fastapi import APIRouter

from tripline.core.db import check_db_health
from tripline.core.settings import settings
from tripline.utils.responses import success_response

router = APIRouter()


@router.get("/healthz")
async def read_healthz() -> dict:
    """Liveness probe including a database round trip."""

    database = await check_db_health()
    status = "ok" if database["status"] == "ok" else "degraded"
    return success_response(
        {
            "status": status,
            "app": settings.app_name,
            "version": settings.app_version,
            "database": database,
        }
    )
