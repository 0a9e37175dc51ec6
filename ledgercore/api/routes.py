from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from ledgercore.business.budgeting.api import router as budgeting_router
from ledgercore.business.reporting.statements.api import router as statements_router
from ledgercore.core.auth import AuthUser, get_current_user
from ledgercore.core.config import get_settings
from ledgercore.metrics import generate_metrics_payload, metrics_content_type
from ledgercore.platform.ledger.api import router as ledger_router

router = APIRouter()
router.include_router(ledger_router)
router.include_router(budgeting_router)
router.include_router(statements_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
