from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from backoffice.api.deps import get_current_user
from backoffice.business.billing import router as invoices_router
from backoffice.business.conversion.api import router as conversion_router
from backoffice.business.projects import router as projects_router
from backoffice.business.proposals import router as proposals_router
from backoffice.business.subcontractors import router as subcontractors_router
from backoffice.core.config import get_settings
from backoffice.crm.api import customers_router, leads_router
from backoffice.metrics import generate_metrics_payload, metrics_content_type
from backoffice.platform.security import ActorUser, Capability, MissingCapabilityError

router = APIRouter()
router.include_router(leads_router)
router.include_router(customers_router)
router.include_router(proposals_router)
router.include_router(conversion_router)
router.include_router(projects_router)
router.include_router(invoices_router)
router.include_router(subcontractors_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
def me(user: ActorUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.user_id,
        "roles": user.roles,
        "capabilities": sorted(capability.value for capability in user.capabilities),
    }


@router.get("/metrics", tags=["system"])
def metrics(user: ActorUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if not user.can(Capability.METRICS_READ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(MissingCapabilityError(Capability.METRICS_READ.value)),
        )
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
