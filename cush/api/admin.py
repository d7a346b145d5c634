"""
cush/api/admin.py

Purpose: Back-office endpoints

- Admin existence check and first-admin bootstrap (setup key)
- Dashboard statistics
- User listing, detail (with activities) and role changes
- Document review
"""

from fastapi import APIRouter, Depends, Query

from cush.api.deps import require_capability
from cush.core.config import settings
from cush.core.exceptions import AuthorizationError, CushError, ResourceNotFoundError
from cush.core.logging import get_logger
from cush.core.security import Capability, SessionClaims
from cush.schemas.applications import DocumentReviewRequest
from cush.schemas.auth import AdminSetupRequest, RoleUpdateRequest
from cush.services import document_service, stats_service, user_service

logger = get_logger(__name__)
router = APIRouter()


@router.get("/check")
async def admin_check():
    """
    Whether any admin account exists (drives the setup page).
    """
    return {"adminExists": await user_service.admin_exists()}


@router.post("/setup")
async def admin_setup(payload: AdminSetupRequest):
    """
    Creates or promotes an admin account.

    Requires ADMIN_SETUP_KEY to be configured and matched.
    """
    if not settings.ADMIN_SETUP_KEY:
        raise CushError(
            "ADMIN_SETUP_KEY environment variable is not set",
            code="SETUP_NOT_CONFIGURED",
            status_code=500,
        )
    if payload.setup_key != settings.ADMIN_SETUP_KEY:
        logger.warning("Admin setup attempted with invalid key")
        raise AuthorizationError("Invalid setup key")

    user, created = await user_service.create_admin_user(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        country=payload.country,
        phone_number=payload.phone_number,
    )
    user.pop("emailSkipped", None)
    return {
        "success": True,
        "message": "Admin user created successfully" if created else "Existing user promoted to admin",
        "user": user,
    }


@router.get("/stats")
async def admin_stats(session: SessionClaims = Depends(require_capability(Capability.VIEW_STATS))):
    return await stats_service.compute_stats()


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: SessionClaims = Depends(require_capability(Capability.MANAGE_USERS))
):
    result = await user_service.list_users(page, limit)
    return {"success": True, **result}


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    activities: bool = False,
    session: SessionClaims = Depends(require_capability(Capability.MANAGE_USERS))
):
    user = await user_service.get_user_by_id(user_id)
    if not user:
        raise ResourceNotFoundError("User not found")

    body = {"success": True, "user": user}
    if activities:
        body["activities"] = await user_service.get_user_activities(user_id)
    return body


@router.patch("/users/{user_id}")
async def update_user_role(
    user_id: str,
    payload: RoleUpdateRequest,
    session: SessionClaims = Depends(require_capability(Capability.MANAGE_USERS))
):
    user = await user_service.update_user_role(user_id, payload.role)
    logger.info(f"Role changed by admin to {payload.role.value}", extra={"user_id": user_id})
    return {"success": True, "user": user}


@router.patch("/documents/{document_id}")
async def review_document(
    document_id: str,
    payload: DocumentReviewRequest,
    session: SessionClaims = Depends(require_capability(Capability.REVIEW_DOCUMENTS))
):
    document = await document_service.update_document_status(
        document_id, payload.status, reviewed_by=session.id, notes=payload.notes
    )
    return {"success": True, "document": document}
