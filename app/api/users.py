from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_db
from app.core.errors import AppError, ErrorCode
from app.core.security import ensure_self_or_admin, require_identity
from app.models.schemas import UserUpdate
from app.services import user_service
from app.services.auth_service import Identity
from app.services.db_service import Database

router = APIRouter()

PROFILE_NAME_FIELDS = {"first_name", "last_name"}


@router.get("/users")
async def get_user_by_email(
    email: Optional[str] = Query(None),
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    if not email:
        raise AppError("Email is required", ErrorCode.VALIDATION_ERROR, 400)

    user = await user_service.get_user_by_email(db, email)
    ensure_self_or_admin(identity, user.id)
    return {"user": user.to_json()}


@router.get("/users/{user_id}")
async def get_user(
    user_id: UUID,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    ensure_self_or_admin(identity, str(user_id))
    user = await user_service.get_user_by_id(db, str(user_id))
    return user.to_json()


@router.patch("/users/{user_id}")
async def update_user(
    user_id: UUID,
    req: UserUpdate,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    ensure_self_or_admin(identity, str(user_id))
    changes = req.changes()

    if "role" in changes and not identity.is_admin:
        raise AppError("Only admins can change roles", ErrorCode.FORBIDDEN, 403)

    # Names live on the profile, email and role on the user row
    profile_changes = {k: v for k, v in changes.items() if k in PROFILE_NAME_FIELDS}
    user_changes = {k: v for k, v in changes.items() if k not in PROFILE_NAME_FIELDS}

    # Fail before writing anything when the profile half cannot apply
    if profile_changes:
        await user_service.get_profile_by_id(db, str(user_id))

    if user_changes:
        await user_service.update_user(db, str(user_id), user_changes)
    if profile_changes:
        await user_service.update_profile(db, str(user_id), profile_changes)

    return {"success": True}
