from typing import Optional

from fastapi import Depends, Request

from app.api.deps import get_auth
from app.core.config import settings
from app.core.errors import AppError, ErrorCode
from app.models.db_models import UserRole
from app.services.auth_service import Identity, SupabaseAuth


async def get_identity(request: Request, auth: SupabaseAuth = Depends(get_auth)) -> Optional[Identity]:
    """
    Resolves the session cookie to an identity, or None. Evaluated on every
    request; nothing is stored between requests.
    """
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if not token:
        return None
    return await auth.get_session(token)


async def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    # Page routes turn this into a redirect to /login (see app.main)
    if identity is None:
        raise AppError("Unauthorized", ErrorCode.AUTH_ERROR, 401)
    return identity


def require_role(role: UserRole):
    async def dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role != role:
            raise AppError("Forbidden", ErrorCode.FORBIDDEN, 403, {"required_role": role.value})
        return identity
    return dependency


def ensure_self_or_admin(identity: Identity, owner_id: str):
    if identity.is_admin or identity.id == str(owner_id):
        return
    raise AppError("Forbidden", ErrorCode.FORBIDDEN, 403, {"owner_id": str(owner_id)})
