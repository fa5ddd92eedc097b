from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response

from app.api.deps import get_db
from app.api.etag import make_etag, parse_if_match
from app.core.security import ensure_self_or_admin, require_identity
from app.models.schemas import ProfileUpdate
from app.services import user_service
from app.services.auth_service import Identity
from app.services.db_service import Database

router = APIRouter()


@router.get("/profiles/{profile_id}")
async def get_profile(
    profile_id: UUID,
    response: Response,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    ensure_self_or_admin(identity, str(profile_id))
    profile = await user_service.get_profile_by_id(db, str(profile_id))
    etag = make_etag(profile.updated_at)
    if etag:
        response.headers["ETag"] = etag
    return {"profile": profile.to_json()}


@router.patch("/profiles/{profile_id}")
async def update_profile(
    profile_id: UUID,
    req: ProfileUpdate,
    response: Response,
    if_match: Optional[str] = Header(None),
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    """
    Field-level merge. Send the ETag from GET as If-Match to reject the update
    when someone else changed the profile in between.
    """
    ensure_self_or_admin(identity, str(profile_id))
    profile = await user_service.update_profile(
        db, str(profile_id), req.changes(), expected_updated_at=parse_if_match(if_match)
    )
    etag = make_etag(profile.updated_at)
    if etag:
        response.headers["ETag"] = etag
    return {"profile": profile.to_json()}
