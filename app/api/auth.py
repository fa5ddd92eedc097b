from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import get_auth, get_db
from app.core.config import settings
from app.core.logger import logger
from app.core.security import require_identity
from app.models.schemas import LoginRequest, ResetPasswordRequest, SignUpRequest, UpdatePasswordRequest
from app.services import user_service
from app.services.auth_service import Identity, SupabaseAuth
from app.services.db_service import Database

router = APIRouter()


def callback_url() -> str:
    return f"{settings.APP_URL}{settings.API_V1_STR}/auth/callback"


@router.post("/auth/login")
async def login(req: LoginRequest, auth: SupabaseAuth = Depends(get_auth)):
    """Passwordless sign-in: emails a magic link that lands on /api/auth/callback."""
    await auth.send_magic_link(req.email, callback_url())
    return {"success": True}


@router.post("/auth/signup")
async def signup(req: SignUpRequest, auth: SupabaseAuth = Depends(get_auth)):
    await auth.sign_up(req.email, req.password, callback_url())
    return {"success": True}


@router.post("/auth/reset-password")
async def reset_password(req: ResetPasswordRequest, auth: SupabaseAuth = Depends(get_auth)):
    await auth.send_password_reset(req.email, callback_url())
    return {"success": True}


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    auth: SupabaseAuth = Depends(get_auth),
    db: Database = Depends(get_db),
):
    response = RedirectResponse(url=settings.APP_URL, status_code=303)
    if not code:
        return response

    verifier = request.cookies.get(settings.CODE_VERIFIER_COOKIE)
    tokens = await auth.exchange_code_for_session(code, verifier)
    await user_service.ensure_user(db, tokens.identity.id, tokens.identity.email)

    cookie_options = {"httponly": True, "secure": settings.is_production, "samesite": "lax", "path": "/"}
    response.set_cookie(settings.ACCESS_TOKEN_COOKIE, tokens.access_token, max_age=tokens.expires_in, **cookie_options)
    response.set_cookie(settings.REFRESH_TOKEN_COOKIE, tokens.refresh_token, **cookie_options)
    response.delete_cookie(settings.CODE_VERIFIER_COOKIE, path="/")
    return response


@router.post("/auth/signout")
async def signout(request: Request, auth: SupabaseAuth = Depends(get_auth)):
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if token:
        await auth.sign_out(token)
        logger.info("👋 Session signed out")

    response = JSONResponse({"success": True})
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE, path="/")
    return response


@router.post("/auth/password")
async def update_password(
    req: UpdatePasswordRequest,
    identity: Identity = Depends(require_identity),
    auth: SupabaseAuth = Depends(get_auth),
):
    await auth.update_password(identity.id, req.password)
    return {"success": True}
