from typing import Any, Dict, Optional

from pydantic import BaseModel
from supabase import AsyncClient, AsyncClientOptions, AuthApiError, AuthError, create_async_client

from app.core.config import Settings
from app.core.errors import AppError, ErrorCode
from app.core.logger import logger
from app.models.db_models import UserRole


class Identity(BaseModel):
    id: str
    email: str = ""
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    identity: Identity


def identity_from_user(user: Any) -> Identity:
    """Maps a Supabase auth user to our identity; role is a custom app_metadata claim."""
    metadata = getattr(user, "app_metadata", None) or {}
    role = metadata.get("role") or UserRole.CUSTOMER.value
    try:
        role = UserRole(role)
    except ValueError:
        logger.warning(f"⚠️ Unknown role '{role}' for user {user.id}, treating as customer")
        role = UserRole.CUSTOMER
    return Identity(id=str(user.id), email=user.email or "", role=role)


class SupabaseAuth:
    """
    Thin client for the identity provider. Holds no per-user state: every
    call is keyed by the token or code the request brought with it.
    """

    def __init__(self, client: AsyncClient, admin_client: Optional[AsyncClient] = None):
        self.client = client
        self.admin_client = admin_client or client

    @classmethod
    async def connect(cls, settings: Settings) -> "SupabaseAuth":
        options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
        client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, options=options)
        admin_client = None
        if settings.SUPABASE_SERVICE_ROLE_KEY:
            admin_options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
            admin_client = await create_async_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, options=admin_options
            )
        logger.info("✅ Supabase auth client initialized")
        return cls(client, admin_client)

    async def get_session(self, access_token: str) -> Optional[Identity]:
        """Resolves an access token to an identity; a rejected token means no session."""
        if not access_token:
            return None
        try:
            response = await self.client.auth.get_user(access_token)
        except AuthApiError as e:
            logger.debug(f"Session token rejected: {e}")
            return None
        except AuthError as e:
            raise AppError(f"Identity provider error: {e}", ErrorCode.AUTH_ERROR, 401) from e

        if not response or not response.user:
            return None
        return identity_from_user(response.user)

    async def exchange_code_for_session(self, code: str, code_verifier: Optional[str] = None) -> SessionTokens:
        params: Dict[str, Any] = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier
        try:
            response = await self.client.auth.exchange_code_for_session(params)
        except AuthError as e:
            raise AppError(str(e) or "Could not exchange auth code", ErrorCode.AUTH_ERROR, 401) from e

        session = response.session
        if not session or not response.user:
            raise AppError("Auth code did not produce a session", ErrorCode.AUTH_ERROR, 401)

        identity = identity_from_user(response.user)
        logger.info(f"🔑 Session created for {identity.email}")
        return SessionTokens(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in or 3600,
            identity=identity,
        )

    async def send_magic_link(self, email: str, redirect_to: str):
        try:
            await self.client.auth.sign_in_with_otp({
                "email": email,
                "options": {"email_redirect_to": redirect_to},
            })
        except AuthError as e:
            raise AppError(str(e) or "Could not send sign-in link", ErrorCode.AUTH_ERROR, 400) from e
        logger.info(f"📧 Magic link sent to {email}")

    async def sign_up(self, email: str, password: str, redirect_to: str):
        try:
            await self.client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": redirect_to},
            })
        except AuthError as e:
            raise AppError(str(e) or "Sign up failed", ErrorCode.AUTH_ERROR, 400) from e
        logger.info(f"🆕 Sign up started for {email}")

    async def send_password_reset(self, email: str, redirect_to: str):
        try:
            await self.client.auth.reset_password_for_email(email, {"redirect_to": redirect_to})
        except AuthError as e:
            raise AppError(str(e) or "Could not send reset link", ErrorCode.AUTH_ERROR, 400) from e
        logger.info(f"📧 Password reset link sent to {email}")

    async def sign_out(self, access_token: str):
        try:
            await self.admin_client.auth.admin.sign_out(access_token)
        except AuthError as e:
            raise AppError(str(e) or "Sign out failed", ErrorCode.AUTH_ERROR, 400) from e

    async def update_password(self, user_id: str, password: str):
        try:
            await self.admin_client.auth.admin.update_user_by_id(user_id, {"password": password})
        except AuthError as e:
            raise AppError(str(e) or "Could not update password", ErrorCode.AUTH_ERROR, 400) from e
        logger.info(f"🔑 Password updated for user {user_id}")
