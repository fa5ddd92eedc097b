from typing import Any, Dict, Optional

from supabase import AsyncClient

from app.core.errors import AppError, ErrorCode
from app.core.logger import logger
from app.models.db_models import Profile, User, UserRole
from app.services.db_service import Database, first_row, partial_update

USER_WITH_PROFILE = "*, profiles(*)"

# Columns that live on users; names and phone live on profiles
USER_COLUMNS = {"email", "role"}

UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: AppError) -> bool:
    return error.code == ErrorCode.DATABASE_ERROR and error.metadata.get("sqlstate") == UNIQUE_VIOLATION


async def get_user_by_id(db: Database, user_id: str) -> User:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("users").select(USER_WITH_PROFILE).eq("id", user_id).execute())
        if not row:
            raise AppError("User not found", ErrorCode.NOT_FOUND, 404, {"id": user_id})
        return User.model_validate(row)

    return await db.query(operation, context="get-user-by-id", retries=2)


async def get_user_by_email(db: Database, email: str) -> User:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("users").select(USER_WITH_PROFILE).eq("email", email).execute())
        if not row:
            raise AppError("User not found", ErrorCode.NOT_FOUND, 404, {"email": email})
        return User.model_validate(row)

    return await db.query(operation, context="get-user-by-email", retries=2)


async def create_user(db: Database, user_id: str, email: str, role: UserRole = UserRole.CUSTOMER) -> User:
    async def operation(client: AsyncClient):
        payload = {"id": user_id, "email": email, "role": UserRole(role).value}
        row = first_row(await client.table("users").insert(payload).execute())
        return User.model_validate(row)

    user = await db.query(operation, context="create-user", retries=1)
    logger.info(f"🆕 New user created: {email} ({user.role.value})")
    return user


async def update_user(db: Database, user_id: str, fields: Dict[str, Any]) -> User:
    """Partial update of the users row; unknown columns are rejected."""
    unknown = set(fields) - USER_COLUMNS
    if unknown:
        raise AppError(
            f"Cannot update user fields: {', '.join(sorted(unknown))}",
            ErrorCode.VALIDATION_ERROR,
            400,
        )
    row = await partial_update(db, "users", user_id, fields, entity="User", context="update-user", retries=1)
    return User.model_validate(row)


async def get_profile_by_id(db: Database, profile_id: str) -> Profile:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("profiles").select("*").eq("id", profile_id).execute())
        if not row:
            raise AppError("Profile not found", ErrorCode.NOT_FOUND, 404, {"id": profile_id})
        return Profile.model_validate(row)

    return await db.query(operation, context="get-profile-by-id", retries=2)


async def create_profile(db: Database, profile_id: str, fields: Optional[Dict[str, Any]] = None) -> Profile:
    async def operation(client: AsyncClient):
        payload = dict(fields or {})
        payload["id"] = profile_id
        row = first_row(await client.table("profiles").insert(payload).execute())
        return Profile.model_validate(row)

    return await db.query(operation, context="create-profile", retries=1)


async def update_profile(
    db: Database,
    profile_id: str,
    fields: Dict[str, Any],
    expected_updated_at: Optional[str] = None,
) -> Profile:
    row = await partial_update(
        db,
        "profiles",
        profile_id,
        fields,
        entity="Profile",
        context="update-profile",
        retries=1,
        expected_updated_at=expected_updated_at,
    )
    return Profile.model_validate(row)


async def ensure_user(db: Database, user_id: str, email: str) -> User:
    """
    Finds the user for a freshly authenticated identity; creates the user and
    an empty profile on first sign-in.
    """
    try:
        return await get_user_by_id(db, user_id)
    except AppError as e:
        if e.code != ErrorCode.NOT_FOUND:
            raise

    # A concurrent first sign-in may have inserted the same rows already
    try:
        await create_user(db, user_id, email)
    except AppError as e:
        if not is_unique_violation(e):
            raise
        logger.info(f"User {user_id} was created by a concurrent sign-in")

    try:
        await create_profile(db, user_id)
    except AppError as e:
        if not is_unique_violation(e):
            raise
    return await get_user_by_id(db, user_id)
