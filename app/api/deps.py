from fastapi import Request

from app.core.errors import AppError, ErrorCode
from app.services.auth_service import SupabaseAuth
from app.services.db_service import Database


def get_db(request: Request) -> Database:
    """Store handle created by the app lifespan."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise AppError("Database is not configured", ErrorCode.DATABASE_ERROR, 503)
    return db


def get_auth(request: Request) -> SupabaseAuth:
    auth = getattr(request.app.state, "auth", None)
    if auth is None:
        raise AppError("Identity provider is not configured", ErrorCode.AUTH_ERROR, 503)
    return auth
