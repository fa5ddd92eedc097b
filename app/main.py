from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from app.core.config import settings
from app.api import auth, bookings, content, pages, profiles, status, users
from app.api.pages import render_error_page
from app.core.errors import AppError, ErrorCode, log_error
from app.core.logger import setup_logging, logger
from app.core.rate_limit import RateLimitMiddleware
from app.services.auth_service import SupabaseAuth
from app.services.db_service import Database
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting SimplyMaid booking backend")
    app.state.db = None
    app.state.auth = None
    if settings.SUPABASE_URL and settings.SUPABASE_KEY:
        app.state.db = await Database.connect(settings)
        app.state.auth = await SupabaseAuth.connect(settings)
    else:
        logger.warning("⚠️ Supabase credentials missing, database and auth routes will answer 503")
    yield
    # Shutdown
    if app.state.db is not None:
        await app.state.db.close()
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    auth_max_requests=settings.AUTH_RATE_LIMIT_MAX_REQUESTS,
    auth_window_seconds=settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
)


def is_api_request(request: Request) -> bool:
    return request.url.path.startswith(settings.API_V1_STR)


def error_response(request: Request, error: AppError):
    """
    Every caught failure ends here: logged once, then rendered as JSON for the
    API or as a redirect / fallback page for browser routes.
    """
    error.tag(f"{request.method} {request.url.path}")
    log_error(error)

    if is_api_request(request):
        return JSONResponse(status_code=error.status_code, content=error.to_dict())
    if error.code == ErrorCode.AUTH_ERROR:
        return RedirectResponse("/login", status_code=303)
    if error.code == ErrorCode.FORBIDDEN:
        return RedirectResponse("/dashboard", status_code=303)
    return render_error_page(error.status_code)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return error_response(request, exc)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(request, AppError.from_validation_error(exc))

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"🔥 UNHANDLED ERROR: {str(exc)}", exc_info=True)
    return error_response(request, AppError.from_unknown(exc))

# Include routers
app.include_router(bookings.router, prefix=settings.API_V1_STR, tags=["Bookings"])
app.include_router(users.router, prefix=settings.API_V1_STR, tags=["Users"])
app.include_router(profiles.router, prefix=settings.API_V1_STR, tags=["Profiles"])
app.include_router(content.router, prefix=settings.API_V1_STR, tags=["Content"])
app.include_router(auth.router, prefix=settings.API_V1_STR, tags=["Auth"])
app.include_router(status.router, prefix=settings.API_V1_STR, tags=["Status"])
app.include_router(pages.router, tags=["Pages"])

@app.get("/health")
async def health_check_std():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
