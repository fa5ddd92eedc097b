from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_db
from app.core.errors import AppError, log_error

router = APIRouter()


@router.get("/db-status")
async def db_status(request: Request):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        db = get_db(request)
        is_connected = await db.check_connection()
        return {"status": "connected" if is_connected else "disconnected", "timestamp": timestamp}
    except Exception as e:
        error = AppError.from_unknown(e).tag("db-status")
        log_error(error)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": error.message, "timestamp": timestamp},
        )
