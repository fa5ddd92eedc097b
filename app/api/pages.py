"""
Guarded pages. Markup is bare HTML; these routes enforce the session and
role checks and show the data each page needs.
"""

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.api.deps import get_db
from app.core.config import settings
from app.core.errors import AppError, log_error
from app.core.security import require_identity, require_role
from app.models.db_models import UserRole
from app.services import booking_service, content_service
from app.services.auth_service import Identity
from app.services.db_service import Database

router = APIRouter()


def render_page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html = (
        "<!doctype html><html><head><meta charset='utf-8'>"
        f"<title>{escape(title)} | {escape(settings.PROJECT_NAME)}</title></head>"
        f"<body><main><h1>{escape(title)}</h1>{body}</main></body></html>"
    )
    return HTMLResponse(html, status_code=status_code)


def render_error_page(status_code: int) -> HTMLResponse:
    return render_page(
        "Something went wrong",
        "<p>We couldn't load this page. Please try again in a moment.</p>",
        status_code=status_code,
    )


@router.get("/login", response_class=HTMLResponse)
async def login_page():
    return render_page(
        "Sign in",
        "<p>Enter your email and we'll send you a sign-in link.</p>",
    )


@router.get("/dashboard", response_class=HTMLResponse)
async def customer_dashboard(
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    bookings = await booking_service.list_bookings_for_customer(db, identity.id)
    if bookings:
        items = "".join(
            f"<li>{escape(b.service_type)} on {b.date:%d/%m/%Y %H:%M} ({b.status.value})</li>"
            for b in bookings
        )
        body = f"<ul>{items}</ul>"
    else:
        body = "<p>You have no bookings yet.</p>"
    return render_page("Customer Dashboard", body)


@router.get("/dashboard/admin/db", response_class=HTMLResponse)
async def database_status_page(
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    db: Database = Depends(get_db),
):
    try:
        is_connected = await db.check_connection()
    except AppError as e:
        log_error(e)
        is_connected = False
    label = "Connected" if is_connected else "Disconnected"
    return render_page("Database Status", f"<p>Connection status: <strong>{label}</strong></p>")


@router.get("/booking/flow", response_class=HTMLResponse)
async def booking_flow(
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    services = await content_service.list_services(db)
    cities = await content_service.list_cities(db)
    service_items = "".join(f"<li>{escape(s.name)}</li>" for s in services)
    city_items = "".join(f"<li>{escape(c.name)}</li>" for c in cities)
    return render_page(
        "Book a clean",
        f"<h2>Services</h2><ul>{service_items}</ul><h2>Cities</h2><ul>{city_items}</ul>",
    )
