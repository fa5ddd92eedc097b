from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response

from app.api.deps import get_db
from app.api.etag import make_etag, parse_if_match
from app.core.errors import AppError, ErrorCode
from app.core.security import ensure_self_or_admin, require_identity
from app.models.db_models import BookingStatus
from app.models.schemas import BookingRequest, BookingStatusUpdate, BookingUpdate
from app.services import booking_service
from app.services.auth_service import Identity
from app.services.db_service import Database

router = APIRouter()


@router.post("/bookings")
async def create_booking(
    req: BookingRequest,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    booking = await booking_service.create_booking(db, identity.id, req)
    return {"booking": booking.to_json()}


@router.get("/bookings")
async def list_bookings(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    cleaner_id: Optional[str] = Query(None, alias="cleanerId"),
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    if cleaner_id:
        ensure_self_or_admin(identity, cleaner_id)
        bookings = await booking_service.list_bookings_for_cleaner(db, cleaner_id)
        return {"bookings": [b.to_json() for b in bookings]}

    if not customer_id:
        raise AppError("Customer ID is required", ErrorCode.VALIDATION_ERROR, 400)

    ensure_self_or_admin(identity, customer_id)
    bookings = await booking_service.list_bookings_for_customer(db, customer_id)
    return {"bookings": [b.to_json() for b in bookings]}


@router.get("/bookings/{booking_id}")
async def get_booking(
    booking_id: UUID,
    response: Response,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    booking = await booking_service.get_booking_by_id(db, str(booking_id))
    if identity.id != booking.cleaner_id:
        ensure_self_or_admin(identity, booking.customer_id)
    etag = make_etag(booking.updated_at)
    if etag:
        response.headers["ETag"] = etag
    return {"booking": booking.to_json()}


@router.patch("/bookings/{booking_id}")
async def update_booking(
    booking_id: UUID,
    req: BookingUpdate,
    response: Response,
    if_match: Optional[str] = Header(None),
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    current = await booking_service.get_booking_by_id(db, str(booking_id))
    ensure_self_or_admin(identity, current.customer_id)

    changes = req.changes()
    if "cleaner_id" in changes and not identity.is_admin:
        raise AppError("Only admins can assign cleaners", ErrorCode.FORBIDDEN, 403)

    booking = await booking_service.update_booking(
        db, str(booking_id), changes, expected_updated_at=parse_if_match(if_match)
    )
    etag = make_etag(booking.updated_at)
    if etag:
        response.headers["ETag"] = etag
    return {"booking": booking.to_json()}


@router.post("/bookings/{booking_id}/status")
async def change_status(
    booking_id: UUID,
    req: BookingStatusUpdate,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    """
    Admins may apply any valid transition, the assigned cleaner may confirm or
    complete, and the customer may cancel their own booking.
    """
    booking = await booking_service.get_booking_by_id(db, str(booking_id))

    if not identity.is_admin:
        is_cleaner = booking.cleaner_id is not None and identity.id == booking.cleaner_id
        is_owner = identity.id == booking.customer_id
        allowed = (
            (is_cleaner and req.status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED))
            or (is_owner and req.status == BookingStatus.CANCELLED)
        )
        if not allowed:
            raise AppError("Forbidden", ErrorCode.FORBIDDEN, 403, {"status": req.status.value})

    updated = await booking_service.change_booking_status(db, str(booking_id), req.status)
    return {"booking": updated.to_json()}
