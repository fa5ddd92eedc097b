from typing import Any, Dict, List, Optional

from supabase import AsyncClient

from app.core.constants import BASE_PRICES, EXTRA_PRICES
from app.core.errors import AppError, ErrorCode
from app.core.logger import logger
from app.models.db_models import Booking, BookingStatus, can_transition
from app.models.schemas import BookingRequest
from app.services.db_service import Database, first_row, partial_update, rows


def quote_price(service: str, extras: Optional[List[str]] = None) -> int:
    """
    Base price of the service plus every known extra.
    Unknown extras are ignored (they are free-text add-ons).
    """
    price = BASE_PRICES[service]
    for extra in extras or []:
        if extra in EXTRA_PRICES:
            price += EXTRA_PRICES[extra]
        else:
            logger.info(f"ℹ️ Extra '{extra}' has no price, booked free of charge")
    return price


async def get_booking_by_id(db: Database, booking_id: str) -> Booking:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("bookings").select("*").eq("id", booking_id).execute())
        if not row:
            raise AppError("Booking not found", ErrorCode.NOT_FOUND, 404, {"id": booking_id})
        return Booking.model_validate(row)

    return await db.query(operation, context="get-booking-by-id", retries=2)


async def list_bookings_for_customer(db: Database, customer_id: str) -> List[Booking]:
    async def operation(client: AsyncClient):
        response = await client.table("bookings")\
            .select("*")\
            .eq("customer_id", customer_id)\
            .order("date", desc=False)\
            .execute()
        return [Booking.model_validate(row) for row in rows(response)]

    return await db.query(operation, context="get-bookings-by-customer", retries=2)


async def list_bookings_for_cleaner(db: Database, cleaner_id: str) -> List[Booking]:
    async def operation(client: AsyncClient):
        response = await client.table("bookings")\
            .select("*")\
            .eq("cleaner_id", cleaner_id)\
            .order("date", desc=False)\
            .execute()
        return [Booking.model_validate(row) for row in rows(response)]

    return await db.query(operation, context="get-bookings-for-cleaner", retries=2)


async def create_booking(db: Database, customer_id: str, request: BookingRequest) -> Booking:
    """
    Stores a validated booking submission as a pending booking for `customer_id`.
    """
    payload = {
        "customer_id": customer_id,
        "status": BookingStatus.PENDING.value,
        "service_type": request.service,
        "date": request.starts_at().isoformat(),
        "duration": request.duration,
        "price": quote_price(request.service, request.extras),
        "address": request.address.one_line(),
        "notes": request.notes,
        "metadata": {
            "city": request.city,
            "time": request.time.strftime("%H:%M"),
            "extras": request.extras or [],
            "postcode": request.address.postcode,
        },
    }

    async def operation(client: AsyncClient):
        row = first_row(await client.table("bookings").insert(payload).execute())
        if not row:
            raise AppError("Booking insert returned no row", ErrorCode.DATABASE_ERROR, 500)
        return Booking.model_validate(row)

    booking = await db.query(operation, context="create-booking", retries=1)
    logger.info(f"✅ Booking {booking.id} created for customer {customer_id} ({booking.service_type}, {booking.date})")
    return booking


async def update_booking(
    db: Database,
    booking_id: str,
    fields: Dict[str, Any],
    expected_updated_at: Optional[str] = None,
) -> Booking:
    """
    Partial update of booking details. Status only moves through change_booking_status.
    """
    if "status" in fields:
        raise AppError(
            "Booking status can only be changed through a status transition",
            ErrorCode.VALIDATION_ERROR,
            400,
        )
    row = await partial_update(
        db,
        "bookings",
        booking_id,
        fields,
        entity="Booking",
        context="update-booking",
        retries=1,
        expected_updated_at=expected_updated_at,
    )
    return Booking.model_validate(row)


async def change_booking_status(db: Database, booking_id: str, status: BookingStatus) -> Booking:
    booking = await get_booking_by_id(db, booking_id)
    target = BookingStatus(status)

    if not can_transition(booking.status, target):
        raise AppError(
            f"Cannot change booking status from {booking.status.value} to {target.value}",
            ErrorCode.VALIDATION_ERROR,
            409,
            {"id": booking_id, "from": booking.status.value, "to": target.value},
        )

    # Filtering on the status we just read makes a concurrent transition lose with a 409
    row = await partial_update(
        db,
        "bookings",
        booking_id,
        {"status": target.value},
        entity="Booking",
        context="change-booking-status",
        retries=1,
        extra_filters={"status": booking.status.value},
    )
    logger.info(f"🔁 Booking {booking_id}: {booking.status.value} -> {target.value}")
    return Booking.model_validate(row)
