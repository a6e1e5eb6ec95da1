from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.postgres import get_db
from app.bookings.batch import BatchResult
from app.bookings.notifications import BookingNotifier
from app.bookings.service import BookingService
from app.bookings.urgency import get_urgency_level
from app.bookings.schemas import (
    BatchBookingResponse,
    BookingListResponse,
    BookingResponse,
    CancelBookingRequest,
    ConflictCheckRequest,
    ConflictCheckResponse,
    CreateBookingRequest,
    DeleteBookingRequest,
    ExtendBookingRequest,
    ExtensionOptionsResponse,
    MultiDateBookingRequest,
    NannySummary,
    PayBreakdownResponse,
    ReassignBookingRequest,
    RecurringBookingRequest,
    UpdateScheduleRequest,
)
from app.auth.middleware import JWTPayload, verify_token, check_permission
from app.messaging.publisher import RabbitMQPublisher
from app.scheduling.pricing import resolve_pay
from app.scheduling.time_model import booked_hours
from app.utils.timezone import utc_now

TEMPLATE_FIELDS = {"date", "end_date", "dates", "cadence", "repeat_count"}


def get_notifier():
    """Dependency providing a notifier bound to the booking exchange"""
    publisher = RabbitMQPublisher()
    try:
        yield BookingNotifier(publisher)
    finally:
        publisher.close()


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    notifier: BookingNotifier = Depends(get_notifier),
) -> BookingService:
    """Dependency to get BookingService"""
    return BookingService(db, notifier=notifier)


router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)


def to_response(booking, now: Optional[datetime] = None) -> BookingResponse:
    """Booking with its derived fields: urgency, scheduled hours and nanny pay"""
    pay = resolve_pay(booking)
    return BookingResponse(
        id=booking.id,
        nanny_id=booking.nanny_id,
        nanny_name=booking.nanny_name or "",
        date=booking.date,
        end_date=booking.end_date,
        start_time=booking.start_time,
        end_time=booking.end_time or "",
        plan=booking.plan,
        total_price=booking.total_price or 0,
        client_name=booking.client_name or "",
        client_email=booking.client_email or "",
        client_phone=booking.client_phone or "",
        hotel=booking.hotel or "",
        children_count=booking.children_count or 1,
        children_ages=booking.children_ages or "",
        notes=booking.notes or "",
        status=booking.status,
        clock_in=booking.clock_in,
        clock_out=booking.clock_out,
        created_by=booking.created_by,
        created_at=booking.created_at,
        cancelled_at=booking.cancelled_at,
        cancelled_by=booking.cancelled_by or "",
        cancellation_reason=booking.cancellation_reason or "",
        deleted_at=booking.deleted_at,
        urgency=get_urgency_level(booking, now).value,
        scheduled_hours=booked_hours(booking.start_time, booking.end_time, booking.date, booking.end_date),
        nanny_pay=PayBreakdownResponse(
            source=pay.source,
            base_pay=pay.base_pay,
            taxi_fee=pay.taxi_fee,
            total=pay.total,
            hours=pay.hours,
        ),
    )


def _batch_response(result: BatchResult, response: Response) -> BatchBookingResponse:
    response.status_code = status.HTTP_201_CREATED if result.succeeded else status.HTTP_207_MULTI_STATUS
    return BatchBookingResponse(
        requested=result.requested,
        created=result.created_count,
        partial=result.partial,
        error=result.error,
        bookings=[to_response(b) for b in result.created],
    )


def _own_nanny_id(jwt_payload: JWTPayload) -> Optional[int]:
    """Nanny callers are scoped to their own bookings; other roles are not."""
    return jwt_payload.nanny_id if jwt_payload.is_nanny else None


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Create a booking.

    Workflow:
    1. Prices the window with the nanny's rate (a submitted total_price must match)
    2. Rejects blocked days and overlapping bookings of the nanny
    3. Persists the booking as pending (or confirmed when an operator books)

    Required permission: booking:create
    """
    check_permission(jwt_payload, "booking:create")
    details = request.model_dump()
    if jwt_payload.actor == "parent":
        details["status"] = "pending"
    booking = await service.create_booking(details, jwt_payload.actor, jwt_payload.name)
    return to_response(booking)


@router.post("/multi-date", response_model=BatchBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_multi_date_bookings(
    request: MultiDateBookingRequest,
    response: Response,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Book the same window and nanny on several dates.

    Answers 207 when only some of the dates could be booked.

    Required permission: booking:create
    """
    check_permission(jwt_payload, "booking:create")
    template = request.model_dump(exclude=TEMPLATE_FIELDS)
    if jwt_payload.actor == "parent":
        template["status"] = "pending"
    result = await service.create_multi_date(template, request.dates, jwt_payload.actor, jwt_payload.name)
    return _batch_response(result, response)


@router.post("/recurring", response_model=BatchBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_bookings(
    request: RecurringBookingRequest,
    response: Response,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Repeat a booking weekly, every two weeks or every 30 days (1-12 times).

    Answers 207 when the series stopped early.

    Required permission: booking:create
    """
    check_permission(jwt_payload, "booking:create")
    template = request.model_dump(exclude=TEMPLATE_FIELDS)
    if jwt_payload.actor == "parent":
        template["status"] = "pending"
    result = await service.create_recurring(
        template,
        request.date,
        request.cadence,
        request.repeat_count,
        request.end_date,
        jwt_payload.actor,
        jwt_payload.name,
    )
    return _batch_response(result, response)


@router.post("/conflict-check", response_model=ConflictCheckResponse)
async def check_conflict(
    request: ConflictCheckRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Check whether a nanny is free on a slot before assigning them.

    Required permission: booking:reassign
    """
    check_permission(jwt_payload, "booking:reassign")
    result = await service.check_conflict(
        request.nanny_id,
        request.date,
        request.start_time,
        request.end_time,
        request.end_date,
        request.exclude_id,
    )
    return ConflictCheckResponse(**result)


@router.get("/available-nannies", response_model=List[NannySummary])
async def get_available_nannies(
    day: date = Query(..., alias="date"),
    start_time: str = Query(...),
    end_time: str = Query(""),
    end_date: Optional[date] = Query(None),
    exclude_id: Optional[int] = Query(None),
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Active nannies free on a slot.

    Required permission: booking:reassign
    """
    check_permission(jwt_payload, "booking:reassign")
    nannies = await service.available_nannies(day, start_time, end_time, exclude_id, end_date)
    return [NannySummary.model_validate(n) for n in nannies]


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    nanny_id: Optional[int] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    List bookings of a nanny, or of every nanny on a day (today by default).

    Required permission: booking:read
    """
    check_permission(jwt_payload, "booking:read")
    if jwt_payload.is_nanny:
        nanny_id = jwt_payload.nanny_id
    bookings = await service.list_bookings(nanny_id, day)
    now = utc_now()
    return BookingListResponse(bookings=[to_response(b, now) for b in bookings], count=len(bookings))


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Get booking details, with urgency and nanny pay.

    Required permission: booking:read
    """
    check_permission(jwt_payload, "booking:read")
    booking = await service.get_booking(booking_id)
    service.ensure_own_booking(booking, _own_nanny_id(jwt_payload))
    return to_response(booking)


@router.put("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Confirm a pending booking and notify the nanny and parent.

    Required permission: booking:confirm
    """
    check_permission(jwt_payload, "booking:confirm")
    return to_response(await service.confirm_booking(booking_id))


@router.put("/{booking_id}/clock-in", response_model=BookingResponse)
async def clock_in(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Start the shift of a confirmed booking dated today.

    A nanny can only have one shift in progress.

    Required permission: booking:clock
    """
    check_permission(jwt_payload, "booking:clock")
    return to_response(await service.clock_in(booking_id, _own_nanny_id(jwt_payload)))


@router.put("/{booking_id}/clock-out", response_model=BookingResponse)
async def clock_out(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    End the shift; the booking is completed and pay switches to clocked time.

    Required permission: booking:clock
    """
    check_permission(jwt_payload, "booking:clock")
    return to_response(await service.clock_out(booking_id, _own_nanny_id(jwt_payload)))


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Mark a booking completed without clock data.

    Required permission: booking:complete
    """
    check_permission(jwt_payload, "booking:complete")
    booking = await service.get_booking(booking_id)
    service.ensure_own_booking(booking, _own_nanny_id(jwt_payload))
    return to_response(await service.complete_booking(booking_id))


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Cancel a booking. Only operators may record another actor as canceller.

    Required permission: booking:cancel
    """
    check_permission(jwt_payload, "booking:cancel")
    actor = jwt_payload.actor
    if actor == "admin" and request.cancelled_by:
        actor = request.cancelled_by
    if jwt_payload.is_nanny:
        booking = await service.get_booking(booking_id)
        service.ensure_own_booking(booking, jwt_payload.nanny_id)
    return to_response(await service.cancel_booking(booking_id, actor, request.reason))


@router.put("/{booking_id}/reassign", response_model=BookingResponse)
async def reassign_booking(
    booking_id: int,
    request: ReassignBookingRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Forward a booking to another nanny.

    Fails with 409 and a list of free nannies when the new nanny is busy.

    Required permission: booking:reassign
    """
    check_permission(jwt_payload, "booking:reassign")
    return to_response(await service.reassign_booking(booking_id, request.nanny_id))


@router.get("/{booking_id}/extension-options", response_model=ExtensionOptionsResponse)
async def get_extension_options(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Later end times for a booking and their price.

    Required permission: booking:extend
    """
    check_permission(jwt_payload, "booking:extend")
    booking = await service.get_booking(booking_id)
    service.ensure_own_booking(booking, _own_nanny_id(jwt_payload))
    options = await service.get_extension_options(booking_id)
    return ExtensionOptionsResponse(
        booking_id=booking.id,
        current_end_time=booking.end_time or "",
        options=options,
    )


@router.put("/{booking_id}/extend", response_model=BookingResponse)
async def extend_booking(
    booking_id: int,
    request: ExtendBookingRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Push the end time later; the price is recomputed.

    Required permission: booking:extend
    """
    check_permission(jwt_payload, "booking:extend")
    if jwt_payload.is_nanny:
        booking = await service.get_booking(booking_id)
        service.ensure_own_booking(booking, jwt_payload.nanny_id)
    return to_response(await service.extend_booking(booking_id, request.end_time))


@router.put("/{booking_id}/schedule", response_model=BookingResponse)
async def update_schedule(
    booking_id: int,
    request: UpdateScheduleRequest,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Change the date or times of an open booking.

    Required permission: booking:update
    """
    check_permission(jwt_payload, "booking:update")
    changes = request.model_dump(exclude_unset=True)
    return to_response(await service.update_schedule(booking_id, changes))


@router.delete("/{booking_id}", response_model=BookingResponse)
async def delete_booking(
    booking_id: int,
    request: Optional[DeleteBookingRequest] = None,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Move a booking to the audit trail.

    Required permission: booking:delete
    """
    check_permission(jwt_payload, "booking:delete")
    deleted_by = (request.deleted_by if request else "") or jwt_payload.name or jwt_payload.user_id
    return to_response(await service.delete_booking(booking_id, deleted_by))


@router.put("/{booking_id}/restore", response_model=BookingResponse)
async def restore_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Bring a deleted booking back.

    Required permission: booking:delete
    """
    check_permission(jwt_payload, "booking:delete")
    return to_response(await service.restore_booking(booking_id))


@router.post("/{booking_id}/reminder")
async def send_reminder(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Remind the assigned nanny of a pending booking.

    Required permission: booking:remind
    """
    check_permission(jwt_payload, "booking:remind")
    sent = await service.send_reminder(booking_id)
    return {"booking_id": booking_id, "sent": sent}
