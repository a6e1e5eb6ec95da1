"""Who hears about a booking transition, and what they are told"""
import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

from app.scheduling.time_model import clocked_hours

logger = logging.getLogger(__name__)

NANNY = "nanny"
PARENT = "parent"
BUSINESS = "business"

EVENT_CONFIRMED = "booking.confirmed"
EVENT_CANCELLED = "booking.cancelled"
EVENT_REASSIGNED = "booking.reassigned"
EVENT_COMPLETED = "booking.completed"
EVENT_REMINDER = "booking.reminder"


@dataclass(frozen=True)
class Notification:
    """A message due to one recipient; delivery happens downstream"""
    event: str
    recipient: str  # nanny | parent | business
    title: str
    message: str
    booking_id: int
    nanny_id: Optional[int] = None
    email: str = ""
    phone: str = ""
    locale: str = "en"


def _to_nanny(booking, event, title, message, nanny=None) -> Optional[Notification]:
    nanny_id = nanny.id if nanny is not None else booking.nanny_id
    if nanny_id is None:
        return None
    return Notification(
        event=event,
        recipient=NANNY,
        title=title,
        message=message,
        booking_id=booking.id,
        nanny_id=nanny_id,
        email=(getattr(nanny, "email", None) or "") if nanny is not None else "",
        phone=(getattr(nanny, "phone", None) or "") if nanny is not None else "",
    )


def _to_parent(booking, event, title, message) -> Optional[Notification]:
    if not booking.client_email and not booking.client_phone:
        return None
    return Notification(
        event=event,
        recipient=PARENT,
        title=title,
        message=message,
        booking_id=booking.id,
        nanny_id=booking.nanny_id,
        email=booking.client_email,
        phone=booking.client_phone,
        locale=booking.locale or "en",
    )


def confirmed_notifications(booking, nanny=None) -> List[Notification]:
    who = booking.client_name or "your client"
    return [n for n in (
        _to_nanny(
            booking, EVENT_CONFIRMED, "Booking Confirmed",
            f"Your booking with {who} on {booking.date} has been confirmed.",
            nanny,
        ),
        _to_parent(
            booking, EVENT_CONFIRMED, "Booking Confirmed",
            f"Your booking #{booking.id} on {booking.date} at {booking.start_time} is confirmed.",
        ),
    ) if n is not None]


def cancelled_notifications(booking, nanny=None) -> List[Notification]:
    who = booking.client_name or "your client"
    notifications = [
        _to_nanny(
            booking, EVENT_CANCELLED, "Booking Cancelled",
            f"The booking with {who} on {booking.date} has been cancelled.",
            nanny,
        ),
    ]
    # Parents who cancelled themselves already know
    if booking.cancelled_by != "parent":
        notifications.append(_to_parent(
            booking, EVENT_CANCELLED, "Booking Cancelled",
            f"Your booking #{booking.id} on {booking.date} has been cancelled.",
        ))
    return [n for n in notifications if n is not None]


def reassigned_notifications(booking, new_nanny, previous_nanny=None) -> List[Notification]:
    """New assignment for the incoming nanny, release notice for the outgoing one."""
    end = f" - {booking.end_time}" if booking.end_time else ""
    notifications = [
        _to_nanny(
            booking, EVENT_REASSIGNED, "New Booking Assigned",
            f"You have been assigned booking #{booking.id} with {booking.client_name} "
            f"on {booking.date}, {booking.start_time}{end}.",
            new_nanny,
        ),
    ]
    if previous_nanny is not None and previous_nanny.id != new_nanny.id:
        notifications.append(Notification(
            event=EVENT_REASSIGNED,
            recipient=NANNY,
            title="Booking Reassigned",
            message=f"Booking #{booking.id} on {booking.date} has been assigned to another nanny.",
            booking_id=booking.id,
            nanny_id=previous_nanny.id,
            email=previous_nanny.email or "",
            phone=previous_nanny.phone or "",
        ))
    return [n for n in notifications if n is not None]


def completed_notifications(booking, nanny=None) -> List[Notification]:
    """
    Completion notices.

    A completion that carries clock data also produces the parent's invoice
    and a notice to the business.
    """
    who = booking.client_name or "your client"
    notifications = [
        _to_nanny(
            booking, EVENT_COMPLETED, "Booking Completed",
            f"Your booking with {who} on {booking.date} has been marked as completed.",
            nanny,
        ),
    ]
    if booking.clock_in and booking.clock_out:
        hours = clocked_hours(booking.clock_in, booking.clock_out)
        caregiver = getattr(nanny, "name", None) or booking.nanny_name or "Your Nanny"
        notifications.append(_to_parent(
            booking, EVENT_COMPLETED, f"Invoice INV-{booking.id}",
            f"Caregiver: {caregiver}. Date: {booking.date}. Hours: {hours:.1f}h. "
            f"Children: {booking.children_count or 1}. Total: {booking.total_price or 0}.",
        ))
        notifications.append(Notification(
            event=EVENT_COMPLETED,
            recipient=BUSINESS,
            title=f"Shift completed #{booking.id}",
            message=f"{caregiver} clocked out of booking #{booking.id} ({hours:.1f}h).",
            booking_id=booking.id,
            nanny_id=booking.nanny_id,
        ))
    return [n for n in notifications if n is not None]


def reminder_notifications(booking, nanny=None) -> List[Notification]:
    """Nudge the assigned nanny about a booking still waiting for confirmation."""
    if booking.status != "pending" or booking.nanny_id is None:
        return []
    notification = _to_nanny(
        booking, EVENT_REMINDER, "Booking Reminder",
        f"Reminder: booking #{booking.id} with {booking.client_name} on {booking.date} "
        f"at {booking.start_time} is waiting for your confirmation.",
        nanny,
    )
    return [notification] if notification else []


class BookingNotifier:
    """Publishes notifications to the booking exchange"""

    def __init__(self, publisher=None):
        self.publisher = publisher

    def send(self, notifications: List[Notification]) -> int:
        """
        Publish each notification under its event routing key.

        Delivery is best-effort: a failed publish is logged and the
        transition that produced it stands.

        Returns:
            Number of notifications published
        """
        if self.publisher is None:
            return 0
        sent = 0
        for notification in notifications:
            message = {
                "event": notification.event,
                "data": asdict(notification),
            }
            try:
                self.publisher.publish(notification.event, message)
                sent += 1
            except Exception as e:
                logger.error(
                    f"Failed to publish {notification.event} for booking {notification.booking_id}: {e}"
                )
        return sent
