"""
Event Service: lifecycle and catalog
Owns the event list. Callers query it and pass the Event they need
explicitly to the booking and verification paths.

Lifecycle (organizer-triggered, one step forward):
    Upcoming -> Ongoing -> Booking Stopped -> Closed -> Upcoming
Only Ongoing accepts new bookings. Closed also disables ticket rendering
and scanning.
"""

import logging
import threading
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from qrgo.errors import BookingNotOpen, InvalidTransition, NotFound, StorageFailure, ValidationError
from qrgo.extensions import db
from qrgo.models import Event, EventStatus

logger = logging.getLogger(__name__)

NEXT_STATUS = {
    EventStatus.UPCOMING: EventStatus.ONGOING,
    EventStatus.ONGOING: EventStatus.BOOKING_STOPPED,
    EventStatus.BOOKING_STOPPED: EventStatus.CLOSED,
    EventStatus.CLOSED: EventStatus.UPCOMING,
}

CLOSED_MESSAGES = {
    EventStatus.UPCOMING: "Booking for this event will open soon.",
    EventStatus.BOOKING_STOPPED: "Bookings for this event have been stopped.",
    EventStatus.CLOSED: "Booking for this event has closed.",
}


def parse_status(value):
    if isinstance(value, EventStatus):
        return value
    try:
        return EventStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in EventStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status")


def next_status(status):
    return NEXT_STATUS[status]


def is_booking_open(event):
    return event.status == EventStatus.ONGOING


def ensure_booking_open(event):
    if not is_booking_open(event):
        logger.warning("Booking attempt for event %s while %s", event.id, event.status.value)
        raise BookingNotOpen(CLOSED_MESSAGES[event.status], status=event.status.value)


def ensure_scannable(event):
    if event.status == EventStatus.CLOSED:
        raise InvalidTransition("This event has concluded. Tickets can no longer be scanned.")


class EventCatalog:
    """
    Read model for events. Status changes go through set_status /
    advance_status so subscribers see every transition.
    """

    def __init__(self):
        self._listeners = []
        self._lock = threading.Lock()

    def subscribe(self, listener):
        """
        Register listener(event, old_status, new_status). Returns a callable
        that removes it again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def list_events(self, page=1, per_page=20):
        try:
            pagination = Event.query.order_by(Event.date).paginate(page=page, per_page=per_page, error_out=False)
        except SQLAlchemyError:
            logger.exception("Failed to list events")
            raise StorageFailure()
        return {
            'data': [event.to_dict() for event in pagination.items],
            'pagination': {
                'page': page,
                'per_page': per_page,
                'total': pagination.total,
                'total_pages': pagination.pages
            }
        }

    def events_for(self, organizer):
        try:
            query = Event.query.order_by(Event.date)
            if not organizer.is_super_admin:
                query = query.filter_by(organizer_id=organizer.id)
            return query.all()
        except SQLAlchemyError:
            logger.exception("Failed to list events for organizer %s", organizer.id)
            raise StorageFailure()

    def get(self, event_id):
        try:
            event = db.session.get(Event, event_id)
        except SQLAlchemyError:
            logger.exception("Failed to load event %s", event_id)
            raise StorageFailure()
        if not event:
            raise NotFound("The requested event could not be found.")
        return event

    def set_status(self, event_id, status):
        # Adjacency is not enforced here; any status may be written.
        event = self.get(event_id)
        new_status = parse_status(status)
        old_status = event.status
        event.status = new_status
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update status of event %s", event_id)
            raise StorageFailure()

        logger.info("Event %s status %s -> %s", event.id, old_status.value, new_status.value)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            # status is committed; listener errors are only logged
            try:
                listener(event, old_status, new_status)
            except Exception:
                logger.exception("Status listener %r failed for event %s", listener, event.id)
        return event

    def advance_status(self, event_id):
        event = self.get(event_id)
        return self.set_status(event_id, next_status(event.status))

    def upsert(self, data):
        """Create or replace an event from a dict (seeding)."""
        required = ["id", "organizer_id", "name", "date", "venue"]
        missing = [f for f in required if not data.get(f)]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}")

        event = db.session.get(Event, data["id"]) or Event(id=data["id"])
        event.organizer_id = data["organizer_id"]
        event.name = data["name"]
        event.date = data["date"] if isinstance(data["date"], datetime) else datetime.fromisoformat(data["date"])
        event.venue = data["venue"]
        event.venue_map_link = data.get("venue_map_link")
        event.description = data.get("description", "")
        event.image = data.get("image", "")
        event.status = parse_status(data.get("status", EventStatus.UPCOMING))
        event.price = data.get("price")
        event.requires_entry_number = bool(data.get("requires_entry_number", False))
        event.upi_id = data.get("upi_id")
        event.upi_link = data.get("upi_link")
        event.qr_code_image = data.get("qr_code_image")

        db.session.add(event)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to save event %s", data["id"])
            raise StorageFailure()
        return event
