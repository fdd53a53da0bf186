"""
Verification Engine
Classifies a scanned ticket against the organizer's selected event.

Order of checks:
    payload shape -> event match -> booking exists -> event match
    -> already checked in (warning) -> Confirmed -> success
Cross-event scans never carry the booking back to the scanner.
"""

import enum
import json
from dataclasses import dataclass
from typing import Any, Optional

from qrgo.errors import NotFound, ScanDecodeError
from qrgo.models import BookingStatus

INVALID_FORMAT = "Invalid QR Code format"
BOOKING_NOT_FOUND = "Invalid QR Code. Booking not found."
DIFFERENT_EVENT = "Ticket is for a different event!"
ALREADY_USED = "This ticket has already been used."
VALID_TICKET = "Valid ticket. Ready for check-in."
CHECKED_IN = "Check-in successful!"


class VerdictCategory(str, enum.Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Verdict:
    category: VerdictCategory
    message: str
    booking: Optional[Any] = None
    event: Optional[Any] = None

    def to_dict(self):
        return {
            'category': self.category.value,
            'message': self.message,
            'booking': self.booking.to_dict() if self.booking is not None else None,
            'event': self.event.to_dict() if self.event is not None else None,
        }


def parse_payload(raw):
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            raise ScanDecodeError(INVALID_FORMAT)
    if not isinstance(raw, str):
        raise ScanDecodeError(INVALID_FORMAT)

    try:
        data = json.loads(raw)
    except ValueError:
        raise ScanDecodeError(INVALID_FORMAT)

    if not isinstance(data, dict):
        raise ScanDecodeError(INVALID_FORMAT)
    booking_id = data.get('bookingId')
    if not isinstance(booking_id, str) or not booking_id:
        raise ScanDecodeError(INVALID_FORMAT)
    if 'eventId' in data and not isinstance(data['eventId'], str):
        raise ScanDecodeError(INVALID_FORMAT)
    return data


def error(message, booking=None, event=None):
    return Verdict(VerdictCategory.ERROR, message, booking, event)


def verify(raw, selected_event, ledger):
    """
    Pure for a fixed ledger state. StorageFailure from the ledger
    propagates to the caller.
    """
    try:
        payload = parse_payload(raw)
    except ScanDecodeError as e:
        return error(e.message)

    if 'eventId' in payload and payload['eventId'] != selected_event.id:
        return error(DIFFERENT_EVENT)

    try:
        booking = ledger.get(payload['bookingId'])
    except NotFound:
        return error(BOOKING_NOT_FOUND)

    if booking.event_id != selected_event.id:
        return error(DIFFERENT_EVENT)

    if booking.checked_in:
        return Verdict(VerdictCategory.WARNING, ALREADY_USED, booking, selected_event)

    if booking.status != BookingStatus.CONFIRMED:
        return error(f"Booking is {booking.status.value}. Not valid for entry.", booking, selected_event)

    return Verdict(VerdictCategory.SUCCESS, VALID_TICKET, booking, selected_event)
