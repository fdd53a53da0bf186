"""
Ticket Issuer
Derives the QR payload for a booking and renders it to a PNG.
"""

import base64
import json
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from qrgo.models import BookingStatus, EventStatus

AVAILABLE = "available"
PENDING = "pending"
REJECTED = "rejected"
CONCLUDED = "concluded"

STATE_MESSAGES = {
    AVAILABLE: "Present this at the entrance",
    PENDING: "Your booking is not yet confirmed.",
    REJECTED: "Your booking was rejected.",
    CONCLUDED: "Event Concluded",
}


def ticket_payload(booking):
    return {
        'bookingId': booking.id,
        'eventId': booking.event_id,
        'userName': booking.user_name,
    }


def encode_payload(booking):
    return json.dumps(ticket_payload(booking), separators=(',', ':'), ensure_ascii=False)


def ticket_state(booking, event):
    if event.status == EventStatus.CLOSED:
        return CONCLUDED
    if booking.status == BookingStatus.CONFIRMED:
        return AVAILABLE
    if booking.status == BookingStatus.REJECTED:
        return REJECTED
    return PENDING


def render(booking, event, box_size=8, border=2):
    """
    PNG bytes for a Confirmed booking of an event that is not Closed,
    otherwise None.
    """
    if ticket_state(booking, event) != AVAILABLE:
        return None

    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(encode_payload(booking))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def render_data_url(booking, event, box_size=8, border=2):
    png = render(booking, event, box_size=box_size, border=border)
    if png is None:
        return None
    return "data:image/png;base64," + base64.b64encode(png).decode('ascii')
