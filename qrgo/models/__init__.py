from qrgo.models.event import Event, EventStatus
from qrgo.models.booking import (
    BOOKING_MODELS,
    BookingKind,
    BookingStatus,
    FreeBooking,
    PaidBooking,
)
