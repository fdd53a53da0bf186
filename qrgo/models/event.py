"""
Event Model
Status: Upcoming | Ongoing | Booking Stopped | Closed
"""

import enum
from datetime import datetime, timezone
from qrgo.extensions import db


class EventStatus(str, enum.Enum):
    UPCOMING = "Upcoming"
    ONGOING = "Ongoing"
    BOOKING_STOPPED = "Booking Stopped"
    CLOSED = "Closed"


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.String(64), primary_key=True)
    organizer_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    venue = db.Column(db.String(255), nullable=False)
    venue_map_link = db.Column(db.Text)
    description = db.Column(db.Text, nullable=False, default="")
    image = db.Column(db.Text, nullable=False, default="")
    status = db.Column(
        db.Enum(EventStatus, name="event_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EventStatus.UPCOMING
    )
    price = db.Column(db.Integer)
    requires_entry_number = db.Column(db.Boolean, nullable=False, default=False)
    upi_id = db.Column(db.String(255))
    upi_link = db.Column(db.Text)
    qr_code_image = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def requires_payment(self):
        return bool(self.upi_id) or bool(self.price and self.price > 0)

    def to_dict(self):
        return {
            'id': self.id,
            'organizer_id': self.organizer_id,
            'name': self.name,
            'date': self.date.isoformat() if self.date else None,
            'venue': self.venue,
            'venue_map_link': self.venue_map_link,
            'description': self.description,
            'image': self.image,
            'status': self.status.value,
            'price': self.price,
            'requires_entry_number': self.requires_entry_number,
            'requires_payment': self.requires_payment,
            'upi_id': self.upi_id,
            'upi_link': self.upi_link,
            'qr_code_image': self.qr_code_image,
        }
