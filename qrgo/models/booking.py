"""
Booking Models
Two collections share one schema: paid bookings (`bookings`) and free
bookings (`free_bookings`). The collection is carried as `kind`.
Status: Pending | Confirmed | Rejected
"""

import enum
from datetime import datetime, timezone

import bcrypt
from sqlalchemy.orm import declared_attr

from qrgo.extensions import db


class BookingStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"


class BookingKind(str, enum.Enum):
    PAID = "paid"
    FREE = "free"


class BookingMixin:
    id = db.Column(db.String(64), primary_key=True)
    user_name = db.Column(db.String(255), nullable=False)
    user_email = db.Column(db.String(255), nullable=False, index=True)
    user_phone = db.Column(db.String(32), nullable=False)
    pin_hash = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.Enum(BookingStatus, name="booking_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BookingStatus.PENDING
    )
    checked_in = db.Column(db.Boolean, nullable=False, default=False)
    checked_in_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    @declared_attr
    def event_id(cls):
        return db.Column(db.String(64), db.ForeignKey('events.id'), nullable=False, index=True)

    def set_pin(self, pin, rounds=12):
        self.pin_hash = bcrypt.hashpw(pin.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')

    def check_pin(self, pin):
        return bcrypt.checkpw(pin.encode('utf-8'), self.pin_hash.encode('utf-8'))

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind.value,
            'event_id': self.event_id,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'user_phone': self.user_phone,
            'entry_number': self.entry_number,
            'transaction_id': self.transaction_id,
            'payment_proof': self.payment_proof,
            'status': self.status.value,
            'checked_in': self.checked_in,
            'checked_in_at': self.checked_in_at.isoformat() if self.checked_in_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PaidBooking(BookingMixin, db.Model):
    __tablename__ = 'bookings'
    __table_args__ = (
        db.UniqueConstraint('event_id', 'user_email', name='uq_bookings_event_email'),
    )

    kind = BookingKind.PAID

    transaction_id = db.Column(db.String(128), unique=True, nullable=False)
    payment_proof = db.Column(db.Text, nullable=False)

    @property
    def entry_number(self):
        return None


class FreeBooking(BookingMixin, db.Model):
    __tablename__ = 'free_bookings'
    __table_args__ = (
        db.UniqueConstraint('event_id', 'user_email', name='uq_free_bookings_event_email'),
    )

    kind = BookingKind.FREE

    entry_number = db.Column(db.String(64), nullable=True)

    @property
    def transaction_id(self):
        return None

    @property
    def payment_proof(self):
        return None


BOOKING_MODELS = {
    BookingKind.PAID: PaidBooking,
    BookingKind.FREE: FreeBooking,
}
