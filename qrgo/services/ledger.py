"""
Booking Ledger
Create, read, list and update bookings across the paid and free
collections. Only `status` and `checked_in` change after creation.

Status updates:
    PENDING   -> CONFIRMED | REJECTED
    CONFIRMED -> PENDING | REJECTED (not once checked in)
    REJECTED  -> PENDING | CONFIRMED
checked_in: false -> true only, and only while CONFIRMED.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from qrgo.errors import (
    AlreadyCheckedIn,
    InvalidTransition,
    NotFound,
    StorageFailure,
    ValidationError,
)
from qrgo.extensions import db
from qrgo.models import BOOKING_MODELS, BookingKind, BookingStatus, FreeBooking, PaidBooking
from qrgo.services import duplicate_guard
from qrgo.services.event_service import ensure_booking_open
from qrgo.services.identifiers import new_booking_id, normalize_email, validate_email, validate_pin

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = {"status", "checked_in"}

TEXT_FIELDS = [
    "user_name", "user_email", "user_phone", "pin", "confirm_pin",
    "entry_number", "transaction_id",
]

INITIAL_STATUS = {
    BookingKind.PAID: BookingStatus.PENDING,
    BookingKind.FREE: BookingStatus.CONFIRMED,
}


def parse_booking_status(value):
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in BookingStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status")


def _clean(value):
    return value.strip() if isinstance(value, str) else value


class BookingLedger:
    def __init__(self, proof_store, pin_rounds=12):
        self.proof_store = proof_store
        self.pin_rounds = pin_rounds

    # --- create ---------------------------------------------------------
    def create(self, event, fields, proof=None):
        """
        Persist a new booking for `event`.

        fields: user_name, user_email, user_phone, pin, confirm_pin?,
                entry_number?, transaction_id?
        proof:  ProofUpload, required when the event requires payment

        The event must be Ongoing. Paid bookings start Pending and need a
        stored proof before the record is written; free bookings start
        Confirmed.
        """
        ensure_booking_open(event)

        kind = BookingKind.PAID if event.requires_payment else BookingKind.FREE
        model = BOOKING_MODELS[kind]

        required = ["user_name", "user_email", "user_phone", "pin"]
        if kind == BookingKind.PAID:
            required.append("transaction_id")
        elif event.requires_entry_number:
            required.append("entry_number")
        for f in TEXT_FIELDS:
            if fields.get(f) is not None and not isinstance(fields[f], str):
                raise ValidationError(f"{f} must be a string", field=f)
        missing = [f for f in required if not _clean(fields.get(f))]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}", field=missing[0])

        user_email = validate_email(normalize_email(fields["user_email"]))
        pin = validate_pin(fields["pin"], fields.get("confirm_pin"))
        transaction_id = _clean(fields.get("transaction_id")) if kind == BookingKind.PAID else None

        if kind == BookingKind.PAID:
            if proof is None:
                raise ValidationError("Payment proof is required for paid events.", field="payment_proof")
            proof.validate()

        duplicate_guard.check_duplicates(model, event.id, user_email, transaction_id)

        booking = model(
            id=new_booking_id(),
            event_id=event.id,
            user_name=_clean(fields["user_name"]),
            user_email=user_email,
            user_phone=_clean(fields["user_phone"]),
            status=INITIAL_STATUS[kind],
            checked_in=False,
            created_at=datetime.now(timezone.utc),
        )
        booking.set_pin(pin, rounds=self.pin_rounds)

        proof_url = None
        if kind == BookingKind.PAID:
            proof_url = self.proof_store.upload(proof)
            booking.transaction_id = transaction_id
            booking.payment_proof = proof_url
        else:
            booking.entry_number = _clean(fields.get("entry_number")) or None

        db.session.add(booking)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            self._discard_proof(proof_url)
            raise duplicate_guard.from_integrity_error(e)
        except SQLAlchemyError:
            db.session.rollback()
            self._discard_proof(proof_url)
            logger.exception("Failed to insert %s booking for event %s", kind.value, event.id)
            raise StorageFailure()

        logger.info("Created %s booking %s for event %s (%s)", kind.value, booking.id, event.id, booking.status.value)
        return booking

    def _discard_proof(self, proof_url):
        if proof_url:
            self.proof_store.delete(proof_url)

    # --- read -----------------------------------------------------------
    def get(self, booking_id, kind=None):
        models = [BOOKING_MODELS[BookingKind(kind)]] if kind else [PaidBooking, FreeBooking]
        try:
            for model in models:
                booking = db.session.get(model, booking_id)
                if booking:
                    return booking
        except SQLAlchemyError:
            logger.exception("Failed to load booking %s", booking_id)
            raise StorageFailure()
        raise NotFound(f"Booking {booking_id} not found.")

    def list_all(self, event_id=None):
        try:
            bookings = []
            for model in (PaidBooking, FreeBooking):
                query = model.query
                if event_id is not None:
                    query = query.filter_by(event_id=event_id)
                bookings.extend(query.all())
        except SQLAlchemyError:
            logger.exception("Failed to list bookings")
            raise StorageFailure()
        return sorted(bookings, key=lambda b: b.created_at)

    def list_by_email_and_pin(self, email, pin):
        user_email = normalize_email(email, field="email")
        if not user_email:
            raise ValidationError("Missing fields: email", field="email")
        validate_pin(pin)
        try:
            candidates = []
            for model in (PaidBooking, FreeBooking):
                candidates.extend(model.query.filter_by(user_email=user_email).all())
        except SQLAlchemyError:
            logger.exception("Failed to search bookings by email")
            raise StorageFailure()
        matches = [b for b in candidates if b.check_pin(pin)]
        return sorted(matches, key=lambda b: b.created_at)

    # --- update ---------------------------------------------------------
    def update(self, booking_id, patch, kind=None):
        immutable = sorted(set(patch) - MUTABLE_FIELDS)
        if immutable:
            raise ValidationError(f"Field '{immutable[0]}' cannot be modified", field=immutable[0])

        booking = self.get(booking_id, kind)
        new_status = parse_booking_status(patch["status"]) if "status" in patch else booking.status
        new_checked_in = booking.checked_in
        if "checked_in" in patch:
            if not isinstance(patch["checked_in"], bool):
                raise ValidationError("checked_in must be a boolean", field="checked_in")
            new_checked_in = patch["checked_in"]

        if booking.checked_in and not new_checked_in:
            raise InvalidTransition("Check-in cannot be reversed.")
        if new_checked_in and new_status != BookingStatus.CONFIRMED:
            if booking.checked_in:
                raise InvalidTransition("A checked-in booking must stay Confirmed.")
            raise InvalidTransition(f"Booking is {new_status.value}. Not valid for entry.")

        old_status = booking.status
        booking.status = new_status
        if new_checked_in and not booking.checked_in:
            booking.checked_in = True
            booking.checked_in_at = datetime.now(timezone.utc)

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update booking %s", booking_id)
            raise StorageFailure()

        if old_status != new_status:
            logger.info("Booking %s status %s -> %s", booking.id, old_status.value, new_status.value)
        return booking

    def mark_checked_in(self, booking_id, kind=None):
        """
        Conditional check-in: only a Confirmed booking that is not yet
        checked in is written. Concurrent scanners race on the store, and
        the loser sees AlreadyCheckedIn.
        """
        models = [BOOKING_MODELS[BookingKind(kind)]] if kind else [PaidBooking, FreeBooking]
        updated = 0
        try:
            for model in models:
                result = db.session.execute(
                    db.update(model)
                    .where(
                        model.id == booking_id,
                        model.checked_in.is_(False),
                        model.status == BookingStatus.CONFIRMED,
                    )
                    .values(checked_in=True, checked_in_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
                updated += result.rowcount
                if updated:
                    break
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to check in booking %s", booking_id)
            raise StorageFailure()

        booking = self.get(booking_id, kind)
        # The bulk UPDATE bypasses the identity map.
        db.session.refresh(booking)
        if not updated:
            if booking.checked_in:
                raise AlreadyCheckedIn("This ticket has already been used.")
            raise InvalidTransition(f"Booking is {booking.status.value}. Not valid for entry.")
        return booking
