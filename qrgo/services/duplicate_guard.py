"""
Duplicate Guard
Pre-insert uniqueness checks for a booking's collection:
    - transaction id (paid collection only)
    - one booking per (event, email)
The store also carries unique constraints on the same columns; an
IntegrityError raised by the insert is mapped to the same DuplicateBooking.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from qrgo.errors import DuplicateBooking, StorageFailure
from qrgo.models import PaidBooking

logger = logging.getLogger(__name__)

TRANSACTION_RULE = "transaction_id"
EMAIL_RULE = "email"

DUPLICATE_MESSAGES = {
    TRANSACTION_RULE: "This Transaction ID has already been used.",
    EMAIL_RULE: "This email address has already been used to book this event.",
}


def duplicate(rule):
    return DuplicateBooking(DUPLICATE_MESSAGES[rule], rule=rule)


def check_duplicates(model, event_id, user_email, transaction_id=None):
    try:
        if transaction_id is not None:
            if PaidBooking.query.filter_by(transaction_id=transaction_id).first():
                logger.warning("Rejected booking for event %s: transaction id reused", event_id)
                raise duplicate(TRANSACTION_RULE)

        if model.query.filter_by(event_id=event_id, user_email=user_email).first():
            logger.warning("Rejected booking for event %s: email already booked", event_id)
            raise duplicate(EMAIL_RULE)
    except SQLAlchemyError:
        logger.exception("Duplicate check failed for event %s", event_id)
        raise StorageFailure()


def from_integrity_error(exc):
    """Map a unique-constraint violation raised on insert to its rule."""
    if TRANSACTION_RULE in str(getattr(exc, 'orig', exc)):
        return duplicate(TRANSACTION_RULE)
    return duplicate(EMAIL_RULE)
