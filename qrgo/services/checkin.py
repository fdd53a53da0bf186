"""
Check-in Applier
One-way transition of a verified booking to checked in.
"""

import logging

from qrgo.services.verification import CHECKED_IN, Verdict, VerdictCategory

logger = logging.getLogger(__name__)


def check_in(booking, ledger):
    """
    Mark `booking` as checked in. A repeat raises AlreadyCheckedIn and
    leaves the record unchanged.
    """
    updated = ledger.mark_checked_in(booking.id, booking.kind)
    logger.info("Checked in booking %s for event %s", updated.id, updated.event_id)
    return updated


def check_in_verdict(booking, event):
    return Verdict(VerdictCategory.SUCCESS, CHECKED_IN, booking, event)
