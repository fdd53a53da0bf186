"""
Scanner sessions
An organizer scans for one event at a time. Starting a session releases
any earlier one for the same organizer; scans inside a session are
verified in the order they arrive.
"""

import logging
import threading
from datetime import datetime, timezone

from qrgo.errors import InvalidTransition, NotFound
from qrgo.models import EventStatus
from qrgo.services.event_service import ensure_scannable
from qrgo.services.verification import verify

logger = logging.getLogger(__name__)


class ScannerSession:
    def __init__(self, organizer_id, event_id, catalog, ledger):
        self.organizer_id = organizer_id
        self.event_id = event_id
        self.catalog = catalog
        self.ledger = ledger
        self.started_at = datetime.now(timezone.utc)
        self.scans = 0
        self.last_verdict = None
        self.active = True
        self._lock = threading.Lock()

    def scan(self, raw):
        with self._lock:
            if not self.active:
                raise InvalidTransition("Scanner is not active.")
            # Reload per scan; the event may have changed status.
            event = self.catalog.get(self.event_id)
            verdict = verify(raw, event, self.ledger)
            self.scans += 1
            self.last_verdict = verdict
            return verdict

    def stop(self):
        with self._lock:
            if self.active:
                self.active = False
                logger.info("Scanner stopped for organizer %s on event %s after %d scans",
                            self.organizer_id, self.event_id, self.scans)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def to_dict(self):
        return {
            'organizer_id': self.organizer_id,
            'event_id': self.event_id,
            'active': self.active,
            'started_at': self.started_at.isoformat(),
            'scans': self.scans,
            'last_verdict': self.last_verdict.to_dict() if self.last_verdict else None,
        }


class ScannerRegistry:
    def __init__(self, catalog, ledger):
        self.catalog = catalog
        self.ledger = ledger
        self._sessions = {}
        self._lock = threading.Lock()
        catalog.subscribe(self.on_event_status_changed)

    def start(self, organizer_id, event_id):
        event = self.catalog.get(event_id)
        ensure_scannable(event)
        session = ScannerSession(organizer_id, event.id, self.catalog, self.ledger)
        with self._lock:
            previous = self._sessions.get(organizer_id)
            self._sessions[organizer_id] = session
        if previous is not None:
            previous.stop()
        logger.info("Scanner started for organizer %s on event %s", organizer_id, event.id)
        return session

    def get(self, organizer_id):
        with self._lock:
            session = self._sessions.get(organizer_id)
        if session is None or not session.active:
            raise NotFound("No active scanner session.")
        return session

    def stop(self, organizer_id):
        with self._lock:
            session = self._sessions.pop(organizer_id, None)
        if session is None:
            raise NotFound("No active scanner session.")
        session.stop()
        return session

    def stop_all(self):
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.stop()

    def on_event_status_changed(self, event, old_status, new_status):
        if new_status != EventStatus.CLOSED:
            return
        with self._lock:
            closing = [s for s in self._sessions.values() if s.event_id == event.id]
        for session in closing:
            session.stop()
