"""
Organizer directory
Organizers are configured, not stored: ORGANIZERS (a list of dicts) or
ORGANIZERS_FILE (a JSON file holding the same list).

    {"id": "org-1", "username": "tca", "name": "TCA", "secret_hash": "<bcrypt>",
     "role": "organizer" | "super_admin", "logo_url": "..."}
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

import bcrypt

from qrgo.errors import Forbidden

logger = logging.getLogger(__name__)

SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class Organizer:
    id: str
    username: str
    name: str
    secret_hash: str
    role: str = "organizer"
    logo_url: Optional[str] = None

    @property
    def is_super_admin(self):
        return self.role == SUPER_ADMIN

    def check_secret(self, secret):
        return bcrypt.checkpw(secret.encode('utf-8'), self.secret_hash.encode('utf-8'))

    def can_manage(self, event):
        return self.is_super_admin or event.organizer_id == self.id

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'role': self.role,
            'logo_url': self.logo_url,
        }


def hash_secret(secret, rounds=12):
    return bcrypt.hashpw(secret.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


class OrganizerDirectory:
    def __init__(self, organizers):
        self._by_id = {o.id: o for o in organizers}

    @classmethod
    def from_config(cls, config):
        entries = config.get('ORGANIZERS')
        path = config.get('ORGANIZERS_FILE')
        if entries is None and path:
            with open(path, encoding='utf-8') as fh:
                entries = json.load(fh)
        organizers = [
            Organizer(
                id=entry['id'],
                username=entry['username'],
                name=entry.get('name', entry['username']),
                secret_hash=entry['secret_hash'],
                role=entry.get('role', 'organizer'),
                logo_url=entry.get('logo_url'),
            )
            for entry in entries or []
        ]
        if not organizers:
            logger.warning("No organizers configured; admin endpoints are unreachable")
        return cls(organizers)

    def get(self, organizer_id):
        return self._by_id.get(organizer_id)

    def authenticate(self, username, secret):
        wanted = (username or "").strip().lower()
        if not wanted:
            return None
        for organizer in self._by_id.values():
            if organizer.username.lower() == wanted and organizer.check_secret(secret or ""):
                return organizer
        return None


def ensure_can_manage(organizer, event):
    if not organizer.can_manage(event):
        raise Forbidden("You do not manage this event.")
