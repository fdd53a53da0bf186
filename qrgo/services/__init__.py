from dataclasses import dataclass
from typing import Any

from flask import current_app


@dataclass
class Services:
    catalog: Any
    ledger: Any
    scanners: Any
    organizers: Any
    proof_store: Any


def get_services():
    return current_app.extensions['qrgo']
