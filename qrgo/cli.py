import json

import click

from qrgo.services import get_services
from qrgo.services.organizers import hash_secret


def register_commands(app):

    @app.cli.command('seed-events')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def seed_events(path):
        """Create or replace events from a JSON list."""
        with open(path, encoding='utf-8') as fh:
            entries = json.load(fh)
        catalog = get_services().catalog
        for entry in entries:
            event = catalog.upsert(entry)
            click.echo(f"{event.id}: {event.name} [{event.status.value}]")

    @app.cli.command('hash-secret')
    @click.password_option('--secret', prompt='Organizer secret')
    @click.option('--rounds', default=12, show_default=True)
    def hash_secret_command(secret, rounds):
        """Print a bcrypt hash for an organizer's secret ID."""
        click.echo(hash_secret(secret, rounds=rounds))
