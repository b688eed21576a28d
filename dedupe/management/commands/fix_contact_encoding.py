"""
Management command: fix_contact_encoding

Repairs contact names and addresses stored as UTF-8 mis-read as
Windows-1252 ("ZÃ¼rich" → "Zürich"). Run it before dedupe_contacts so the
repaired names can cluster.

Usage:
    python manage.py fix_contact_encoding --user ops@example.ch [--team-id 3]
"""

from django.core.management.base import BaseCommand, CommandError

from dedupe.exceptions import DedupeError
from dedupe.management.commands.dedupe_contacts import resolve_user
from dedupe.services import fix_contact_encoding


class Command(BaseCommand):
    help = "Repair mis-decoded umlauts and accents in contact names and addresses."

    def add_arguments(self, parser):
        parser.add_argument("--user", type=str, required=True, metavar="EMAIL")
        parser.add_argument("--team-id", type=int, default=None, metavar="ID")

    def handle(self, *args, **options):
        user = resolve_user(options["user"])

        try:
            result = fix_contact_encoding(options["team_id"], user=user)
        except DedupeError as exc:
            raise CommandError(str(exc))

        self.stdout.write(f"  Contacts scanned : {result['total']}")
        self.stdout.write(f"  Contacts fixed   : {result['fixed']}")
        for err in result["errors"]:
            self.stdout.write(self.style.ERROR(f"    ✗ {err}"))
        if result["errors"]:
            self.stdout.write(self.style.WARNING("Some contacts could not be updated."))
        else:
            self.stdout.write(self.style.SUCCESS("Done."))
