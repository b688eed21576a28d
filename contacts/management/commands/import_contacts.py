"""
Management command: import_contacts

Imports a comma-separated contact export, skipping rows that duplicate an
existing contact (or an earlier row of the same file).

Usage:
    python manage.py import_contacts --file path/to/contacts.csv --team-id 1

The CSV must be UTF-8 encoded with a header row; see contacts.services for
the recognised columns.
"""

from django.core.management.base import BaseCommand, CommandError

from contacts.services import import_contacts_csv
from teams.models import Team


class Command(BaseCommand):
    help = "Import a UTF-8 CSV of client companies into Contacts, skipping duplicates."

    def add_arguments(self, parser):
        parser.add_argument(
            "--file",
            type=str,
            required=True,
            metavar="PATH",
            help="Path to the CSV file (UTF-8, comma-delimited, header row).",
        )
        parser.add_argument(
            "--team-id",
            type=int,
            default=None,
            metavar="ID",
            help="Team that owns the imported contacts. Default: no team.",
        )

    def handle(self, *args, **options):
        file_path = options["file"]
        team_id = options["team_id"]

        if team_id is not None and not Team.objects.filter(pk=team_id).exists():
            raise CommandError(f"Team with id={team_id} does not exist.")

        self.stdout.write(f"Importing: {file_path!r} …")

        try:
            summary = import_contacts_csv(file_path, team_id=team_id)
        except FileNotFoundError:
            raise CommandError(f"File not found: {file_path!r}")
        except UnicodeDecodeError as exc:
            raise CommandError(
                f"Could not decode the file. Ensure it is UTF-8 encoded.\n{exc}"
            )

        # ── Results ──────────────────────────────────────────────────────────
        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("Import complete"))
        self.stdout.write(f"  Total rows processed   : {summary['total_rows']}")
        self.stdout.write(f"  Contacts created       : {summary['created']}")
        self.stdout.write(f"  Duplicates skipped     : {summary['skipped']}")

        if summary["skipped"]:
            for reason, count in summary["duplicate_reasons"].items():
                if count:
                    self.stdout.write(self.style.WARNING(f"    • by {reason:<14}: {count}"))

        if summary["errors"]:
            self.stdout.write("")
            self.stdout.write(
                self.style.ERROR(f"  Errors                 : {len(summary['errors'])}")
            )
            for err in summary["errors"]:
                self.stdout.write(self.style.ERROR(f"    ✗ {err}"))
        else:
            self.stdout.write("")
            self.stdout.write(self.style.SUCCESS("No errors."))
