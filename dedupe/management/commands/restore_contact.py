"""
Management command: restore_contact

Restores a contact deleted by a cleanup run, or lists the archive.

Usage:
    python manage.py restore_contact --user ops@example.ch --list [--team-id 3]
    python manage.py restore_contact --user ops@example.ch 6f1c…-archive-uuid
"""

from django.core.management.base import BaseCommand, CommandError

from agencycrm.constants import ARCHIVE_PAGE_SIZE
from dedupe.exceptions import DedupeError
from dedupe.management.commands.dedupe_contacts import resolve_user
from dedupe.services import list_archived, restore_archived_contact


class Command(BaseCommand):
    help = "Restore an archived contact at its original id, or list archived contacts."

    def add_arguments(self, parser):
        parser.add_argument("archive_id", nargs="?", metavar="ARCHIVE_ID")
        parser.add_argument("--user", type=str, required=True, metavar="EMAIL")
        parser.add_argument("--list", action="store_true", help="List archived contacts instead.")
        parser.add_argument("--team-id", type=int, default=None, metavar="ID")
        parser.add_argument("--limit", type=int, default=ARCHIVE_PAGE_SIZE)
        parser.add_argument("--offset", type=int, default=0)

    def handle(self, *args, **options):
        user = resolve_user(options["user"])

        if options["list"]:
            self._list(user, options)
            return

        archive_id = options["archive_id"]
        if not archive_id:
            raise CommandError("Give an ARCHIVE_ID or use --list.")

        try:
            result = restore_archived_contact(archive_id, user=user)
        except DedupeError as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(f"Restored contact {result['restored_contact_id']}"))
        for key, count in result["restored"].items():
            if count:
                self.stdout.write(f"  {key:<24}: {count}")
        for key, count in result["skipped"].items():
            self.stdout.write(self.style.WARNING(f"  {key:<24}: {count} skipped (parent deleted)"))

    def _list(self, user, options):
        try:
            page = list_archived(
                options["team_id"], user=user, limit=options["limit"], offset=options["offset"],
            )
        except DedupeError as exc:
            raise CommandError(str(exc))

        self.stdout.write(f"{page['total']} archived contact(s)")
        for item in page["items"]:
            merged = f" → {item['merged_into_id']}" if item["merged_into_id"] else ""
            self.stdout.write(
                f"  {item['id']}  {item['deleted_at']}  [{item['reason']}]  "
                f"{item['company_name']}{merged}"
            )
