"""
Management command: dedupe_contacts

Previews (default) or applies the duplicate-contact merge for one team or
for all teams.

Usage:
    python manage.py dedupe_contacts --user ops@example.ch
    python manage.py dedupe_contacts --user ops@example.ch --team-id 3 --apply

The acting user must be listed in DATA_CLEANUP_ALLOWED_EMAILS.
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from dedupe.exceptions import DedupeError
from dedupe.services import apply_dedupe, preview_dedupe


def resolve_user(email: str):
    user = get_user_model().objects.filter(email__iexact=email.strip()).first()
    if user is None:
        raise CommandError(f"No user with e-mail {email!r}.")
    return user


class Command(BaseCommand):
    help = "Preview or merge duplicate contacts (archive, merge fields, re-point relations, delete)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--user",
            type=str,
            required=True,
            metavar="EMAIL",
            help="E-mail of the user the run is attributed to.",
        )
        parser.add_argument(
            "--team-id",
            type=int,
            default=None,
            metavar="ID",
            help="Limit the run to one team. Default: all teams.",
        )
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Perform the merge. Without this flag only a preview is printed.",
        )

    def handle(self, *args, **options):
        user = resolve_user(options["user"])
        team_id = options["team_id"]
        scope = f"team #{team_id}" if team_id is not None else "all teams"

        try:
            if options["apply"]:
                self.stdout.write(f"Merging duplicate contacts for {scope} …")
                summary = apply_dedupe(team_id, user=user)
            else:
                self.stdout.write(f"Previewing duplicate contacts for {scope} …")
                summary = preview_dedupe(team_id, user=user)
        except DedupeError as exc:
            raise CommandError(str(exc))

        # ── Results ──────────────────────────────────────────────────────────
        self.stdout.write("")
        self.stdout.write(f"  Duplicate groups       : {summary['group_count']}")
        for example in summary["examples"]:
            self.stdout.write(
                f"    • {example['primary_name']} ← "
                f"{', '.join(example['duplicate_names'])} ({example['match_reason']})"
            )

        if not options["apply"]:
            self.stdout.write(f"  Duplicates to merge    : {summary['duplicate_count']}")
            self.stdout.write("")
            self.stdout.write(self.style.WARNING("Preview only. Re-run with --apply to merge."))
            return

        self.stdout.write(f"  Contacts archived      : {summary['archived_count']}")
        for key, count in summary["merged_by_relation_type"].items():
            if count:
                self.stdout.write(f"    {key:<24}: {count}")
        self.stdout.write(f"  Run id                 : {summary['run_id']}")

        if summary["errors"]:
            self.stdout.write("")
            self.stdout.write(
                self.style.ERROR(f"  Errors                 : {len(summary['errors'])}")
            )
            for err in summary["errors"]:
                self.stdout.write(self.style.ERROR(f"    ✗ {err}"))
            self.stdout.write(self.style.WARNING("Run finished partially. It is safe to re-run."))
        else:
            self.stdout.write("")
            self.stdout.write(self.style.SUCCESS("Run completed. No errors."))
