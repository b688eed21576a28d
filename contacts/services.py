"""
contacts/services.py

Public services:
  import_contacts(rows, team_id=None, source=...) → summary dict
  import_contacts_csv(file_path_or_object, ...)   → summary dict

CSV format:
  Encoding  : UTF-8 (BOM tolerated)
  Delimiter : comma
  Header    : company_name, contact_name, phone, email, street, city,
              canton, postal_code, notes, external_id
              (only company_name is required)

Every row is screened by dedupe.classifier.check_duplicate against the
team's stored contacts and against the rows already accepted in this run.
Duplicates are skipped, never merged; merging is dedupe.services' job.
"""

import csv
import io
import logging

from django.db import transaction

from contacts.models import Contact
from dedupe.classifier import IdentityKeys, ImportCandidate, check_duplicate
from dedupe.identity import EMAIL_DOMAIN, GRAPH_ID, NAME, PHONE

logger = logging.getLogger(__name__)

# Row keys copied onto the Contact as-is (after trimming).
IMPORT_FIELDS = (
    "company_name",
    "contact_name",
    "phone",
    "email",
    "street",
    "city",
    "canton",
    "postal_code",
    "notes",
    "external_id",
)


# ── Field transformations ──────────────────────────────────────────────────────

def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _row_values(row: dict) -> dict:
    values = {name: _clean(row.get(name)) for name in IMPORT_FIELDS}
    if values["email"]:
        values["email"] = values["email"].lower()
    if values["canton"]:
        values["canton"] = values["canton"].upper()
    return values


# ── Public API ─────────────────────────────────────────────────────────────────

def import_contacts(
    rows,
    team_id: int | None = None,
    source: str = Contact.Source.CSV_IMPORT,
    first_row_number: int = 1,
) -> dict:
    """
    Insert every row that is not a duplicate of a stored or earlier row.

    Args:
        rows:             iterable of dicts keyed by IMPORT_FIELDS.
        team_id:          team that owns the imported contacts; also the scope
                          the duplicate check runs against (None = all).
        source:           Contact.Source value stored on new contacts.
        first_row_number: number reported for the first row in error messages.

    Returns:
        A summary dict::

            {
                "total_rows":        int,
                "created":           int,
                "skipped":           int,   # duplicates
                "duplicate_reasons": {"graph_id": int, "phone": int,
                                      "email_domain": int, "name": int},
                "errors":            list[str],
            }
    """
    rows = list(rows)
    existing = Contact.objects.all()
    if team_id is not None:
        existing = existing.filter(team_id=team_id)
    keys = IdentityKeys.from_contacts(
        existing.only("id", "company_name", "phone", "email", "external_id")
    )

    summary = {
        "total_rows": len(rows),
        "created": 0,
        "skipped": 0,
        "duplicate_reasons": {GRAPH_ID: 0, PHONE: 0, EMAIL_DOMAIN: 0, NAME: 0},
        "errors": [],
    }

    for row_num, row in enumerate(rows, start=first_row_number):
        try:
            with transaction.atomic():
                _process_row(row, keys, team_id, source, summary)
        except Exception as exc:
            msg = f"Row {row_num}: {exc}"
            logger.warning(msg, exc_info=True)
            summary["errors"].append(msg)

    logger.info(
        "Contact import: %d rows, %d created, %d skipped, %d errors",
        summary["total_rows"], summary["created"], summary["skipped"], len(summary["errors"]),
    )
    return summary


def import_contacts_csv(file_path_or_object, team_id: int | None = None) -> dict:
    """
    Import a comma-separated contact export. Row 1 is the header.

    Raises:
        FileNotFoundError: if a file path is given and the file is missing.
        UnicodeDecodeError: if the file is not UTF-8.
    """
    rows = _read_csv(file_path_or_object)
    return import_contacts(
        rows,
        team_id=team_id,
        source=Contact.Source.CSV_IMPORT,
        first_row_number=2,
    )


# ── Internal helpers ───────────────────────────────────────────────────────────

def _read_csv(file_path_or_object) -> list[dict]:
    if hasattr(file_path_or_object, "read"):
        raw = file_path_or_object.read()
        text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
    else:
        with open(file_path_or_object, encoding="utf-8-sig", newline="") as fh:
            text = fh.read()

    reader = csv.DictReader(io.StringIO(text))
    return [
        {(key or "").strip().lower(): value for key, value in row.items()}
        for row in reader
    ]


def _process_row(row: dict, keys: IdentityKeys, team_id, source: str, summary: dict) -> None:
    values = _row_values(row)
    if not values["company_name"]:
        raise ValueError("company_name is required")

    candidate = ImportCandidate(
        company_name=values["company_name"],
        phone=values["phone"],
        email=values["email"],
        external_id=values["external_id"],
    )
    check = check_duplicate(candidate, keys)
    if check.is_duplicate:
        summary["skipped"] += 1
        summary["duplicate_reasons"][check.reason] += 1
        logger.debug("Skipped %r: duplicate by %s", values["company_name"], check.reason)
        return

    Contact.objects.create(team_id=team_id, source=source, **values)
    keys.remember(candidate)
    summary["created"] += 1
