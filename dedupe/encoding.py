"""
dedupe/encoding.py

Repairs contact text that was stored as UTF-8 bytes mis-read as Windows-1252
("MÃ¼ller GmbH" instead of "Müller GmbH"). Such rows never cluster with their
correctly spelled twins, so the repair is meant to run before a dedupe.

  repair_mojibake(text)                 → str | None
  has_mojibake(text)                    → bool
  contact_encoding_fixes(contact)       → {field: repaired} (empty if clean)
  fix_contact_encoding(team_id, *, user) → {fixed, total, errors}

Only the sequences listed in MOJIBAKE_FIXES are replaced: German umlauts, ß
and the French accents common in Swiss names. Anything else is left alone.
"""

import logging

from django.db import DatabaseError, transaction

from contacts.models import Contact
from dedupe.permissions import ensure_cleanup_allowed, validate_team_id

logger = logging.getLogger(__name__)

# Windows-1252 reading of the UTF-8 bytes → intended character
MOJIBAKE_FIXES = (
    ("Ã¤", "ä"),
    ("Ã¶", "ö"),
    ("Ã¼", "ü"),
    ("Ã„", "Ä"),
    ("Ã–", "Ö"),
    ("Ãœ", "Ü"),
    ("ÃŸ", "ß"),
    ("Ã©", "é"),
    ("Ã¨", "è"),
    ("Ãª", "ê"),
    ("Ã\u00a0", "à"),
    ("Ã¢", "â"),
    ("Ã®", "î"),
    ("Ã´", "ô"),
    ("Ã»", "û"),
    ("Ã§", "ç"),
    ("Ã‰", "É"),
    ("Ãˆ", "È"),
    ("Ã€", "À"),
    ("Ã‡", "Ç"),
)

REPAIRED_FIELDS = ("company_name", "contact_name", "street", "city")


def has_mojibake(text) -> bool:
    if not text:
        return False
    return any(wrong in text for wrong, _ in MOJIBAKE_FIXES)


def repair_mojibake(text):
    if not text:
        return text
    for wrong, correct in MOJIBAKE_FIXES:
        text = text.replace(wrong, correct)
    return text


def contact_encoding_fixes(contact) -> dict:
    return {
        name: repair_mojibake(getattr(contact, name))
        for name in REPAIRED_FIELDS
        if has_mojibake(getattr(contact, name))
    }


def fix_contact_encoding(team_id, *, user) -> dict:
    """
    Repair mis-decoded text on every contact in scope.

    Each contact is saved in its own transaction; a failed save is reported in
    "errors" and does not stop the scan.
    """
    ensure_cleanup_allowed(user)
    team_id = validate_team_id(team_id)

    qs = Contact.objects.only("id", *REPAIRED_FIELDS).order_by("pk")
    if team_id is not None:
        qs = qs.filter(team_id=team_id)

    total = 0
    fixed = 0
    errors = []
    for contact in qs.iterator():
        total += 1
        fixes = contact_encoding_fixes(contact)
        if not fixes:
            continue
        try:
            with transaction.atomic():
                Contact.objects.filter(pk=contact.pk).update(**fixes)
        except DatabaseError as exc:
            errors.append(f"Failed to update {contact.company_name}: {exc}")
            logger.warning("Encoding repair failed for contact %s: %s", contact.pk, exc)
            continue
        fixed += 1
        logger.debug("Repaired encoding of contact %s: %s", contact.pk, ", ".join(fixes))

    logger.info(
        "Encoding repair by %s (team=%s): %d of %d contacts fixed, %d errors",
        getattr(user, "email", user), team_id if team_id is not None else "all",
        fixed, total, len(errors),
    )
    return {"fixed": fixed, "total": total, "errors": errors}
