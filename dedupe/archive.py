"""
dedupe/archive.py

Archive/restore service. An ArchivedContact row is written immediately before
a contact is deleted and consumed by exactly one successful restore.

Public services:
  archive_contact(contact, *, deleted_by, reason, run_id, merged_into_id)
  restore_archived_contact(archive_id, *, user)      → {restored_contact_id, restored, skipped}
  list_archived(team_id, *, user, limit, offset)     → {items, total}

The relation snapshot reads in archive_contact run one after another on the
caller's connection. Django connections are per-thread, and the reads must
stay inside the archive's savepoint so the snapshot matches what is deleted.

On restore, every snapshotted foreign key is checked against the live tables:
a nullable reference whose target was deleted since archiving is restored as
None, and a row whose required parent is gone is left out and counted under
skipped.
"""

import logging

from django.db import DatabaseError, transaction

from agencycrm.constants import ARCHIVE_PAGE_SIZE, ARCHIVE_PAGE_SIZE_MAX
from contacts.models import Contact
from dedupe.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from dedupe.models import ArchivedContact
from dedupe.permissions import ensure_cleanup_allowed, parse_uuid, validate_team_id
from dedupe.relations import (
    SNAPSHOT_RELATIONS,
    deserialize_fields,
    detach_missing_references,
    restore_rows,
    serialize_instance,
    snapshot_rows,
)

logger = logging.getLogger(__name__)


# ── Archive ───────────────────────────────────────────────────────────────────

def archive_contact(
    contact: Contact,
    *,
    deleted_by=None,
    reason: str = ArchivedContact.Reason.DEDUPE_MERGE,
    run_id=None,
    merged_into_id=None,
) -> ArchivedContact:
    """
    Snapshot contact and its dependent rows into a new ArchivedContact.

    Does not delete anything. Raises PersistenceError if the snapshot cannot be
    read or written; the caller must then leave the contact in place.
    """
    try:
        with transaction.atomic():
            related = {
                relation.key: snapshot_rows(relation, contact.pk)
                for relation in SNAPSHOT_RELATIONS
            }
            archive = ArchivedContact.objects.create(
                original_contact_id=contact.pk,
                team_id=contact.team_id,
                deleted_by=deleted_by,
                reason=reason,
                run_id=run_id,
                merged_into_contact_id=merged_into_id,
                contact_snapshot=serialize_instance(contact),
                related_snapshot=related,
            )
    except DatabaseError as exc:
        raise PersistenceError(f"Could not archive contact {contact.pk}: {exc}") from exc

    logger.debug(
        "Archived contact %s as %s (%s)",
        contact.pk, archive.pk,
        ", ".join(f"{key}={len(rows)}" for key, rows in related.items()),
    )
    return archive


# ── Restore ───────────────────────────────────────────────────────────────────

def restore_archived_contact(archive_id, *, user) -> dict:
    """
    Re-create an archived contact at its original id together with its
    snapshotted dependent rows, then delete the archive row.
    References to rows deleted in the meantime are dropped as described above.

    Raises:
        AuthorizationError — user may not run cleanup
        ValidationError    — archive_id is not a UUID
        NotFoundError      — no archive with that id
        ConflictError      — a contact already exists at the original id;
                             the archive is left untouched
        PersistenceError   — the re-insert failed; nothing was changed
    """
    ensure_cleanup_allowed(user)
    archive_pk = parse_uuid(archive_id, "archive id")

    try:
        with transaction.atomic():
            archive = ArchivedContact.objects.select_for_update().filter(pk=archive_pk).first()
            if archive is None:
                raise NotFoundError(f"Archived contact {archive_pk} not found.")

            original_id = archive.original_contact_id
            if Contact.objects.filter(pk=original_id).exists():
                raise ConflictError(
                    f"A contact with id {original_id} already exists. "
                    f"Delete or merge it before restoring archive {archive_pk}."
                )

            values = deserialize_fields(Contact, archive.contact_snapshot or {})
            values["id"] = original_id
            known = {}
            detach_missing_references(Contact, values, known=known)
            Contact(**values).save(force_insert=True)

            snapshot = archive.related_snapshot or {}
            restored, skipped = {}, {}
            for relation in SNAPSHOT_RELATIONS:
                inserted, dropped = restore_rows(
                    relation, snapshot.get(relation.key) or [], original_id, known=known,
                )
                restored[relation.key] = inserted
                if dropped:
                    skipped[relation.key] = dropped
            archive.delete()
    except DatabaseError as exc:
        raise PersistenceError(f"Could not restore archive {archive_pk}: {exc}") from exc

    logger.info(
        "Restored contact %s from archive %s by %s: %s (skipped %s)",
        original_id, archive_pk, getattr(user, "email", user), restored, skipped or "none",
    )
    return {"restored_contact_id": str(original_id), "restored": restored, "skipped": skipped}


# ── Listing ───────────────────────────────────────────────────────────────────

def list_archived(team_id, *, user, limit=ARCHIVE_PAGE_SIZE, offset=0) -> dict:
    """Newest-first page of archive summaries for one team (or all teams)."""
    ensure_cleanup_allowed(user)
    team_id = validate_team_id(team_id)
    limit = _clamp_limit(limit)
    offset = _parse_offset(offset)

    qs = ArchivedContact.objects.order_by("-deleted_at", "-id")
    if team_id is not None:
        qs = qs.filter(team_id=team_id)

    return {
        "items": [_summary(archive) for archive in qs[offset:offset + limit]],
        "total": qs.count(),
    }


def _summary(archive: ArchivedContact) -> dict:
    return {
        "id": str(archive.pk),
        "original_id": str(archive.original_contact_id),
        "company_name": (archive.contact_snapshot or {}).get("company_name"),
        "deleted_at": archive.deleted_at.isoformat() if archive.deleted_at else None,
        "reason": archive.reason,
        "merged_into_id": str(archive.merged_into_contact_id) if archive.merged_into_contact_id else None,
        "run_id": str(archive.run_id) if archive.run_id else None,
    }


def _clamp_limit(limit) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid limit: {limit!r}")
    return max(1, min(value, ARCHIVE_PAGE_SIZE_MAX))


def _parse_offset(offset) -> int:
    try:
        value = int(offset)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid offset: {offset!r}")
    if value < 0:
        raise ValidationError(f"Invalid offset: {offset!r}")
    return value
