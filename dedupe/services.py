"""
dedupe/services.py

Contact cleanup: cluster duplicate contacts and merge each cluster into its
best record.

Public services:
  preview_dedupe(team_id, *, user)   → {group_count, duplicate_count, examples}
  apply_dedupe(team_id, *, user)     → {run_id, group_count, archived_count,
                                        merged_by_relation_type, errors, status,
                                        examples}
  merge_group(group, *, run_id, user, tally)

Re-exported from dedupe.archive / dedupe.encoding / dedupe.permissions:
  restore_archived_contact, list_archived, fix_contact_encoding, is_cleanup_allowed

Every duplicate walks ARCHIVE → MERGE_FIELDS → REPOINT_RELATIONS → DELETE.
A duplicate is never deleted unless its archive row was written first.
Failures after the archive are recorded on the run and do not stop the
remaining relations, duplicates or groups. No transaction spans a cluster:
re-running apply re-derives the same clusters and finishes leftover work.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field

from django.db import DatabaseError, transaction

from agencycrm.constants import PREVIEW_EXAMPLE_LIMIT
from contacts.models import Contact
from dedupe.archive import archive_contact, list_archived, restore_archived_contact  # noqa: F401
from dedupe.clustering import DuplicateGroup, find_duplicate_groups
from dedupe.encoding import fix_contact_encoding  # noqa: F401
from dedupe.exceptions import NotFoundError, PersistenceError
from dedupe.merge import merge_contact_fields
from dedupe.models import ArchivedContact, CleanupRun
from dedupe.permissions import ensure_cleanup_allowed, is_cleanup_allowed, validate_team_id  # noqa: F401
from dedupe.relations import RELATIONS, repoint_relation

logger = logging.getLogger(__name__)


class MergeStep(str, enum.Enum):
    ARCHIVE = "archive"
    MERGE_FIELDS = "merge_fields"
    REPOINT_RELATIONS = "repoint_relations"
    DELETE = "delete"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MergeTally:
    """Counters and errors accumulated over one apply run."""

    archived_count: int = 0
    merged_by_relation_type: dict[str, int] = field(
        default_factory=lambda: {relation.key: 0 for relation in RELATIONS}
    )
    errors: list[str] = field(default_factory=list)

    def record_error(self, step: MergeStep, contact_id, exc: Exception) -> None:
        message = f"{step.value}: contact {contact_id}: {exc}"
        self.errors.append(message)
        logger.warning("Dedupe %s", message)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _scoped_contacts(team_id):
    qs = Contact.objects.all()
    if team_id is not None:
        qs = qs.filter(team_id=team_id)
    return qs


def _load_contact(contact_id) -> Contact:
    try:
        return Contact.objects.get(pk=contact_id)
    except Contact.DoesNotExist:
        raise NotFoundError(f"Contact {contact_id} no longer exists.")


# ── Orchestration ─────────────────────────────────────────────────────────────

def merge_duplicate(primary_id, duplicate_id, *, run_id, user, tally: MergeTally) -> MergeStep:
    """
    Fold one duplicate into primary. Returns DONE, or FAILED when the duplicate
    had to be left in place (not archived, primary gone, or delete failed).
    """
    # ARCHIVE
    try:
        _load_contact(primary_id)
        duplicate = _load_contact(duplicate_id)
        archive_contact(
            duplicate,
            deleted_by=user,
            reason=ArchivedContact.Reason.DEDUPE_MERGE,
            run_id=run_id,
            merged_into_id=primary_id,
        )
    except (NotFoundError, PersistenceError, DatabaseError) as exc:
        tally.record_error(MergeStep.ARCHIVE, duplicate_id, exc)
        return MergeStep.FAILED
    tally.archived_count += 1

    # MERGE_FIELDS: primary is re-read so earlier duplicates' fills are seen
    try:
        with transaction.atomic():
            primary = _load_contact(primary_id)
            patch = merge_contact_fields(primary, duplicate)
            if patch:
                for name, value in patch.items():
                    setattr(primary, name, value)
                primary.save(update_fields=[*patch, "updated_at"])
    except NotFoundError as exc:
        tally.record_error(MergeStep.MERGE_FIELDS, duplicate_id, exc)
        return MergeStep.FAILED
    except DatabaseError as exc:
        tally.record_error(MergeStep.MERGE_FIELDS, duplicate_id, exc)

    # REPOINT_RELATIONS
    for relation in RELATIONS:
        try:
            with transaction.atomic():
                handled = repoint_relation(relation, duplicate_id, primary_id)
        except DatabaseError as exc:
            tally.record_error(
                MergeStep.REPOINT_RELATIONS, duplicate_id,
                PersistenceError(f"{relation.key}: {exc}"),
            )
            continue
        tally.merged_by_relation_type[relation.key] += handled

    # DELETE
    try:
        with transaction.atomic():
            Contact.objects.filter(pk=duplicate_id).delete()
    except DatabaseError as exc:
        tally.record_error(MergeStep.DELETE, duplicate_id, exc)
        return MergeStep.FAILED

    return MergeStep.DONE


def merge_group(group: DuplicateGroup, *, run_id, user, tally: MergeTally) -> None:
    """Process a cluster's duplicates one after another against its primary."""
    for duplicate_id in group.duplicate_ids:
        step = merge_duplicate(group.primary_id, duplicate_id, run_id=run_id, user=user, tally=tally)
        logger.debug("Duplicate %s → %s: %s", duplicate_id, group.primary_id, step.value)


# ── Public API ─────────────────────────────────────────────────────────────────

def preview_dedupe(team_id, *, user) -> dict:
    """Read-only: what apply_dedupe would merge right now."""
    ensure_cleanup_allowed(user)
    team_id = validate_team_id(team_id)

    groups = find_duplicate_groups(_scoped_contacts(team_id))
    return {
        "group_count": len(groups),
        "duplicate_count": sum(len(g.duplicate_ids) for g in groups),
        "examples": [g.to_example() for g in groups[:PREVIEW_EXAMPLE_LIMIT]],
    }


def apply_dedupe(team_id, *, user) -> dict:
    """
    Merge every duplicate cluster in scope and record one CleanupRun.

    Raises AuthorizationError / ValidationError before anything is written.
    Per-duplicate failures never raise: they are returned in "errors" and the
    run is marked partial.
    """
    ensure_cleanup_allowed(user)
    team_id = validate_team_id(team_id)

    run_id = uuid.uuid4()
    groups = find_duplicate_groups(_scoped_contacts(team_id))
    logger.info(
        "Dedupe run %s started by %s: %d groups (team=%s)",
        run_id, user.email, len(groups), team_id if team_id is not None else "all",
    )

    tally = MergeTally()
    for group in groups:
        merge_group(group, run_id=run_id, user=user, tally=tally)

    status = CleanupRun.Status.COMPLETED if not tally.errors else CleanupRun.Status.PARTIAL
    summary = {
        "group_count": len(groups),
        "archived_count": tally.archived_count,
        "merged_by_relation_type": tally.merged_by_relation_type,
        "error_count": len(tally.errors),
        "errors": tally.errors,
    }
    try:
        with transaction.atomic():
            CleanupRun.objects.create(
                id=run_id,
                team_id=team_id,
                executed_by=user,
                summary=summary,
                status=status,
            )
    except DatabaseError as exc:
        logger.exception("Could not record cleanup run %s", run_id)
        tally.errors.append(f"audit: run {run_id}: {exc}")
        status = CleanupRun.Status.PARTIAL

    logger.info(
        "Dedupe run %s finished [%s]: %d archived, %d errors",
        run_id, status, tally.archived_count, len(tally.errors),
    )
    return {
        "run_id": str(run_id),
        "group_count": len(groups),
        "archived_count": tally.archived_count,
        "merged_by_relation_type": dict(tally.merged_by_relation_type),
        "errors": list(tally.errors),
        "status": str(status),
        "examples": [g.to_example() for g in groups[:PREVIEW_EXAMPLE_LIMIT]],
    }
