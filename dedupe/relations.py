"""
dedupe/relations.py

Registry of the tables that reference a contact, and how each one is moved
from a duplicate onto the surviving primary.

  SimpleRepoint        — plain FK; one bulk UPDATE moves every row
  ConflictAwareRepoint — FK inside a uniqueness constraint; rows the primary
                         already has under the same natural key are merged
                         into the primary's row and the duplicate's row is
                         dropped

  repoint_relation(relation, duplicate_id, primary_id) → rows handled
  snapshot_rows(relation, contact_id)                  → list[dict]
  restore_rows(relation, rows, contact_id)             → (inserted, skipped)
  detach_missing_references(model, values)             → False if a row cannot be restored

Relations with snapshot=True are copied into ArchivedContact.related_snapshot
before a delete and re-inserted on restore. The messaging links are nullable
and live on records owned elsewhere, so they are re-pointed but not archived.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from django.db import IntegrityError, models, transaction

from candidates.models import CompanyEmailDraft
from contacts.models import CallLog, ContactNote, ContactPerson, ListMember, UserContactSetting
from messaging.models import EmailThread, WhatsAppConversation, WhatsAppOptIn
from vacancies.models import Vacancy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimpleRepoint:
    key: str
    model: type[models.Model]
    field: str
    snapshot: bool = True

    @property
    def attname(self) -> str:
        return self.model._meta.get_field(self.field).attname


@dataclass(frozen=True)
class ConflictAwareRepoint:
    key: str
    model: type[models.Model]
    field: str
    # attnames that, together with field, form the unique constraint
    natural_key: tuple[str, ...]
    # merge(primary_row, duplicate_row) mutates primary_row, returns changed field names
    merge: Callable[[models.Model, models.Model], list[str]] | None = None
    snapshot: bool = True

    @property
    def attname(self) -> str:
        return self.model._meta.get_field(self.field).attname


# ── Sub-field merge rules ─────────────────────────────────────────────────────

def _is_newer(candidate, current) -> bool:
    return candidate is not None and (current is None or candidate > current)


def _merge_user_setting(primary_row, duplicate_row) -> list[str]:
    """The more recently updated setting wins, field by field, if non-empty."""
    if not _is_newer(duplicate_row.updated_at, primary_row.updated_at):
        return []
    changed = []
    for name in ("status", "follow_up_at", "follow_up_note"):
        value = getattr(duplicate_row, name)
        if value not in (None, ""):
            setattr(primary_row, name, value)
            changed.append(name)
    primary_row.updated_at = duplicate_row.updated_at
    changed.append("updated_at")
    return changed


# Each variant follows its own edit timestamp.
_DRAFT_VARIANTS = (
    ("standard_updated_at", ("standard_subject", "standard_body")),
    ("best_updated_at", ("best_subject", "best_body", "best_research_summary", "best_research_confidence")),
)


def _merge_email_draft(primary_row, duplicate_row) -> list[str]:
    changed = []
    for stamp, fields in _DRAFT_VARIANTS:
        if not _is_newer(getattr(duplicate_row, stamp), getattr(primary_row, stamp)):
            continue
        for name in fields + (stamp,):
            setattr(primary_row, name, getattr(duplicate_row, name))
            changed.append(name)
    return changed


# ── Registry ──────────────────────────────────────────────────────────────────

RELATIONS = (
    SimpleRepoint("contact_persons", ContactPerson, "contact"),
    SimpleRepoint("contact_notes", ContactNote, "contact"),
    SimpleRepoint("vacancies", Vacancy, "contact"),
    SimpleRepoint("call_logs", CallLog, "contact"),
    ConflictAwareRepoint(
        "user_contact_settings", UserContactSetting, "contact",
        natural_key=("user_id",), merge=_merge_user_setting,
    ),
    # Membership carries no data of its own: the duplicate's row is dropped.
    ConflictAwareRepoint("list_members", ListMember, "contact", natural_key=("contact_list_id",)),
    ConflictAwareRepoint(
        "email_drafts", CompanyEmailDraft, "company",
        natural_key=("candidate_id",), merge=_merge_email_draft,
    ),
    SimpleRepoint("email_threads", EmailThread, "linked_contact", snapshot=False),
    SimpleRepoint("whatsapp_conversations", WhatsAppConversation, "linked_contact", snapshot=False),
    SimpleRepoint("whatsapp_optins", WhatsAppOptIn, "linked_contact", snapshot=False),
)

SNAPSHOT_RELATIONS = tuple(r for r in RELATIONS if r.snapshot)

RELATIONS_BY_KEY = {r.key: r for r in RELATIONS}


# ── Re-pointing ───────────────────────────────────────────────────────────────

def repoint_relation(relation, duplicate_id, primary_id) -> int:
    """
    Move every row of one relation from duplicate_id to primary_id.
    Returns the number of duplicate rows handled (moved or merged away).
    """
    if isinstance(relation, SimpleRepoint):
        return relation.model.objects.filter(
            **{relation.attname: duplicate_id}
        ).update(**{relation.attname: primary_id})
    if isinstance(relation, ConflictAwareRepoint):
        return _repoint_with_conflicts(relation, duplicate_id, primary_id)
    raise TypeError(f"Unknown relation policy: {relation!r}")


def _repoint_with_conflicts(relation: ConflictAwareRepoint, duplicate_id, primary_id) -> int:
    handled = 0
    rows = relation.model.objects.filter(**{relation.attname: duplicate_id}).order_by("pk")
    for row in rows:
        lookup = {name: getattr(row, name) for name in relation.natural_key}
        existing = _primary_row(relation, primary_id, lookup)

        if existing is None:
            try:
                with transaction.atomic():
                    relation.model.objects.filter(pk=row.pk).update(**{relation.attname: primary_id})
                handled += 1
                continue
            except IntegrityError:
                # Another row took the natural key first: treat as a conflict.
                existing = _primary_row(relation, primary_id, lookup)
                if existing is None:
                    raise

        if relation.merge is not None:
            changed = relation.merge(existing, row)
            if changed:
                existing.save(update_fields=changed)
        row.delete()
        handled += 1
        logger.debug(
            "Merged %s row %s into %s (natural key %s)",
            relation.key, row.pk, existing.pk, lookup,
        )
    return handled


def _primary_row(relation, primary_id, lookup: dict):
    return relation.model.objects.filter(**{relation.attname: primary_id}, **lookup).first()


# ── Snapshot / restore ────────────────────────────────────────────────────────

def serialize_instance(instance: models.Model) -> dict:
    """Every concrete column of a row, keyed by attname."""
    return {f.attname: f.value_from_object(instance) for f in instance._meta.concrete_fields}


def deserialize_fields(model: type[models.Model], data: dict) -> dict:
    """Turn a JSON-decoded snapshot row back into typed field values."""
    values = {}
    for f in model._meta.concrete_fields:
        if f.attname in data:
            value = data[f.attname]
            values[f.attname] = None if value is None else f.to_python(value)
    return values


def snapshot_rows(relation, contact_id) -> list[dict]:
    rows = relation.model.objects.filter(**{relation.attname: contact_id}).order_by("pk")
    return [serialize_instance(row) for row in rows]


def detach_missing_references(
    model: type[models.Model], values: dict, *, keep: str = "", known: dict | None = None,
) -> bool:
    """
    Check every foreign key in values against the live tables. A nullable
    reference whose target is gone is set to None; a required one makes the
    row unrestorable and False is returned. keep names an attname not to check.
    """
    known = {} if known is None else known
    for f in model._meta.concrete_fields:
        if not f.is_relation or f.attname == keep:
            continue
        value = values.get(f.attname)
        if value is None:
            continue
        cache_key = (f.related_model, value)
        if cache_key not in known:
            known[cache_key] = f.related_model._base_manager.filter(
                **{f.target_field.attname: value}
            ).exists()
        if known[cache_key]:
            continue
        if not f.null:
            logger.warning(
                "Cannot restore %s row: %s=%s no longer exists",
                model._meta.label, f.attname, value,
            )
            return False
        logger.info("Restoring %s row without %s=%s (deleted)", model._meta.label, f.attname, value)
        values[f.attname] = None
    return True


def restore_rows(relation, rows: list[dict], contact_id, known: dict | None = None) -> tuple[int, int]:
    """
    Re-insert snapshotted rows under fresh ids, attached to contact_id.
    Returns (inserted, skipped); rows whose required parent was deleted since
    the archive was taken are skipped.
    """
    known = {} if known is None else known
    pk_name = relation.model._meta.pk.attname
    objects = []
    skipped = 0
    for data in rows:
        values = deserialize_fields(relation.model, data)
        values.pop(pk_name, None)
        values[relation.attname] = contact_id
        if not detach_missing_references(relation.model, values, keep=relation.attname, known=known):
            skipped += 1
            continue
        objects.append(relation.model(**values))
    relation.model.objects.bulk_create(objects)
    return len(objects), skipped
