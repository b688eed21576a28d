"""
dedupe/models.py

CleanupRun       — one immutable audit row per dedupe apply.
ArchivedContact  — snapshot of a deleted contact and its dependent rows;
                   the single-use undo token consumed by a restore.
"""

import uuid

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class CleanupRun(models.Model):
    class Type(models.TextChoices):
        DEDUPE_MERGE = "dedupe_merge", "Dedupe Merge"

    class Status(models.TextChoices):
        COMPLETED = "completed", "Completed"
        PARTIAL = "partial", "Partial"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.DEDUPE_MERGE)
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cleanup_runs",
    )
    executed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cleanup_runs",
    )
    executed_at = models.DateTimeField(auto_now_add=True, db_index=True)

    # Example: {"group_count": 3, "archived_count": 4,
    #           "merged_by_relation_type": {"contact_notes": 2, ...}, "error_count": 0}
    summary = models.JSONField(encoder=DjangoJSONEncoder)

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.COMPLETED,
        db_index=True,
    )

    class Meta:
        ordering = ["-executed_at"]
        verbose_name = "Cleanup Run"
        verbose_name_plural = "Cleanup Runs"

    def __str__(self) -> str:
        return f"{self.type} {self.id} [{self.status}]"


class ArchivedContact(models.Model):
    """
    Written immediately before a contact is deleted. Holds every concrete
    column of the contact plus the rows of its snapshotted relations, keyed
    by relation name (see dedupe.relations.SNAPSHOT_RELATIONS).
    """

    class Reason(models.TextChoices):
        DEDUPE_MERGE = "dedupe_merge", "Dedupe Merge"
        MANUAL_DELETE = "manual_delete", "Manual Delete"
        BULK_DELETE = "bulk_delete", "Bulk Delete"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    original_contact_id = models.UUIDField(db_index=True)
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="archived_contacts",
    )

    deleted_at = models.DateTimeField(auto_now_add=True, db_index=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="archived_contacts",
    )
    reason = models.CharField(max_length=20, choices=Reason.choices, db_index=True)
    # Groups the deletions of one cleanup run
    run_id = models.UUIDField(null=True, blank=True, db_index=True)
    merged_into_contact_id = models.UUIDField(null=True, blank=True)

    contact_snapshot = models.JSONField(encoder=DjangoJSONEncoder)
    related_snapshot = models.JSONField(encoder=DjangoJSONEncoder, default=dict)

    class Meta:
        ordering = ["-deleted_at"]
        verbose_name = "Archived Contact"
        verbose_name_plural = "Archived Contacts"

    def __str__(self) -> str:
        name = (self.contact_snapshot or {}).get("company_name") or "(unknown)"
        return f"{name} [{self.reason}]"
