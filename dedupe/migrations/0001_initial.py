"""
dedupe/migrations/0001_initial.py

Initial migration: CleanupRun audit rows and the ArchivedContact undo log.
"""

import uuid

import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("teams", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CleanupRun",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=[("dedupe_merge", "Dedupe Merge")], default="dedupe_merge", max_length=20)),
                ("executed_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("summary", models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("status", models.CharField(choices=[("completed", "Completed"), ("partial", "Partial")], db_index=True, default="completed", max_length=10)),
                ("executed_by", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="cleanup_runs", to=settings.AUTH_USER_MODEL)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="cleanup_runs", to="teams.team")),
            ],
            options={
                "verbose_name": "Cleanup Run",
                "verbose_name_plural": "Cleanup Runs",
                "ordering": ["-executed_at"],
            },
        ),
        migrations.CreateModel(
            name="ArchivedContact",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("original_contact_id", models.UUIDField(db_index=True)),
                ("deleted_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("reason", models.CharField(choices=[("dedupe_merge", "Dedupe Merge"), ("manual_delete", "Manual Delete"), ("bulk_delete", "Bulk Delete")], db_index=True, max_length=20)),
                ("run_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("merged_into_contact_id", models.UUIDField(blank=True, null=True)),
                ("contact_snapshot", models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("related_snapshot", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("deleted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="archived_contacts", to=settings.AUTH_USER_MODEL)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="archived_contacts", to="teams.team")),
            ],
            options={
                "verbose_name": "Archived Contact",
                "verbose_name_plural": "Archived Contacts",
                "ordering": ["-deleted_at"],
            },
        ),
    ]
