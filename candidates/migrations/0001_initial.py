"""
candidates/migrations/0001_initial.py

Initial migration: Candidate and CompanyEmailDraft tables.
"""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("teams", "0001_initial"),
        ("contacts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=150)),
                ("last_name", models.CharField(max_length=150)),
                ("full_name", models.CharField(max_length=300)),
                ("phone", models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ("email", models.CharField(blank=True, db_index=True, max_length=254, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="candidates", to="teams.team")),
            ],
            options={
                "verbose_name": "Candidate",
                "verbose_name_plural": "Candidates",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="CompanyEmailDraft",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("standard_subject", models.CharField(blank=True, max_length=500, null=True)),
                ("standard_body", models.TextField(blank=True, null=True)),
                ("standard_updated_at", models.DateTimeField(blank=True, null=True)),
                ("best_subject", models.CharField(blank=True, max_length=500, null=True)),
                ("best_body", models.TextField(blank=True, null=True)),
                ("best_updated_at", models.DateTimeField(blank=True, null=True)),
                ("best_research_summary", models.TextField(blank=True, null=True)),
                ("best_research_confidence", models.FloatField(blank=True, null=True)),
                ("candidate", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="email_drafts", to="candidates.candidate")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="email_drafts", to="contacts.contact")),
            ],
            options={
                "verbose_name": "Company Email Draft",
                "verbose_name_plural": "Company Email Drafts",
                "unique_together": {("candidate", "company")},
            },
        ),
    ]
