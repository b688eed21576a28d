"""
contacts/migrations/0001_initial.py

Initial migration: Contact and its dependent tables (notes, persons,
call logs, per-user settings, lists and list memberships).
"""

import uuid

import django.db.models.deletion
import django.utils.timezone
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
            name="Contact",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("company_name", models.CharField(max_length=255)),
                ("contact_name", models.CharField(blank=True, max_length=255, null=True)),
                ("phone", models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ("email", models.CharField(blank=True, db_index=True, max_length=254, null=True)),
                ("street", models.CharField(blank=True, max_length=255, null=True)),
                ("city", models.CharField(blank=True, max_length=150, null=True)),
                ("canton", models.CharField(blank=True, max_length=10, null=True)),
                ("postal_code", models.CharField(blank=True, max_length=10, null=True)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("source", models.CharField(choices=[("manual", "Manual"), ("csv_import", "CSV Import"), ("outlook", "Outlook")], default="manual", max_length=20)),
                ("source_account_id", models.CharField(blank=True, max_length=255, null=True)),
                ("external_id", models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="contacts", to="teams.team")),
            ],
            options={
                "verbose_name": "Contact",
                "verbose_name_plural": "Contacts",
                "ordering": ["company_name"],
            },
        ),
        migrations.CreateModel(
            name="ContactNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("body", models.TextField()),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("author", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="contact_notes", to=settings.AUTH_USER_MODEL)),
                ("contact", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="contact_notes", to="contacts.contact")),
            ],
            options={
                "verbose_name": "Contact Note",
                "verbose_name_plural": "Contact Notes",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ContactPerson",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=150)),
                ("last_name", models.CharField(blank=True, default="", max_length=150)),
                ("role", models.CharField(blank=True, max_length=150, null=True)),
                ("gender", models.CharField(blank=True, choices=[("female", "Female"), ("male", "Male")], max_length=10, null=True)),
                ("phone", models.CharField(blank=True, max_length=50, null=True)),
                ("email", models.CharField(blank=True, max_length=254, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("contact", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="persons", to="contacts.contact")),
            ],
            options={
                "verbose_name": "Contact Person",
                "verbose_name_plural": "Contact Persons",
                "ordering": ["last_name", "first_name"],
            },
        ),
        migrations.CreateModel(
            name="CallLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("outcome", models.CharField(choices=[("reached", "Reached"), ("not_reached", "Not Reached"), ("callback", "Callback"), ("no_interest", "No Interest")], max_length=20)),
                ("notes", models.TextField(blank=True, null=True)),
                ("called_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("contact", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="call_logs", to="contacts.contact")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="call_logs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Call Log",
                "verbose_name_plural": "Call Logs",
                "ordering": ["-called_at"],
            },
        ),
        migrations.CreateModel(
            name="UserContactSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(blank=True, choices=[("open", "Open"), ("hot", "Hot"), ("follow_up", "Follow-up"), ("closed", "Closed")], max_length=20, null=True)),
                ("follow_up_at", models.DateTimeField(blank=True, null=True)),
                ("follow_up_note", models.TextField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("contact", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="user_settings", to="contacts.contact")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="contact_settings", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "User Contact Setting",
                "verbose_name_plural": "User Contact Settings",
                "unique_together": {("user", "contact")},
            },
        ),
        migrations.CreateModel(
            name="ContactList",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="contact_lists", to=settings.AUTH_USER_MODEL)),
                ("team", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="contact_lists", to="teams.team")),
            ],
            options={
                "verbose_name": "Contact List",
                "verbose_name_plural": "Contact Lists",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ListMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("added_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("contact", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="list_memberships", to="contacts.contact")),
                ("contact_list", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="members", to="contacts.contactlist")),
            ],
            options={
                "verbose_name": "List Member",
                "verbose_name_plural": "List Members",
                "unique_together": {("contact_list", "contact")},
            },
        ),
    ]
