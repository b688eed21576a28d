"""
messaging/migrations/0001_initial.py

Initial migration: EmailThread, WhatsAppConversation and WhatsAppOptIn.
"""

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("contacts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="EmailThread",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(db_index=True, max_length=255)),
                ("subject", models.CharField(blank=True, max_length=500)),
                ("last_message_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("linked_contact", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="email_threads", to="contacts.contact")),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="email_threads", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Email Thread",
                "verbose_name_plural": "Email Threads",
                "ordering": ["-last_message_at"],
            },
        ),
        migrations.CreateModel(
            name="WhatsAppConversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("phone", models.CharField(db_index=True, max_length=50)),
                ("display_name", models.CharField(blank=True, max_length=255)),
                ("last_message_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("linked_contact", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="whatsapp_conversations", to="contacts.contact")),
            ],
            options={
                "verbose_name": "WhatsApp Conversation",
                "verbose_name_plural": "WhatsApp Conversations",
                "ordering": ["-last_message_at"],
            },
        ),
        migrations.CreateModel(
            name="WhatsAppOptIn",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("phone", models.CharField(max_length=50, unique=True)),
                ("opted_in_at", models.DateTimeField(auto_now_add=True)),
                ("opted_out_at", models.DateTimeField(blank=True, null=True)),
                ("linked_contact", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="whatsapp_optins", to="contacts.contact")),
            ],
            options={
                "verbose_name": "WhatsApp Opt-in",
                "verbose_name_plural": "WhatsApp Opt-ins",
            },
        ),
    ]
