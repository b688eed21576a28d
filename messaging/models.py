from django.conf import settings
from django.db import models


class EmailThread(models.Model):
    """
    A synced mailbox thread. linked_contact is an optional back-reference set
    when the thread is recognised as correspondence with a client company.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="email_threads",
    )
    # Provider thread id (Graph conversationId)
    external_id = models.CharField(max_length=255, db_index=True)
    subject = models.CharField(max_length=500, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    linked_contact = models.ForeignKey(
        "contacts.Contact",
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="email_threads",
    )

    class Meta:
        ordering = ["-last_message_at"]
        verbose_name = "Email Thread"
        verbose_name_plural = "Email Threads"

    def __str__(self) -> str:
        return self.subject or f"Thread {self.external_id}"


class WhatsAppConversation(models.Model):
    phone       = models.CharField(max_length=50, db_index=True)
    display_name = models.CharField(max_length=255, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    linked_contact = models.ForeignKey(
        "contacts.Contact",
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="whatsapp_conversations",
    )

    class Meta:
        ordering = ["-last_message_at"]
        verbose_name = "WhatsApp Conversation"
        verbose_name_plural = "WhatsApp Conversations"

    def __str__(self) -> str:
        return f"WhatsApp {self.display_name or self.phone}"


class WhatsAppOptIn(models.Model):
    """Consent record required before automated WhatsApp follow-ups."""

    phone       = models.CharField(max_length=50, unique=True)
    opted_in_at = models.DateTimeField(auto_now_add=True)
    opted_out_at = models.DateTimeField(null=True, blank=True)
    linked_contact = models.ForeignKey(
        "contacts.Contact",
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="whatsapp_optins",
    )

    class Meta:
        verbose_name = "WhatsApp Opt-in"
        verbose_name_plural = "WhatsApp Opt-ins"

    def __str__(self) -> str:
        return f"{self.phone} ({'out' if self.opted_out_at else 'in'})"
