from django.conf import settings
from django.db import models
from django.utils import timezone


class Vacancy(models.Model):
    """An open role at a client company (Contact) the agency is filling."""

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        PAUSED = "paused", "Paused"
        FILLED = "filled", "Filled"
        CLOSED = "closed", "Closed"

    class Urgency(models.IntegerChoices):
        LOW = 1, "Low"
        NORMAL = 2, "Normal"
        HIGH = 3, "High"

    contact = models.ForeignKey(
        "contacts.Contact",
        on_delete=models.CASCADE,
        related_name="vacancies",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vacancies",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
    )
    urgency = models.PositiveSmallIntegerField(
        choices=Urgency.choices,
        default=Urgency.NORMAL,
    )
    # Workplace location when it differs from the company address.
    city = models.CharField(max_length=150, null=True, blank=True)
    postal_code = models.CharField(max_length=10, null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Vacancy"
        verbose_name_plural = "Vacancies"

    def __str__(self) -> str:
        return f"[{self.status}] {self.title}"
