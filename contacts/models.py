import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Contact(models.Model):
    """
    A client company the agency places candidates with.

    The primary key is a UUID so an archived contact can be restored at its
    original id after a dedupe merge.
    """

    class Source(models.TextChoices):
        MANUAL = "manual", "Manual"
        CSV_IMPORT = "csv_import", "CSV Import"
        OUTLOOK = "outlook", "Outlook"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contacts",
    )

    company_name = models.CharField(max_length=255)
    contact_name = models.CharField(max_length=255, null=True, blank=True)
    phone = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    email = models.CharField(max_length=254, null=True, blank=True, db_index=True)

    # Address (Swiss format: canton is the two-letter code, e.g. "ZH")
    street = models.CharField(max_length=255, null=True, blank=True)
    city = models.CharField(max_length=150, null=True, blank=True)
    canton = models.CharField(max_length=10, null=True, blank=True)
    postal_code = models.CharField(max_length=10, null=True, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    notes = models.TextField(null=True, blank=True)

    # External-source metadata. external_id is the upstream record id
    # (e.g. the Outlook Graph contact id) and is the strongest dedup key on import.
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.MANUAL,
    )
    source_account_id = models.CharField(max_length=255, null=True, blank=True)
    external_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)

    # Writable (not auto_now_add) so a restore reproduces the original value.
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["company_name"]
        verbose_name = "Contact"
        verbose_name_plural = "Contacts"

    def __str__(self) -> str:
        return f"{self.company_name} ({self.phone or '-'})"


class ContactNote(models.Model):
    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name="contact_notes")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contact_notes",
    )
    body = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Contact Note"
        verbose_name_plural = "Contact Notes"

    def __str__(self) -> str:
        return f"Note on {self.contact_id}"


class ContactPerson(models.Model):
    """A named person at a client company (HR lead, site manager, ...)."""

    class Gender(models.TextChoices):
        FEMALE = "female", "Female"
        MALE = "male", "Male"

    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name="persons")
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True, default="")
    role = models.CharField(max_length=150, null=True, blank=True)
    gender = models.CharField(max_length=10, choices=Gender.choices, null=True, blank=True)
    phone = models.CharField(max_length=50, null=True, blank=True)
    email = models.CharField(max_length=254, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["last_name", "first_name"]
        verbose_name = "Contact Person"
        verbose_name_plural = "Contact Persons"

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CallLog(models.Model):
    class Outcome(models.TextChoices):
        REACHED = "reached", "Reached"
        NOT_REACHED = "not_reached", "Not Reached"
        CALLBACK = "callback", "Callback"
        NO_INTEREST = "no_interest", "No Interest"

    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name="call_logs")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="call_logs",
    )
    outcome = models.CharField(max_length=20, choices=Outcome.choices)
    notes = models.TextField(null=True, blank=True)
    called_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-called_at"]
        verbose_name = "Call Log"
        verbose_name_plural = "Call Logs"

    def __str__(self) -> str:
        return f"{self.contact_id} [{self.outcome}]"


class UserContactSetting(models.Model):
    """
    Personal pipeline state a recruiter keeps on a contact (status and
    follow-up reminder). One row per (user, contact).
    """

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        HOT = "hot", "Hot"
        FOLLOW_UP = "follow_up", "Follow-up"
        CLOSED = "closed", "Closed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="contact_settings",
    )
    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name="user_settings")
    status = models.CharField(max_length=20, choices=Status.choices, null=True, blank=True)
    follow_up_at = models.DateTimeField(null=True, blank=True)
    follow_up_note = models.TextField(null=True, blank=True)
    # Set explicitly on every write; the dedupe merge compares and carries it over.
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "User Contact Setting"
        verbose_name_plural = "User Contact Settings"
        unique_together = [("user", "contact")]

    def __str__(self) -> str:
        return f"{self.user_id} → {self.contact_id} [{self.status}]"


class ContactList(models.Model):
    name = models.CharField(max_length=150)
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="contact_lists",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contact_lists",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Contact List"
        verbose_name_plural = "Contact Lists"

    def __str__(self) -> str:
        return self.name


class ListMember(models.Model):
    contact_list = models.ForeignKey(ContactList, on_delete=models.CASCADE, related_name="members")
    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name="list_memberships")
    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "List Member"
        verbose_name_plural = "List Members"
        # A contact appears at most once per list
        unique_together = [("contact_list", "contact")]

    def __str__(self) -> str:
        return f"{self.contact_id} in list #{self.contact_list_id}"
