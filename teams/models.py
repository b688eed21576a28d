from django.conf import settings
from django.db import models


class Team(models.Model):
    """
    A recruiting desk. Contacts, lists and cleanup runs are owned by a team;
    the team bounds the universe a dedupe run looks at.
    """

    name = models.CharField(max_length=150, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Team"
        verbose_name_plural = "Teams"

    def __str__(self) -> str:
        return self.name


class Profile(models.Model):
    """Per-user settings. A null team means the user sees every team's data."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    team = models.ForeignKey(
        Team,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )

    class Meta:
        verbose_name = "Profile"
        verbose_name_plural = "Profiles"

    def __str__(self) -> str:
        return f"{self.user} ({self.team or 'all teams'})"
