"""
dedupe/permissions.py

Preconditions checked before any cleanup operation touches data.

  is_cleanup_allowed(user)      → bool
  ensure_cleanup_allowed(user)  → raises AuthorizationError
  validate_team_id(team_id)     → int | None (None means all teams)
  parse_uuid(value, label)      → uuid.UUID

Only users whose e-mail is listed in DATA_CLEANUP_ALLOWED_EMAILS may run
destructive cleanup (dedupe apply, restore, archive listing).
"""

import uuid

from django.conf import settings

from dedupe.exceptions import AuthorizationError, ValidationError
from teams.models import Team


def is_cleanup_allowed(user) -> bool:
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    email = (getattr(user, "email", "") or "").strip().lower()
    if not email:
        return False
    allowed = {e.strip().lower() for e in getattr(settings, "DATA_CLEANUP_ALLOWED_EMAILS", [])}
    return email in allowed


def ensure_cleanup_allowed(user) -> None:
    if not is_cleanup_allowed(user):
        raise AuthorizationError("You are not allowed to run data cleanup operations.")


def validate_team_id(team_id) -> int | None:
    if team_id is None or team_id == "":
        return None
    if isinstance(team_id, bool):
        raise ValidationError(f"Invalid team id: {team_id!r}")
    try:
        value = int(team_id)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid team id: {team_id!r}")
    if value <= 0 or not Team.objects.filter(pk=value).exists():
        raise ValidationError(f"Unknown team id: {team_id!r}")
    return value


def parse_uuid(value, label: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid {label}: {value!r}")
