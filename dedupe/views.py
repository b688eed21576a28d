"""
dedupe/views.py

JSON endpoints for contact cleanup.

  GET  /contacts/dedupe/    — preview duplicate clusters (read-only)
  POST /contacts/dedupe/    — merge all clusters, record a CleanupRun
  GET  /contacts/restore/   — page through archived contacts (?limit=&offset=)
  POST /contacts/restore/   — restore one archive ({"archive_id": "..."})

Scope is the acting user's team (Profile.team); users without a team act on
all teams. DedupeError subclasses map to their status_code.
"""

import json
import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from agencycrm.constants import ARCHIVE_PAGE_SIZE
from dedupe import services
from dedupe.exceptions import DedupeError, ValidationError

logger = logging.getLogger(__name__)


# ── Shared response helpers ────────────────────────────────────────────────────

def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": message}, status=status)


def _unauthenticated() -> JsonResponse:
    return _error("Unauthorized", 401)


def _team_id(user):
    profile = getattr(user, "profile", None)
    return profile.team_id if profile is not None else None


def _payload(request) -> dict:
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Request body is not valid JSON.")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return request.POST.dict()


def _run(request, operation, *args, **kwargs) -> JsonResponse:
    try:
        return JsonResponse(operation(*args, **kwargs))
    except DedupeError as exc:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.path, exc)
        return _error(str(exc), exc.status_code)
    except Exception:
        logger.exception("Unexpected error in %s %s", request.method, request.path)
        return _error("Internal server error", 500)


# ── Views ──────────────────────────────────────────────────────────────────────

@require_http_methods(["GET", "POST"])
def dedupe_view(request):
    if not request.user.is_authenticated:
        return _unauthenticated()
    operation = services.apply_dedupe if request.method == "POST" else services.preview_dedupe
    return _run(request, operation, _team_id(request.user), user=request.user)


@require_http_methods(["GET", "POST"])
def restore_view(request):
    if not request.user.is_authenticated:
        return _unauthenticated()

    if request.method == "GET":
        return _run(
            request,
            services.list_archived,
            _team_id(request.user),
            user=request.user,
            limit=request.GET.get("limit", ARCHIVE_PAGE_SIZE),
            offset=request.GET.get("offset", 0),
        )

    try:
        archive_id = _payload(request).get("archive_id")
    except ValidationError as exc:
        return _error(str(exc), exc.status_code)
    if not archive_id:
        return _error("archive_id is required", 400)
    return _run(request, services.restore_archived_contact, archive_id, user=request.user)
