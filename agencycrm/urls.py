"""
agencycrm/urls.py

Root URL configuration.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # ── Admin ──────────────────────────────────────────────────────────────────
    path("admin/", admin.site.urls),

    # ── Contact data cleanup (dedupe + archive restore, JSON) ──────────────────
    path("contacts/", include("dedupe.urls", namespace="dedupe")),
]
