"""
agencycrm/constants.py

Central repository for cross-cutting, operationally-tunable constants.

Rules for what belongs here:
  - Pure Python only — no Django model imports (prevents circular import risk).
  - Referenced by more than one module, or genuinely tunable at the ops level.

What intentionally stays elsewhere:
  - TextChoices on models          — Django convention, DB-validated.
  - PUBLIC_EMAIL_DOMAINS           — dedupe/identity.py (single consumer).
  - Relation re-pointing registry  — dedupe/relations.py.
"""

# ── Identity keys ──────────────────────────────────────────────────────────────

# Fewer digits than this is too weak a signal to treat two phones as the same.
MIN_PHONE_DIGITS = 6

# Normalised company names shorter than this are ignored for matching.
MIN_NAME_LENGTH = 2

# ── Dedupe preview / apply ─────────────────────────────────────────────────────

# Maximum example groups returned by a dedupe preview for operator review.
PREVIEW_EXAMPLE_LIMIT = 10

# Placeholder used in previews when a contact has no company name.
UNNAMED_CONTACT = "(unnamed)"

# ── Archive listing ────────────────────────────────────────────────────────────

ARCHIVE_PAGE_SIZE = 50
ARCHIVE_PAGE_SIZE_MAX = 200
