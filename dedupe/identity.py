"""
dedupe/identity.py

Identity normalizer: pure functions turning raw contact fields into the
canonical keys used for duplicate matching.

  phone_digits(phone)      → "41791234567" | None
  email_domain(email)      → "example.ch"  | None
  normalized_name(name)    → "müller gmbh" | None
  is_public_domain(domain) → bool
  matchable_domain(email)  → email domain unless it is a consumer provider

Phone numbers are compared digit-for-digit only. A domestic trunk prefix
("079…") and the international form ("+4179…") of the same number produce
different keys.
"""

import re

from agencycrm.constants import MIN_NAME_LENGTH, MIN_PHONE_DIGITS

# ── Match reasons ──────────────────────────────────────────────────────────────

GRAPH_ID = "graph_id"
PHONE = "phone"
EMAIL_DOMAIN = "email_domain"
NAME = "name"

# Strongest first. Used to label a cluster by its best uniting signal.
CLUSTER_REASON_PRIORITY = (PHONE, EMAIL_DOMAIN, NAME)

# Consumer mailbox providers. Staff of unrelated companies share these, so
# they are never used as a company identity key.
PUBLIC_EMAIL_DOMAINS = frozenset({
    "gmail.com",
    "googlemail.com",
    "outlook.com",
    "outlook.ch",
    "hotmail.com",
    "hotmail.ch",
    "live.com",
    "msn.com",
    "yahoo.com",
    "yahoo.ch",
    "icloud.com",
    "me.com",
    "mac.com",
    "gmx.ch",
    "gmx.net",
    "gmx.de",
    "bluewin.ch",
    "sunrise.ch",
    "hispeed.ch",
    "protonmail.com",
    "proton.me",
    "aol.com",
})

_NON_DIGIT_RE = re.compile(r"\D")
_WHITESPACE_RE = re.compile(r"\s+")


def phone_digits(phone: str | None) -> str | None:
    """Strip everything but digits; None when too short to be a real number."""
    digits = _NON_DIGIT_RE.sub("", phone or "")
    return digits if len(digits) >= MIN_PHONE_DIGITS else None


def email_domain(email: str | None) -> str | None:
    """Lowercased part after the '@', or None when there is no '@'."""
    if not email or "@" not in email:
        return None
    domain = email.split("@", 1)[1].strip().lower()
    return domain or None


def normalized_name(name: str | None) -> str | None:
    """Collapse whitespace, trim and lowercase; None if shorter than the minimum."""
    normalized = _WHITESPACE_RE.sub(" ", name or "").strip().lower()
    return normalized if len(normalized) >= MIN_NAME_LENGTH else None


def is_public_domain(domain: str | None) -> bool:
    if not domain:
        return False
    return domain.lower() in PUBLIC_EMAIL_DOMAINS


def matchable_domain(email: str | None) -> str | None:
    domain = email_domain(email)
    if domain is None or is_public_domain(domain):
        return None
    return domain
