"""
dedupe/classifier.py

Duplicate classifier used by bulk-import paths before inserting a contact.

  check_duplicate(candidate, keys) → DuplicateCheck(is_duplicate, reason)

Checks run in strict priority order and the first hit wins:
  1. external_id   — the upstream record was already imported ("graph_id")
  2. phone digits
  3. non-public e-mail domain
  4. normalised company name

check_duplicate never mutates the key set. After accepting a non-duplicate
the caller threads it back through keys.remember(candidate) so later rows of
the same batch are matched against it too.
"""

from dataclasses import dataclass, field
from typing import Iterable

from dedupe.identity import (
    EMAIL_DOMAIN,
    GRAPH_ID,
    NAME,
    PHONE,
    matchable_domain,
    normalized_name,
    phone_digits,
)


@dataclass(frozen=True)
class ImportCandidate:
    company_name: str
    phone: str | None = None
    email: str | None = None
    external_id: str | None = None


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    reason: str | None = None

    def to_dict(self) -> dict:
        return {"is_duplicate": self.is_duplicate, "reason": self.reason}


NOT_DUPLICATE = DuplicateCheck(is_duplicate=False, reason=None)


@dataclass
class IdentityKeys:
    """Accumulated identity keys for one import invocation."""

    phones: set[str] = field(default_factory=set)
    names: set[str] = field(default_factory=set)
    domains: set[str] = field(default_factory=set)
    external_ids: set[str] = field(default_factory=set)

    @classmethod
    def from_contacts(cls, contacts: Iterable) -> "IdentityKeys":
        """Seed the key sets from already-stored contacts."""
        keys = cls()
        for contact in contacts:
            keys.remember(contact)
        return keys

    def remember(self, record) -> "IdentityKeys":
        """Add a record's keys (any object with the contact attributes)."""
        digits = phone_digits(getattr(record, "phone", None))
        if digits:
            self.phones.add(digits)
        name = normalized_name(getattr(record, "company_name", None))
        if name:
            self.names.add(name)
        domain = matchable_domain(getattr(record, "email", None))
        if domain:
            self.domains.add(domain)
        external_id = (getattr(record, "external_id", None) or "").strip()
        if external_id:
            self.external_ids.add(external_id)
        return self


def check_duplicate(candidate, keys: IdentityKeys) -> DuplicateCheck:
    """Classify one candidate against the accumulated key sets."""
    external_id = (getattr(candidate, "external_id", None) or "").strip()
    if external_id and external_id in keys.external_ids:
        return DuplicateCheck(is_duplicate=True, reason=GRAPH_ID)

    digits = phone_digits(candidate.phone)
    if digits and digits in keys.phones:
        return DuplicateCheck(is_duplicate=True, reason=PHONE)

    domain = matchable_domain(candidate.email)
    if domain and domain in keys.domains:
        return DuplicateCheck(is_duplicate=True, reason=EMAIL_DOMAIN)

    name = normalized_name(candidate.company_name)
    if name and name in keys.names:
        return DuplicateCheck(is_duplicate=True, reason=NAME)

    return NOT_DUPLICATE
