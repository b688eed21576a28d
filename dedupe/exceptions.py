"""
dedupe/exceptions.py

Error taxonomy for cleanup operations. Each class carries the HTTP status the
JSON views answer with.

  ValidationError    — malformed scope or ids; raised before any mutation
  AuthorizationError — caller may not run cleanup; raised before any mutation
  NotFoundError      — archive id unknown, or a contact vanished mid-run
  ConflictError      — restore target id is already taken
  PersistenceError   — a write failed during archive/merge/re-point/delete
"""


class DedupeError(Exception):
    """Base class for every contact-cleanup failure."""

    status_code = 500


class ValidationError(DedupeError):
    status_code = 400


class AuthorizationError(DedupeError):
    status_code = 403


class NotFoundError(DedupeError):
    status_code = 404


class ConflictError(DedupeError):
    status_code = 409


class PersistenceError(DedupeError):
    status_code = 500
