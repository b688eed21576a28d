"""
dedupe/merge.py

Field merge resolver: fill-empty-only merge of a duplicate contact's scalar
fields into the surviving primary.

phone is not mergeable: the primary keeps its own number.
"""

MERGEABLE_FIELDS = (
    "contact_name",
    "email",
    "street",
    "city",
    "canton",
    "postal_code",
)


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def merge_contact_fields(primary, duplicate) -> dict:
    """
    Return the patch to apply to primary: every mergeable field that is empty
    on primary and set on duplicate. An empty dict means nothing to update.
    """
    patch = {}
    for name in MERGEABLE_FIELDS:
        if _is_empty(getattr(primary, name, None)):
            value = getattr(duplicate, name, None)
            if not _is_empty(value):
                patch[name] = value
    return patch
