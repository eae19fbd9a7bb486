"""Grouping key extraction for enquiry records.

Two records that probably describe the same person should produce the
same key; records that are merely similar should not. Keys are scoped
to the calendar day of the enquiry so repeat contacts on different days
remain separate entries.
"""

from datetime import timezone

from ..config import Settings, get_settings
from ..models.enquiry import EPOCH, EnquiryRecord
from .matcher import is_placeholder_email, normalize_email, normalize_phone

INVALID_DAY = "invalid"


def day_key(record: EnquiryRecord) -> str:
    """Calendar day (``YYYY-MM-DD``, UTC) of a record's best timestamp.

    Records with no parseable date all share the ``invalid`` bucket.
    """
    timestamp = record.timestamp()
    if timestamp == EPOCH:
        return INVALID_DAY
    return timestamp.astimezone(timezone.utc).date().isoformat()


def group_key(record: EnquiryRecord, settings: Settings | None = None) -> str:
    """Derive the candidate identity-group key for a record.

    Args:
        record: Enquiry to key
        settings: Optional settings override

    Returns:
        ``contact|day`` for personal email or phone,
        ``name|id|day`` (or ``id:<id>``) for placeholder email,
        ``name|area|day`` otherwise
    """
    settings = settings or get_settings()

    day = day_key(record)
    email = normalize_email(record.email)
    phone = normalize_phone(record.phone, settings.phone_match_digits)
    name = record.full_name
    record_id = record.id or ""
    placeholder = is_placeholder_email(email, settings)

    if not placeholder and (email or phone):
        contact = email or phone
        return f"{contact}|{day}"

    if placeholder:
        if not name and record_id:
            return f"id:{record_id}"
        return f"{name}|{record_id}|{day}"

    area = (record.area_of_work or "").lower()
    return f"{name or 'unknown'}|{area}|{day}"
