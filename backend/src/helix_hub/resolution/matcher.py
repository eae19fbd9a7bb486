"""Identity matching for enquiry records.

Decides whether two enquiries describe the same person. Signals are
checked in a fixed precedence:
1. Personal email: both sides carry a non-placeholder email
2. Phone: both sides carry a phone number (last digits compared)
3. Name: both sides carry a non-blank full name

When none of these apply the records are treated as different people;
ambiguous pairs are never merged.
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..config import Settings, get_settings
from ..models.enquiry import EnquiryRecord

# Local parts of shared intake inboxes used for many unrelated people.
GENERIC_INBOX_LOCAL_PARTS = frozenset({"prospects", "team"})


class IdentitySignal(str, Enum):
    """Signal that decided an identity comparison."""

    EMAIL = "email"
    PHONE = "phone"
    NAME = "name"
    NONE = "none"


class IdentityMatch(BaseModel):
    """Result of comparing two enquiry records."""

    matched: bool
    signal: IdentitySignal
    details: dict[str, Any] = Field(default_factory=dict)


def normalize_email(email: str | None) -> str:
    """Trim and lowercase an email address."""
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def normalize_phone(phone: str | None, digits: int | None = None) -> str:
    """Reduce a phone number to its trailing digits.

    Keeping only the last few digits tolerates country codes and
    arbitrary formatting (``+44 (0)20 7946 0000`` vs ``020 7946 0000``).
    """
    if not isinstance(phone, str):
        return ""
    if digits is None:
        digits = get_settings().phone_match_digits
    return re.sub(r"\D", "", phone)[-digits:]


def is_placeholder_email(email: str | None, settings: Settings | None = None) -> bool:
    """Check if an address is a shared intake inbox.

    Placeholder addresses are recorded for many different people and
    must never be used as an identity signal. Blank addresses are not
    placeholders.
    """
    normalized = normalize_email(email)
    if not normalized:
        return False
    settings = settings or get_settings()
    if normalized in settings.placeholder_email_set:
        return True
    local_part = normalized.split("@", 1)[0]
    return "@" in normalized and local_part in GENERIC_INBOX_LOCAL_PARTS


def is_generic_prospect_email(email: str | None, settings: Settings | None = None) -> bool:
    """Check if an address cannot identify a client on its own.

    Unlike ``is_placeholder_email`` a missing address counts as generic.
    """
    if not normalize_email(email):
        return True
    return is_placeholder_email(email, settings)


def is_shared_prospect_record(record: EnquiryRecord, settings: Settings | None = None) -> bool:
    """Check if a record carries one of the known shared prospect IDs."""
    if not record.id:
        return False
    settings = settings or get_settings()
    return record.id.strip() in settings.shared_prospect_id_set


def personal_email(record: EnquiryRecord, settings: Settings | None = None) -> str:
    """Normalized email of a record, or "" if missing or a placeholder."""
    email = normalize_email(record.email)
    if not email or is_placeholder_email(email, settings):
        return ""
    return email


class IdentityMatcher:
    """Compares enquiry records by email, phone and name.

    The comparison is symmetric: ``compare(a, b)`` and ``compare(b, a)``
    always agree on ``matched`` and ``signal``.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def compare(self, a: EnquiryRecord, b: EnquiryRecord) -> IdentityMatch:
        """Compare two records and report which signal decided."""
        a_email = personal_email(a, self.settings)
        b_email = personal_email(b, self.settings)
        if a_email and b_email:
            return IdentityMatch(
                matched=a_email == b_email,
                signal=IdentitySignal.EMAIL,
                details={"emails": sorted({a_email, b_email})},
            )

        digits = self.settings.phone_match_digits
        a_phone = normalize_phone(a.phone, digits)
        b_phone = normalize_phone(b.phone, digits)
        if a_phone and b_phone:
            return IdentityMatch(
                matched=a_phone == b_phone,
                signal=IdentitySignal.PHONE,
                details={"phones": sorted({a_phone, b_phone})},
            )

        a_name = a.full_name
        b_name = b.full_name
        if a_name and b_name:
            return IdentityMatch(
                matched=a_name == b_name,
                signal=IdentitySignal.NAME,
                details={"names": sorted({a_name, b_name})},
            )

        return IdentityMatch(matched=False, signal=IdentitySignal.NONE)

    def same_identity(self, a: EnquiryRecord, b: EnquiryRecord) -> bool:
        """Check if two records describe the same person."""
        return self.compare(a, b).matched


def same_identity(
    a: EnquiryRecord,
    b: EnquiryRecord,
    settings: Settings | None = None,
) -> bool:
    """Convenience function comparing two records with default settings.

    Args:
        a: First record
        b: Second record
        settings: Optional settings override

    Returns:
        True only when an email, phone or name signal positively agrees
    """
    return IdentityMatcher(settings).same_identity(a, b)
