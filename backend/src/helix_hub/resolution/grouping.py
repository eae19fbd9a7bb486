"""Client grouping of enquiries for the enquiries list.

Groups every enquiry made by the same client so repeat enquirers show
as one card with their history. Client keys:
- ``id:<ID>`` for the known shared prospect IDs (always one group)
- the client's name when the email is a shared team inbox
- otherwise email, then name, then ``id:<ID>``
"""

from collections.abc import Iterable

from ..config import Settings, get_settings
from ..models.enquiry import EPOCH, EnquiryRecord, GroupedEnquiry, parse_timestamp
from .matcher import is_placeholder_email, is_shared_prospect_record, normalize_email


def _touchpoint(record: EnquiryRecord) -> str:
    # Instructions rows only carry their creation date
    return record.created_at or record.date_created or ""


def _sort_time(value: str | None):
    return parse_timestamp(value) or EPOCH


def client_key(record: EnquiryRecord, settings: Settings | None = None) -> str:
    """Key identifying the client behind an enquiry, or "" if unknown."""
    settings = settings or get_settings()
    email = normalize_email(record.email)
    name = record.full_name

    if record.id and is_shared_prospect_record(record, settings):
        return f"id:{record.id}"
    if is_placeholder_email(email, settings) and name:
        return name
    if email:
        return email
    if name:
        return name
    if record.id:
        return f"id:{record.id}"
    return ""


def group_enquiries_by_client(
    records: Iterable[EnquiryRecord],
    settings: Settings | None = None,
) -> list[GroupedEnquiry]:
    """Group enquiries by client.

    Args:
        records: Enquiries to group
        settings: Optional settings override

    Returns:
        Groups sorted newest first, members within each group newest first
    """
    settings = settings or get_settings()
    groups: dict[str, GroupedEnquiry] = {}

    for record in records:
        key = client_key(record, settings)
        if not key:
            continue

        forced = bool(record.id) and is_shared_prospect_record(record, settings)
        if forced:
            name = f"Shared Prospect {record.id}"
            email = settings.shared_prospect_email
        else:
            name = record.display_name or (
                f"Prospect {record.id}" if record.id else "Unknown contact"
            )
            email = record.email or ""

        touchpoint = _touchpoint(record)
        group = groups.get(key)
        if group is None:
            groups[key] = GroupedEnquiry(
                client_key=key,
                client_name=name,
                client_email=email,
                enquiries=[record],
                latest_date=touchpoint,
                areas=[record.area_of_work] if record.area_of_work else [],
            )
            continue

        group.enquiries.append(record)
        if _sort_time(touchpoint) > _sort_time(group.latest_date):
            group.latest_date = touchpoint
            group.client_name = name
            if email:
                group.client_email = email
        if record.area_of_work and record.area_of_work not in group.areas:
            group.areas.append(record.area_of_work)

    grouped = list(groups.values())
    for group in grouped:
        group.enquiries.sort(key=lambda e: _sort_time(_touchpoint(e)), reverse=True)
    grouped.sort(key=lambda g: _sort_time(g.latest_date), reverse=True)
    return grouped


def separate_repeated_enquiries(
    groups: Iterable[GroupedEnquiry],
) -> tuple[list[EnquiryRecord], list[GroupedEnquiry]]:
    """Split groups into single enquiries and repeat clients."""
    singles: list[EnquiryRecord] = []
    repeated: list[GroupedEnquiry] = []
    for group in groups:
        if len(group.enquiries) == 1:
            singles.append(group.enquiries[0])
        else:
            repeated.append(group)
    return singles, repeated


def get_mixed_enquiry_display(
    records: Iterable[EnquiryRecord],
    settings: Settings | None = None,
) -> list[EnquiryRecord | GroupedEnquiry]:
    """Display list mixing single enquiries and client groups.

    Shared prospect records always display as a group, even when alone,
    so their history view is consistent.
    """
    settings = settings or get_settings()
    display: list[EnquiryRecord | GroupedEnquiry] = []
    for group in group_enquiries_by_client(records, settings):
        if len(group.enquiries) == 1:
            enquiry = group.enquiries[0]
            if enquiry.id and is_shared_prospect_record(enquiry, settings):
                display.append(group)
            else:
                display.append(enquiry)
        else:
            display.append(group)
    return display


def is_grouped_enquiry(item: EnquiryRecord | GroupedEnquiry) -> bool:
    """Check if a display item is a client group."""
    return isinstance(item, GroupedEnquiry)
