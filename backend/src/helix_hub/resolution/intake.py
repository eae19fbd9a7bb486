"""Intake-level filtering applied before enquiries reach the resolver.

When enquiries are loaded from overlapping sources the same record can
appear more than once. Follow-up calls in the same week are treated as
one enquiry; enquiries in different weeks are kept as separate matters.
"""

import math
from collections.abc import Iterable
from datetime import date, timedelta

from ..config import Settings, get_settings
from ..models.enquiry import EnquiryRecord
from .matcher import normalize_email


def is_placeholder_enquiry(record: EnquiryRecord, settings: Settings | None = None) -> bool:
    """Whether an enquiry was recorded against a configured placeholder address."""
    placeholders = (settings or get_settings()).placeholder_email_set
    return normalize_email(record.email) in placeholders


def filter_placeholder_enquiries(
    records: Iterable[EnquiryRecord],
    settings: Settings | None = None,
) -> list[EnquiryRecord]:
    """Drop enquiries recorded against a configured placeholder address.

    These addresses are reused for different people, which makes their
    IDs unreliable for ID-based deduplication.
    """
    settings = settings or get_settings()
    return [r for r in records if not is_placeholder_enquiry(r, settings)]


def iso_week_key(value: str | None) -> str:
    """Week bucket ``<year>-W<week>`` for a date string, "" if unparseable.

    The week number counts from 1 January to the Monday of the given
    date's week; the year is that of the date itself.
    """
    if not value:
        return ""
    try:
        day = date.fromisoformat(value.split("T")[0].strip())
    except ValueError:
        return ""

    monday = day - timedelta(days=day.isoweekday() - 1)
    offset = (monday - date(day.year, 1, 1)).days
    week = math.ceil((offset + 1) / 7)
    return f"{day.year}-W{week}"


def id_week_key(record: EnquiryRecord) -> str | None:
    """``<ID>|<week>`` dedupe key, or None for an enquiry without an ID."""
    if not record.id:
        return None
    return f"{record.id}|{iso_week_key(record.created_at or record.date_created)}"


def dedupe_by_id_and_week(records: Iterable[EnquiryRecord]) -> list[EnquiryRecord]:
    """Keep the first enquiry per (ID, week); ID-less enquiries always stay."""
    records = list(records)
    if len(records) <= 1:
        return records

    seen: set[str] = set()
    kept: list[EnquiryRecord] = []
    for record in records:
        key = id_week_key(record)
        if key is None:
            kept.append(record)
        elif key not in seen:
            seen.add(key)
            kept.append(record)
    return kept
