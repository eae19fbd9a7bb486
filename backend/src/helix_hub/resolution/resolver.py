"""Enquiry resolver collapsing duplicate records into identity groups.

Resolution flow (single pass, input order):
1. Compute the record's grouping key
2. Unused key -> the record starts a new group as its representative
3. Used key -> compare with the group's representative:
   - same identity -> merged into the group (first record stays representative)
   - different identity -> key collision; the record moves to the first
     free ``<key>_<n>`` key

Declared IDs never short-circuit the comparison: the upstream system is
known to reuse IDs for different people.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from ..config import Settings, get_settings
from ..logging import log_resolution_event, log_resolution_summary
from ..models.enquiry import EnquiryRecord
from .keys import group_key
from .matcher import IdentityMatcher


class ResolvedGroup(BaseModel):
    """Records assigned to one identity group."""

    key: str
    representative: EnquiryRecord
    members: list[EnquiryRecord] = Field(default_factory=list)
    positions: list[int] = Field(
        default_factory=list, description="Input positions of the members"
    )
    collision: bool = False

    @property
    def size(self) -> int:
        """Number of records in the group."""
        return len(self.members)


class ResolutionResult(BaseModel):
    """Outcome of resolving a batch of enquiries."""

    groups: dict[str, ResolvedGroup] = Field(default_factory=dict)
    input_count: int = 0
    merged_count: int = 0
    collision_count: int = 0

    @property
    def representatives(self) -> list[EnquiryRecord]:
        """One record per group, in order of first occurrence."""
        return [group.representative for group in self.groups.values()]

    @property
    def keys(self) -> list[str]:
        """Final group keys, in order of first occurrence."""
        return list(self.groups.keys())


def key_signature(record: EnquiryRecord) -> tuple:
    """Fields a grouping key is derived from."""
    return (
        record.id,
        record.email,
        record.phone,
        record.first_name,
        record.last_name,
        record.area_of_work,
        record.created_at,
        record.date_created,
        record.claim,
    )


def to_record(value: EnquiryRecord | Mapping[str, Any]) -> EnquiryRecord:
    """Accept either a record or a raw row."""
    if isinstance(value, EnquiryRecord):
        return value
    return EnquiryRecord.from_row(value)


class EnquiryResolver:
    """Groups enquiry records believed to describe the same person.

    Every call to ``resolve`` builds a fresh in-memory map; nothing is
    shared between calls, so one resolver may serve concurrent requests.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.matcher = IdentityMatcher(self.settings)

    def key_for(
        self,
        record: EnquiryRecord,
        key_cache: dict[tuple, str] | None = None,
    ) -> str:
        """Grouping key for a record, optionally memoized per request."""
        if key_cache is None:
            return group_key(record, self.settings)
        signature = key_signature(record)
        if signature not in key_cache:
            key_cache[signature] = group_key(record, self.settings)
        return key_cache[signature]

    def resolve(
        self,
        records: Iterable[EnquiryRecord | Mapping[str, Any]],
        key_cache: dict[tuple, str] | None = None,
    ) -> ResolutionResult:
        """Resolve a batch of enquiries into identity groups.

        Args:
            records: Enquiries in display order (records or raw rows)
            key_cache: Optional request-scoped cache of computed keys;
                pass a new dict per request, never a shared one

        Returns:
            Groups keyed by final key, in order of first occurrence
        """
        result = ResolutionResult()
        groups = result.groups

        for position, value in enumerate(records):
            record = to_record(value)
            result.input_count += 1
            key = self.key_for(record, key_cache)

            existing = groups.get(key)
            if existing is None:
                groups[key] = ResolvedGroup(
                    key=key,
                    representative=record,
                    members=[record],
                    positions=[position],
                )
                log_resolution_event("created", key, record.id)
                continue

            representative = existing.representative
            match = self.matcher.compare(representative, record)

            if match.matched:
                existing.members.append(record)
                existing.positions.append(position)
                result.merged_count += 1
                log_resolution_event(
                    "merged",
                    key,
                    record.id,
                    signal=match.signal.value,
                    existing_id=representative.id,
                )
                continue

            new_key = self._free_key(key, groups)
            groups[new_key] = ResolvedGroup(
                key=new_key,
                representative=record,
                members=[record],
                positions=[position],
                collision=True,
            )
            result.collision_count += 1
            log_resolution_event(
                "collision",
                new_key,
                record.id,
                signal=match.signal.value,
                existing_id=representative.id,
            )

        log_resolution_summary(
            input_count=result.input_count,
            group_count=len(groups),
            merged_count=result.merged_count,
            collision_count=result.collision_count,
        )
        return result

    def dedupe(
        self,
        records: Iterable[EnquiryRecord | Mapping[str, Any]],
    ) -> list[EnquiryRecord]:
        """Deduplicated records, first occurrence of each identity kept."""
        return self.resolve(records).representatives

    @staticmethod
    def _free_key(base_key: str, groups: Mapping[str, Any]) -> str:
        """First ``<base_key>_<n>`` not already taken."""
        suffix = 0
        while f"{base_key}_{suffix}" in groups:
            suffix += 1
        return f"{base_key}_{suffix}"


def resolve_enquiries(
    records: Iterable[EnquiryRecord | Mapping[str, Any]],
    settings: Settings | None = None,
) -> ResolutionResult:
    """Convenience function to resolve a batch with default settings."""
    return EnquiryResolver(settings).resolve(records)


def dedupe_enquiries(
    records: Iterable[EnquiryRecord | Mapping[str, Any]],
    settings: Settings | None = None,
) -> list[EnquiryRecord]:
    """Convenience function returning one representative per identity."""
    return EnquiryResolver(settings).dedupe(records)
