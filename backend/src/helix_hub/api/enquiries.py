"""Enquiry API endpoints for Helix Hub."""

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..config import get_settings
from ..db import EnquiryFilters, EnquiryRepository
from ..models.enquiry import EnquiryRecord, GroupedEnquiry
from ..resolution.grouping import get_mixed_enquiry_display, is_grouped_enquiry
from ..resolution.intake import id_week_key, is_placeholder_enquiry
from ..resolution.reconcile import MigrationStats, ReconciledEnquiry, reconcile_sources
from ..resolution.resolver import EnquiryResolver, ResolvedGroup

router = APIRouter(prefix="/enquiries")


def get_repository() -> EnquiryRepository:
    """FastAPI dependency for the enquiry repository."""
    return EnquiryRepository()


# =========================
# Request / Response Models
# =========================


class RecordsRequest(BaseModel):
    """Raw enquiry rows as returned by either database or the UI."""

    records: list[dict[str, Any]] = Field(default_factory=list)

    def to_records(self) -> list[EnquiryRecord]:
        return [EnquiryRecord.from_row(row) for row in self.records]


class SourceCounts(BaseModel):
    """Row counts per enquiry source."""

    main: int
    instructions: int
    unique: int


class UnifiedEnquiriesResponse(BaseModel):
    """Enquiries from both databases, reconciled."""

    enquiries: list[dict[str, Any]]
    count: int
    sources: SourceCounts
    warnings: list[dict[str, str]] = []
    migration: MigrationStats
    deduplicated: bool = False


class GroupResponse(BaseModel):
    """One identity group."""

    key: str
    size: int
    collision: bool
    representative: dict[str, Any]
    member_ids: list[str | None]


class ResolveResponse(BaseModel):
    """Identity groups for a batch of enquiries."""

    groups: list[GroupResponse]
    enquiries: list[dict[str, Any]]
    input_count: int
    group_count: int
    merged_count: int
    collision_count: int


class DisplayItem(BaseModel):
    """A single enquiry or a client group in the display list."""

    type: str
    enquiry: dict[str, Any] | None = None
    client_key: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    latest_date: str | None = None
    areas: list[str] = []
    enquiries: list[dict[str, Any]] = []


class GroupDisplayResponse(BaseModel):
    """Mixed display list of single enquiries and client groups."""

    items: list[DisplayItem]
    single_count: int
    group_count: int


def _group_response(group: ResolvedGroup) -> GroupResponse:
    return GroupResponse(
        key=group.key,
        size=group.size,
        collision=group.collision,
        representative=group.representative.to_row(),
        member_ids=[member.id for member in group.members],
    )


def _display_item(item: EnquiryRecord | GroupedEnquiry) -> DisplayItem:
    if is_grouped_enquiry(item):
        return DisplayItem(
            type="group",
            client_key=item.client_key,
            client_name=item.client_name,
            client_email=item.client_email,
            latest_date=item.latest_date,
            areas=item.areas,
            enquiries=[e.to_row() for e in item.enquiries],
        )
    return DisplayItem(type="enquiry", enquiry=item.to_row())


def _apply_intake(
    entries: list[ReconciledEnquiry],
    exclude_placeholders: bool,
    dedupe_week: bool,
) -> list[ReconciledEnquiry]:
    """Intake filtering over reconciled enquiries, order preserved."""
    settings = get_settings()
    if exclude_placeholders:
        entries = [e for e in entries if not is_placeholder_enquiry(e.record, settings)]
    if dedupe_week:
        seen: set[str] = set()
        kept = []
        for entry in entries:
            key = id_week_key(entry.record)
            if key in seen:
                continue
            if key is not None:
                seen.add(key)
            kept.append(entry)
        entries = kept
    return entries


# =========================
# Unified Enquiries
# =========================


@router.get("", response_model=UnifiedEnquiriesResponse)
async def list_enquiries(
    limit: int | None = Query(None, ge=1),
    email: str = Query(""),
    initials: str = Query(""),
    include_team_inbox: bool = Query(True),
    fetch_all: bool = Query(False),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    exclude_placeholders: bool = Query(
        False, description="Drop enquiries recorded against a placeholder address"
    ),
    dedupe_week: bool = Query(False, description="Keep one enquiry per ID and week"),
    dedupe: bool = Query(False, description="Collapse duplicate identities"),
    repository: EnquiryRepository = Depends(get_repository),
) -> UnifiedEnquiriesResponse:
    """Fetch enquiries from both databases.

    A failing source is reported in ``warnings`` with no rows rather
    than failing the request.
    """
    settings = get_settings()
    filters = EnquiryFilters(
        limit=min(limit or settings.enquiries_default_limit, settings.enquiries_max_limit),
        email=email,
        initials=initials,
        include_team_inbox=include_team_inbox,
        fetch_all=fetch_all,
        date_from=date_from,
        date_to=date_to,
    )

    unified = await repository.fetch_unified(filters)
    reconciled = reconcile_sources(unified.main, unified.instructions)

    selected = _apply_intake(
        reconciled.enquiries,
        exclude_placeholders=exclude_placeholders,
        dedupe_week=dedupe_week,
    )
    if dedupe:
        result = EnquiryResolver(settings).resolve(e.record for e in selected)
        kept = {group.positions[0] for group in result.groups.values()}
        selected = [e for i, e in enumerate(selected) if i in kept]

    enquiries = []
    for entry in selected:
        row = entry.record.to_row()
        row["source"] = entry.source
        row["migrationStatus"] = entry.migration_status.value
        enquiries.append(row)

    return UnifiedEnquiriesResponse(
        enquiries=enquiries,
        count=len(enquiries),
        sources=SourceCounts(
            main=reconciled.main_count,
            instructions=reconciled.instructions_count,
            unique=reconciled.unique_count,
        ),
        warnings=unified.warnings,
        migration=reconciled.migration,
        deduplicated=dedupe,
    )


# =========================
# Identity Resolution
# =========================


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_enquiries(request: RecordsRequest) -> ResolveResponse:
    """Resolve a batch of enquiries into identity groups."""
    result = EnquiryResolver().resolve(request.to_records())
    return ResolveResponse(
        groups=[_group_response(g) for g in result.groups.values()],
        enquiries=[r.to_row() for r in result.representatives],
        input_count=result.input_count,
        group_count=len(result.groups),
        merged_count=result.merged_count,
        collision_count=result.collision_count,
    )


@router.post("/group", response_model=GroupDisplayResponse)
async def group_enquiries(request: RecordsRequest) -> GroupDisplayResponse:
    """Group enquiries by client for the enquiries list."""
    items = [_display_item(i) for i in get_mixed_enquiry_display(request.to_records())]
    groups = sum(1 for i in items if i.type == "group")
    return GroupDisplayResponse(
        items=items,
        single_count=len(items) - groups,
        group_count=groups,
    )
