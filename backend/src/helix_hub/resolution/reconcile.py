"""Cross-source reconciliation of legacy and instructions enquiries.

Enquiries are being migrated from the legacy core database into the
instructions database. While both are live the same enquiry can exist
in each. Reconciliation links the two copies and keeps the legacy one:

1. Primary: an instructions row whose ``acid`` equals a legacy ID
2. Fallback: unlinked rows sharing an email (case-insensitive) or phone

Instructions rows linked to a legacy row are suppressed from the output.
"""

from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, Field

from ..logging import get_context_logger
from ..models.enquiry import EnquiryRecord

logger = get_context_logger(__name__)


# =========================
# Data Models
# =========================


class MigrationStatus(str, Enum):
    """Migration state of an enquiry between the two databases."""

    NOT_CHECKED = "not-checked"
    MIGRATED = "migrated"
    PARTIAL = "partial"
    NOT_MIGRATED = "not-migrated"
    INSTRUCTIONS_ONLY = "instructions-only"


class ReconciledEnquiry(BaseModel):
    """An enquiry selected for display with its migration state."""

    record: EnquiryRecord
    source: str
    migration_status: MigrationStatus


class MigrationStats(BaseModel):
    """Migration progress across the legacy records."""

    total: int = 0
    migrated: int = 0
    partial: int = 0
    not_migrated: int = 0
    instructions_only: int = 0
    migration_rate: str = "0.0%"
    cross_reference_map: dict[str, str] = Field(default_factory=dict)


class ReconciliationResult(BaseModel):
    """Merged view of both enquiry sources."""

    enquiries: list[ReconciledEnquiry] = Field(default_factory=list)
    main_count: int = 0
    instructions_count: int = 0
    migration: MigrationStats = Field(default_factory=MigrationStats)

    @property
    def records(self) -> list[EnquiryRecord]:
        """Selected enquiries without migration metadata."""
        return [e.record for e in self.enquiries]

    @property
    def unique_count(self) -> int:
        """Number of enquiries selected for display."""
        return len(self.enquiries)


# =========================
# Reconciliation
# =========================


def _same_contact(main: EnquiryRecord, inst: EnquiryRecord) -> bool:
    if main.email and inst.email and main.email.lower() == inst.email.lower():
        return True
    return bool(main.phone and inst.phone and main.phone == inst.phone)


def reconcile_sources(
    main: Sequence[EnquiryRecord],
    instructions: Sequence[EnquiryRecord],
) -> ReconciliationResult:
    """Link legacy and instructions enquiries and pick one copy of each.

    Args:
        main: Rows from the legacy enquiries table
        instructions: Rows from the instructions enquiries table

    Returns:
        Legacy rows first, then instructions rows with no legacy
        counterpart, plus migration statistics
    """
    main_status = [MigrationStatus.NOT_CHECKED] * len(main)
    inst_status = [MigrationStatus.NOT_CHECKED] * len(instructions)
    cross_reference: dict[str, str] = {}

    # Primary: acid holds the legacy ID on migrated rows
    for j, inst in enumerate(instructions):
        if not inst.acid:
            continue
        for i, legacy in enumerate(main):
            if legacy.id == inst.acid:
                cross_reference[legacy.id] = inst.id or ""
                main_status[i] = MigrationStatus.MIGRATED
                inst_status[j] = MigrationStatus.MIGRATED
                break

    # Fallback: contact details for rows not yet linked
    for i, legacy in enumerate(main):
        if main_status[i] != MigrationStatus.NOT_CHECKED:
            continue
        if not (legacy.email or legacy.phone):
            continue
        for j, inst in enumerate(instructions):
            if inst_status[j] == MigrationStatus.NOT_CHECKED and _same_contact(legacy, inst):
                cross_reference[legacy.id or ""] = inst.id or ""
                main_status[i] = MigrationStatus.PARTIAL
                inst_status[j] = MigrationStatus.PARTIAL
                break

    main_status = [
        MigrationStatus.NOT_MIGRATED if s == MigrationStatus.NOT_CHECKED else s
        for s in main_status
    ]
    inst_status = [
        MigrationStatus.INSTRUCTIONS_ONLY if s == MigrationStatus.NOT_CHECKED else s
        for s in inst_status
    ]

    linked_instruction_ids = set(cross_reference.values())
    seen: set[str] = set()
    selected: list[ReconciledEnquiry] = []

    for legacy, status in zip(main, main_status):
        poc = (legacy.point_of_contact or "").strip().lower()
        composite = f"main-{legacy.id}-{poc}"
        if composite in seen:
            continue
        seen.add(composite)
        selected.append(
            ReconciledEnquiry(record=legacy, source="main", migration_status=status)
        )

    for inst, status in zip(instructions, inst_status):
        if (inst.id or "") in linked_instruction_ids:
            continue
        composite = f"instructions-{inst.id}"
        if composite in seen:
            continue
        seen.add(composite)
        selected.append(
            ReconciledEnquiry(record=inst, source="instructions", migration_status=status)
        )

    stats = MigrationStats(
        total=len(main),
        migrated=main_status.count(MigrationStatus.MIGRATED),
        partial=main_status.count(MigrationStatus.PARTIAL),
        not_migrated=main_status.count(MigrationStatus.NOT_MIGRATED),
        instructions_only=inst_status.count(MigrationStatus.INSTRUCTIONS_ONLY),
        cross_reference_map=cross_reference,
    )
    if stats.total:
        stats.migration_rate = f"{stats.migrated / stats.total * 100:.1f}%"

    logger.info(
        f"Reconciled {len(main)} legacy and {len(instructions)} instructions enquiries",
        extra={
            "main_count": len(main),
            "instructions_count": len(instructions),
            "unique_count": len(selected),
            "migrated": stats.migrated,
            "partial": stats.partial,
        },
    )

    return ReconciliationResult(
        enquiries=selected,
        main_count=len(main),
        instructions_count=len(instructions),
        migration=stats,
    )
