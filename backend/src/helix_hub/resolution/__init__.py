"""Enquiry identity resolution for Helix Hub.

Provides key extraction, identity comparison and the batch resolver
that collapses duplicate enquiries, plus client grouping, intake
filtering and cross-source reconciliation built on the same signals.
"""

from .grouping import (
    client_key,
    get_mixed_enquiry_display,
    group_enquiries_by_client,
    is_grouped_enquiry,
    separate_repeated_enquiries,
)
from .intake import (
    dedupe_by_id_and_week,
    filter_placeholder_enquiries,
    id_week_key,
    is_placeholder_enquiry,
    iso_week_key,
)
from .keys import day_key, group_key
from .matcher import (
    IdentityMatch,
    IdentityMatcher,
    IdentitySignal,
    is_generic_prospect_email,
    is_placeholder_email,
    is_shared_prospect_record,
    normalize_email,
    normalize_phone,
    same_identity,
)
from .reconcile import (
    MigrationStats,
    MigrationStatus,
    ReconciledEnquiry,
    ReconciliationResult,
    reconcile_sources,
)
from .resolver import (
    EnquiryResolver,
    ResolutionResult,
    ResolvedGroup,
    dedupe_enquiries,
    resolve_enquiries,
)

__all__ = [
    "client_key",
    "get_mixed_enquiry_display",
    "group_enquiries_by_client",
    "is_grouped_enquiry",
    "separate_repeated_enquiries",
    "dedupe_by_id_and_week",
    "filter_placeholder_enquiries",
    "id_week_key",
    "is_placeholder_enquiry",
    "iso_week_key",
    "day_key",
    "group_key",
    "IdentityMatch",
    "IdentityMatcher",
    "IdentitySignal",
    "is_generic_prospect_email",
    "is_placeholder_email",
    "is_shared_prospect_record",
    "normalize_email",
    "normalize_phone",
    "same_identity",
    "MigrationStats",
    "MigrationStatus",
    "ReconciledEnquiry",
    "ReconciliationResult",
    "reconcile_sources",
    "EnquiryResolver",
    "ResolutionResult",
    "ResolvedGroup",
    "dedupe_enquiries",
    "resolve_enquiries",
]
