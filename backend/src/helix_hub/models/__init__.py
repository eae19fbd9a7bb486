"""Domain models for Helix Hub."""

from .enquiry import EPOCH, EnquiryRecord, GroupedEnquiry, coerce_text, parse_timestamp

__all__ = [
    "EPOCH",
    "EnquiryRecord",
    "GroupedEnquiry",
    "coerce_text",
    "parse_timestamp",
]
