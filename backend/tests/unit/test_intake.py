"""Unit tests for intake filtering and week-based deduplication."""

import pytest

from helix_hub.config import Settings
from helix_hub.models.enquiry import EnquiryRecord
from helix_hub.resolution.intake import (
    dedupe_by_id_and_week,
    filter_placeholder_enquiries,
    id_week_key,
    is_placeholder_enquiry,
    iso_week_key,
)


class TestFilterPlaceholderEnquiries:
    """Tests for filter_placeholder_enquiries."""

    def test_drops_configured_placeholders(self, settings: Settings):
        records = [
            EnquiryRecord(id="1", email="noemail@noemail.com"),
            EnquiryRecord(id="2", email=" Prospects@Helix-Law.com"),
            EnquiryRecord(id="3", email="jane@example.com"),
            EnquiryRecord(id="4"),
        ]

        kept = filter_placeholder_enquiries(records, settings)

        assert [r.id for r in kept] == ["3", "4"]

    def test_is_placeholder_enquiry(self, settings: Settings):
        assert is_placeholder_enquiry(EnquiryRecord(email="NoEmail@noemail.com "), settings) is True
        assert is_placeholder_enquiry(EnquiryRecord(email="jane@example.com"), settings) is False
        assert is_placeholder_enquiry(EnquiryRecord(), settings) is False

    def test_only_exact_configured_addresses(self, settings: Settings):
        """Test that team inboxes are left for the resolver to handle."""
        records = [EnquiryRecord(id="1", email="team@helix-law.com")]
        assert filter_placeholder_enquiries(records, settings) == records


class TestIsoWeekKey:
    """Tests for the week bucket helper."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-11-20", "2025-W46"),
            ("2025-11-17T09:00:00Z", "2025-W46"),
            ("2025-11-16", "2025-W45"),
            ("2025-01-06", "2025-W1"),
            ("2025-01-01", "2025-W0"),
        ],
    )
    def test_week_key(self, value: str, expected: str):
        assert iso_week_key(value) == expected

    @pytest.mark.parametrize("value", [None, "", "garbage"])
    def test_unparseable(self, value):
        assert iso_week_key(value) == ""


class TestDedupeByIdAndWeek:
    """Tests for dedupe_by_id_and_week."""

    def test_same_id_same_week_collapses(self):
        records = [
            EnquiryRecord(id="28609", first_name="Andy", created_at="2025-11-20"),
            EnquiryRecord(id="28609", first_name="Keith", created_at="2025-11-17"),
        ]

        kept = dedupe_by_id_and_week(records)

        assert [r.first_name for r in kept] == ["Andy"]

    def test_same_id_different_weeks_kept(self):
        records = [
            EnquiryRecord(id="7", created_at="2025-11-20"),
            EnquiryRecord(id="7", created_at="2025-11-10"),
        ]
        assert len(dedupe_by_id_and_week(records)) == 2

    def test_id_less_records_always_kept(self):
        records = [
            EnquiryRecord(first_name="A", created_at="2025-11-20"),
            EnquiryRecord(first_name="A", created_at="2025-11-20"),
        ]
        assert dedupe_by_id_and_week(records) == records

    def test_falls_back_to_date_created(self):
        records = [
            EnquiryRecord(id="9", date_created="2025-11-20T10:00:00"),
            EnquiryRecord(id="9", date_created="2025-11-18T10:00:00"),
        ]
        assert len(dedupe_by_id_and_week(records)) == 1

    def test_id_week_key(self):
        assert id_week_key(EnquiryRecord(id="7", created_at="2025-11-20")) == "7|2025-W46"
        assert id_week_key(EnquiryRecord(id="7")) == "7|"
        assert id_week_key(EnquiryRecord(created_at="2025-11-20")) is None

    def test_short_input_returned_unchanged(self):
        record = EnquiryRecord(id="1")
        assert dedupe_by_id_and_week([]) == []
        assert dedupe_by_id_and_week([record]) == [record]
