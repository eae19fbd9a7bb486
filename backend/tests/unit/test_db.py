"""Unit tests for enquiry data access.

Queries are not executed; engines and fetches are mocked.
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helix_hub.db import (
    INSTRUCTIONS,
    MAIN,
    DatabaseNotConfiguredError,
    EnquiryFilters,
    EnquiryRepository,
    build_where_clause,
    get_engine,
)
from helix_hub.models.enquiry import EnquiryRecord


class TestBuildWhereClause:
    """Tests for WHERE clause construction."""

    def test_no_filters(self):
        clause, params = build_where_clause(EnquiryFilters(), "Date_Created", "Point_of_Contact")

        assert clause == ""
        assert params == {"limit": 1000}

    def test_date_range(self):
        filters = EnquiryFilters(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))

        clause, params = build_where_clause(filters, "datetime", "poc")

        assert clause == "WHERE datetime >= :date_from AND datetime <= :date_to"
        assert params["date_from"].isoformat() == "2025-01-01T00:00:00"
        assert params["date_to"].date() == date(2025, 1, 31)
        assert params["date_to"].hour == 23

    def test_email_and_initials_with_team_inbox(self):
        filters = EnquiryFilters(email=" LZ@Helix-Law.com ", initials="L.Z.")

        clause, params = build_where_clause(filters, "Date_Created", "Point_of_Contact")

        assert params["user_email"] == "lz@helix-law.com"
        assert params["user_initials"] == "lz"
        assert ":user_email" in clause
        assert ":user_initials" in clause
        assert "'team@helix-law.com', 'team', 'team inbox'" in clause

    def test_exclude_team_inbox(self):
        filters = EnquiryFilters(email="lz@helix-law.com", include_team_inbox=False)

        clause, _ = build_where_clause(filters, "datetime", "poc")

        assert "team inbox" not in clause
        assert clause.startswith("WHERE (")

    def test_fetch_all_skips_contact_filter(self):
        filters = EnquiryFilters(email="lz@helix-law.com", fetch_all=True)

        clause, params = build_where_clause(filters, "datetime", "poc")

        assert clause == ""
        assert "user_email" not in params

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            EnquiryFilters(limit=0)


class TestEngines:
    """Tests for engine configuration."""

    def test_missing_url_raises(self, settings):
        settings.main_database_url = ""
        with patch("helix_hub.db.get_settings", return_value=settings):
            with patch.dict("helix_hub.db._engines", {}, clear=True):
                with pytest.raises(DatabaseNotConfiguredError) as exc_info:
                    get_engine(MAIN)

        assert exc_info.value.database == MAIN

    def test_unknown_database(self, settings):
        with patch("helix_hub.db.get_settings", return_value=settings):
            with patch.dict("helix_hub.db._engines", {}, clear=True):
                with pytest.raises(ValueError):
                    get_engine("archive")


def _mock_engine(rows: list[dict]) -> MagicMock:
    """Async engine whose connection returns the given rows."""
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows

    conn = AsyncMock()
    conn.execute.return_value = result

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=conn)
    context.__aexit__ = AsyncMock(return_value=False)

    engine = MagicMock()
    engine.connect.return_value = context
    return engine


class TestEnquiryRepository:
    """Tests for EnquiryRepository fetches."""

    @pytest.mark.asyncio
    async def test_fetch_main(self, main_rows: list[dict]):
        repository = EnquiryRepository(main_engine=_mock_engine(main_rows))

        records = await repository.fetch_main(EnquiryFilters(limit=5))

        assert [r.id for r in records] == ["1001", "1002", "1003"]
        assert all(isinstance(r, EnquiryRecord) for r in records)

    @pytest.mark.asyncio
    async def test_fetch_instructions(self, instructions_rows: list[dict]):
        engine = _mock_engine(instructions_rows)
        repository = EnquiryRepository(instructions_engine=engine)

        records = await repository.fetch_instructions(EnquiryFilters(email="lz@helix-law.com"))

        assert records[0].acid == "1001"
        conn = await engine.connect.return_value.__aenter__()
        params = conn.execute.call_args.args[1]
        assert params["user_email"] == "lz@helix-law.com"

    @pytest.mark.asyncio
    async def test_fetch_duplicate_ids(self, shared_prospect_rows: list[dict]):
        rows = shared_prospect_rows + [{"ID": "2910", "First_Name": "Ronak"}, {"ID": "2910", "First_Name": "acme"}]
        repository = EnquiryRepository(main_engine=_mock_engine(rows))

        duplicates = await repository.fetch_duplicate_ids(limit=2)

        assert list(duplicates) == ["28609", "2910"]
        assert len(duplicates["28609"]) == 3

    @pytest.mark.asyncio
    async def test_fetch_unified(self, main_rows: list[dict], instructions_rows: list[dict]):
        repository = EnquiryRepository(
            main_engine=_mock_engine(main_rows),
            instructions_engine=_mock_engine(instructions_rows),
        )

        unified = await repository.fetch_unified(EnquiryFilters())

        assert len(unified.main) == 3
        assert len(unified.instructions) == 3
        assert unified.warnings == []

    @pytest.mark.asyncio
    async def test_fetch_unified_tolerates_source_failure(self, main_rows: list[dict]):
        broken = MagicMock()
        broken.connect.side_effect = ConnectionError("login timeout")
        repository = EnquiryRepository(
            main_engine=_mock_engine(main_rows),
            instructions_engine=broken,
        )

        unified = await repository.fetch_unified(EnquiryFilters())

        assert len(unified.main) == 3
        assert unified.instructions == []
        assert unified.warnings == [{"source": INSTRUCTIONS, "message": "login timeout"}]

    @pytest.mark.asyncio
    async def test_fetch_unified_requires_configuration(self):
        repository = EnquiryRepository(main_engine=_mock_engine([]))

        with patch(
            "helix_hub.db.get_engine",
            side_effect=DatabaseNotConfiguredError(INSTRUCTIONS),
        ):
            with pytest.raises(DatabaseNotConfiguredError):
                await repository.fetch_unified(EnquiryFilters())
