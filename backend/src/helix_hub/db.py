"""Database access for Helix Hub.

Enquiries live in two SQL Server databases:
- main: the legacy core data ``enquiries`` table
- instructions: the newer ``dbo.enquiries`` table

Both are read through async SQLAlchemy engines with parameterized
queries. Rows are returned as ``EnquiryRecord`` instances.
"""

from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .config import get_settings
from .logging import get_context_logger, log_source_warning
from .models.enquiry import EnquiryRecord

logger = get_context_logger(__name__)

MAIN = "main"
INSTRUCTIONS = "instructions"

TEAM_INBOX_CONTACTS = ("team@helix-law.com", "team", "team inbox")


class DatabaseNotConfiguredError(RuntimeError):
    """Raised when a required database URL is missing."""

    def __init__(self, database: str):
        self.database = database
        super().__init__(f"Database configuration missing: {database}")


# =========================
# Engine Setup
# =========================

_engines: dict[str, AsyncEngine] = {}


def _database_url(database: str) -> str:
    settings = get_settings()
    if database == MAIN:
        return settings.main_database_url
    if database == INSTRUCTIONS:
        return settings.instructions_database_url
    raise ValueError(f"Unknown database: {database}")


def get_engine(database: str) -> AsyncEngine:
    """Get or create the async engine for a database.

    Raises:
        DatabaseNotConfiguredError: If the database URL is not set
    """
    engine = _engines.get(database)
    if engine is None:
        url = _database_url(database)
        if not url:
            raise DatabaseNotConfiguredError(database)
        engine = create_async_engine(
            url,
            echo=get_settings().api_debug,
            pool_pre_ping=True,
        )
        _engines[database] = engine
    return engine


async def close_all_connections() -> None:
    """Dispose all database engines."""
    for engine in list(_engines.values()):
        await engine.dispose()
    _engines.clear()


# =========================
# Query Building
# =========================


class EnquiryFilters(BaseModel):
    """Filters for fetching enquiries."""

    limit: int = Field(default=1000, ge=1)
    email: str = ""
    initials: str = ""
    include_team_inbox: bool = True
    fetch_all: bool = False
    date_from: date | None = None
    date_to: date | None = None


def build_where_clause(
    filters: EnquiryFilters,
    date_column: str,
    poc_column: str,
) -> tuple[str, dict[str, Any]]:
    """Build a WHERE clause and its bind parameters.

    Point-of-contact filtering only applies when ``fetch_all`` is off
    and an email or initials value was given; the team inbox is then
    included unless ``include_team_inbox`` is off.
    """
    conditions: list[str] = []
    params: dict[str, Any] = {"limit": filters.limit}

    if filters.date_from:
        params["date_from"] = datetime.combine(filters.date_from, time.min)
        conditions.append(f"{date_column} >= :date_from")
    if filters.date_to:
        params["date_to"] = datetime.combine(filters.date_to, time.max)
        conditions.append(f"{date_column} <= :date_to")

    email = filters.email.strip().lower()
    initials = filters.initials.strip().lower().replace(".", "")
    if not filters.fetch_all and (email or initials):
        poc = f"LOWER(LTRIM(RTRIM({poc_column})))"
        poc_conditions = []
        if email:
            params["user_email"] = email
            poc_conditions.append(f"{poc} = :user_email")
        if initials:
            params["user_initials"] = initials
            poc_conditions.append(
                f"LOWER(REPLACE(REPLACE(LTRIM(RTRIM({poc_column})), ' ', ''), '.', '')) = :user_initials"
            )
        if filters.include_team_inbox:
            team = ", ".join(f"'{c}'" for c in TEAM_INBOX_CONTACTS)
            poc_conditions.append(f"{poc} IN ({team})")
        conditions.append(f"({' OR '.join(poc_conditions)})")

    clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return clause, params


MAIN_ENQUIRIES_QUERY = """
SELECT TOP (:limit)
    ID,
    Date_Created AS datetime,
    Touchpoint_Date,
    Value AS claim,
    Point_of_Contact,
    Area_of_Work,
    Type_of_Work AS tow,
    Method_of_Contact AS moc,
    First_Name,
    Last_Name,
    Email,
    Phone_Number,
    Initial_first_call_notes AS notes,
    'main' AS source
FROM enquiries
{where}
ORDER BY Date_Created DESC
"""

INSTRUCTIONS_ENQUIRIES_QUERY = """
SELECT TOP (:limit)
    id,
    datetime,
    stage,
    claim,
    poc,
    aow,
    tow,
    moc,
    first,
    last,
    email,
    phone,
    acid,
    notes,
    'instructions' AS source
FROM dbo.enquiries
{where}
ORDER BY datetime DESC
"""

DUPLICATE_IDS_QUERY = """
WITH DuplicatedIDs AS (
    SELECT TOP (:limit) ID, COUNT(*) AS DuplicateCount
    FROM enquiries
    GROUP BY ID
    HAVING COUNT(*) > 1
    ORDER BY COUNT(*) DESC
)
SELECT
    e.ID,
    e.Date_Created AS datetime,
    e.Touchpoint_Date,
    e.First_Name,
    e.Last_Name,
    e.Email,
    e.Phone_Number,
    e.Point_of_Contact,
    e.Area_of_Work,
    d.DuplicateCount
FROM enquiries e
INNER JOIN DuplicatedIDs d ON e.ID = d.ID
ORDER BY d.DuplicateCount DESC, e.ID, e.Date_Created
"""


# =========================
# Repository
# =========================


class UnifiedEnquiries(BaseModel):
    """Rows fetched from both sources plus per-source failures."""

    main: list[EnquiryRecord] = Field(default_factory=list)
    instructions: list[EnquiryRecord] = Field(default_factory=list)
    warnings: list[dict[str, str]] = Field(default_factory=list)


class EnquiryRepository:
    """Reads enquiries from the main and instructions databases."""

    def __init__(
        self,
        main_engine: AsyncEngine | None = None,
        instructions_engine: AsyncEngine | None = None,
    ):
        self._engines = {MAIN: main_engine, INSTRUCTIONS: instructions_engine}

    def _engine(self, database: str) -> AsyncEngine:
        return self._engines.get(database) or get_engine(database)

    async def _fetch(
        self, database: str, query: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        async with self._engine(database).connect() as conn:
            result = await conn.execute(text(query), params)
            return [dict(row) for row in result.mappings().all()]

    async def fetch_main(self, filters: EnquiryFilters) -> list[EnquiryRecord]:
        """Fetch enquiries from the legacy table, newest first."""
        where, params = build_where_clause(filters, "Date_Created", "Point_of_Contact")
        rows = await self._fetch(MAIN, MAIN_ENQUIRIES_QUERY.format(where=where), params)
        return [EnquiryRecord.from_row(row) for row in rows]

    async def fetch_instructions(self, filters: EnquiryFilters) -> list[EnquiryRecord]:
        """Fetch enquiries from the instructions table, newest first."""
        where, params = build_where_clause(filters, "datetime", "poc")
        rows = await self._fetch(
            INSTRUCTIONS, INSTRUCTIONS_ENQUIRIES_QUERY.format(where=where), params
        )
        return [EnquiryRecord.from_row(row) for row in rows]

    async def fetch_duplicate_ids(self, limit: int = 20) -> dict[str, list[EnquiryRecord]]:
        """Legacy IDs recorded on more than one row, most duplicated first."""
        rows = await self._fetch(MAIN, DUPLICATE_IDS_QUERY, {"limit": limit})
        duplicates: dict[str, list[EnquiryRecord]] = {}
        for row in rows:
            record = EnquiryRecord.from_row(row)
            duplicates.setdefault(record.id or "", []).append(record)
        return duplicates

    async def fetch_unified(self, filters: EnquiryFilters) -> UnifiedEnquiries:
        """Fetch from both databases, tolerating a failure in either.

        Raises:
            DatabaseNotConfiguredError: If either database URL is missing
        """
        for database in (MAIN, INSTRUCTIONS):
            if self._engines.get(database) is None:
                get_engine(database)

        unified = UnifiedEnquiries()
        try:
            unified.main = await self.fetch_main(filters)
        except Exception as e:
            log_source_warning(MAIN, str(e))
            unified.warnings.append({"source": MAIN, "message": str(e)})

        try:
            unified.instructions = await self.fetch_instructions(filters)
        except Exception as e:
            log_source_warning(INSTRUCTIONS, str(e))
            unified.warnings.append({"source": INSTRUCTIONS, "message": str(e)})

        logger.info(
            f"Fetched {len(unified.main)} main and {len(unified.instructions)} instructions enquiries",
            extra={"warnings": len(unified.warnings)},
        )
        return unified
