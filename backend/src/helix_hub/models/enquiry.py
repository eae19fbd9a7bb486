"""Enquiry models for Helix Hub.

Enquiry rows arrive from two databases with different column names
(legacy ``First_Name``/``Email``/``Touchpoint_Date`` and instructions
``first``/``email``/``datetime``). ``EnquiryRecord`` is the single data
contract both are converted into at the boundary.
"""

from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Zero-time sentinel used when no date field parses.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Record field -> accepted source columns, first non-empty wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("ID", "id"),
    "email": ("Email", "email"),
    "phone": ("Phone_Number", "phone"),
    "first_name": ("First_Name", "first"),
    "last_name": ("Last_Name", "last"),
    "area_of_work": ("Area_of_Work", "aow"),
    "created_at": ("Touchpoint_Date",),
    "date_created": ("datetime", "Date_Created"),
    "claim": ("claim",),
    "point_of_contact": ("Point_of_Contact", "poc"),
    "acid": ("acid",),
    "source": ("source",),
}

_ALIASED_COLUMNS = frozenset(
    column for columns in FIELD_ALIASES.values() for column in columns
)


def coerce_text(value: Any) -> str | None:
    """Coerce a loosely-typed column value to an optional string.

    Never raises: blanks become None, integral floats lose their
    trailing ``.0`` and dates are rendered in ISO format.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value)
    return text if text.strip() else None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime string, returning None on failure."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class EnquiryRecord(BaseModel):
    """A single prospective-client enquiry.

    All fields are optional; ``id`` is not guaranteed to be unique
    because the upstream intake system reuses IDs.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    area_of_work: str | None = None
    created_at: str | None = Field(default=None, description="Touchpoint date")
    date_created: str | None = Field(default=None, description="Row creation date")
    claim: str | None = None
    point_of_contact: str | None = None
    acid: str | None = Field(default=None, description="Legacy ID on instructions rows")
    source: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "id",
        "email",
        "phone",
        "first_name",
        "last_name",
        "area_of_work",
        "created_at",
        "date_created",
        "claim",
        "point_of_contact",
        "acid",
        "source",
        mode="before",
    )
    @classmethod
    def _coerce(cls, value: Any) -> str | None:
        return coerce_text(value)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EnquiryRecord":
        """Build a record from a raw database or JSON row.

        Accepts both legacy and instructions column names. Columns
        that do not map to a record field are kept in ``extra``.
        """
        values: dict[str, Any] = {}
        for field_name, columns in FIELD_ALIASES.items():
            for column in columns:
                value = coerce_text(row.get(column))
                if value is not None:
                    values[field_name] = value
                    break

        values["extra"] = {
            str(key): value
            for key, value in row.items()
            if key not in _ALIASED_COLUMNS
        }
        return cls(**values)

    @property
    def full_name(self) -> str:
        """Lowercased ``first last`` with blank parts dropped."""
        parts = [
            (part or "").strip().lower()
            for part in (self.first_name, self.last_name)
        ]
        return " ".join(p for p in parts if p)

    @property
    def display_name(self) -> str:
        """Name as entered, for display."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def timestamp(self) -> datetime:
        """Best available creation time, or the zero-time sentinel."""
        for value in (self.created_at, self.date_created, self.claim):
            parsed = parse_timestamp(value)
            if parsed is not None:
                return parsed
        return EPOCH

    def to_row(self) -> dict[str, Any]:
        """Serialize back to the legacy column layout."""
        row = dict(self.extra)
        row.update(
            {
                "ID": self.id,
                "Email": self.email,
                "Phone_Number": self.phone,
                "First_Name": self.first_name,
                "Last_Name": self.last_name,
                "Area_of_Work": self.area_of_work,
                "Touchpoint_Date": self.created_at,
                "Date_Created": self.date_created,
                "Point_of_Contact": self.point_of_contact,
            }
        )
        if self.acid is not None:
            row["acid"] = self.acid
        if self.source is not None:
            row["source"] = self.source
        return row


class GroupedEnquiry(BaseModel):
    """Enquiries believed to come from the same client."""

    client_key: str
    client_name: str
    client_email: str
    enquiries: list[EnquiryRecord]
    latest_date: str = ""
    total_value: float = 0.0
    areas: list[str] = Field(default_factory=list)

    @property
    def is_repeated(self) -> bool:
        """Check if the client made more than one enquiry."""
        return len(self.enquiries) > 1
