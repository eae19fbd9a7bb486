"""Shared pytest fixtures for Helix Hub tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fixtures import *  # noqa: F401,F403
from helix_hub.config import Settings
from helix_hub.db import EnquiryRepository, UnifiedEnquiries
from helix_hub.resolution.resolver import EnquiryResolver


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def resolver(settings: Settings) -> EnquiryResolver:
    """Resolver with default settings."""
    return EnquiryResolver(settings)


@pytest.fixture
def mock_repository() -> MagicMock:
    """Repository whose unified fetch returns nothing by default."""
    repository = MagicMock(spec=EnquiryRepository)
    repository.fetch_unified = AsyncMock(return_value=UnifiedEnquiries())
    repository.fetch_duplicate_ids = AsyncMock(return_value={})
    return repository
