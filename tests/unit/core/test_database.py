"""
Unit tests for database URL handling.
"""

import pytest

from src.core.database import to_async_url, to_sync_url

URL_VARIANTS = [
    "postgresql://crm:pw@db:5432/crm",
    "postgresql+psycopg2://crm:pw@db:5432/crm",
    "postgresql+asyncpg://crm:pw@db:5432/crm",
    "postgres://crm:pw@db:5432/crm",
]


class TestDriverUrls:
    """Test each engine gets an explicit driver."""

    @pytest.mark.parametrize("url", URL_VARIANTS)
    def test_async_engine_uses_asyncpg(self, url):
        assert to_async_url(url) == "postgresql+asyncpg://crm:pw@db:5432/crm"

    @pytest.mark.parametrize("url", URL_VARIANTS)
    def test_sync_engine_uses_psycopg2(self, url):
        """Test a bare postgresql:// URL never falls through to the psycopg 3 default."""
        assert to_sync_url(url) == "postgresql+psycopg2://crm:pw@db:5432/crm"

    def test_other_schemes_untouched(self):
        assert to_sync_url("sqlite:///crm.db") == "sqlite:///crm.db"
