"""Tests for centralized configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestPostgresSettings:
    def test_postgres_default_values(self):
        from datepoll.config import PostgresSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = PostgresSettings()
            assert settings.host == "postgres"
            assert settings.port == 5432
            assert settings.database == "datepoll"
            assert settings.pool_max_size == 10

    def test_postgres_dsn_generation(self):
        from datepoll.config import PostgresSettings

        env = {
            "POSTGRES_HOST": "dbhost",
            "POSTGRES_PORT": "5433",
            "POSTGRES_USER": "myuser",
            "POSTGRES_PASSWORD": "mypass",
            "POSTGRES_DB": "mydb",
            "POSTGRES_SSLMODE": "require",
        }
        with patch.dict(os.environ, env, clear=True):
            dsn = PostgresSettings().get_dsn()
            assert "host=dbhost" in dsn
            assert "port=5433" in dsn
            assert "dbname=mydb" in dsn
            assert "sslmode=require" in dsn
            assert "connect_timeout=10" in dsn


class TestRateLimitSettings:
    def test_defaults(self):
        from datepoll.config import RateLimitSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = RateLimitSettings()
            assert settings.backend == "memory"
            assert settings.verify_code_max == 10
            assert settings.submit_response_max == 30
            assert settings.sweep_interval_sec == 60.0

    def test_backend_from_environment(self):
        from datepoll.config import RateLimitSettings

        with patch.dict(os.environ, {"RATE_LIMIT_BACKEND": "Redis"}, clear=True):
            assert RateLimitSettings().backend == "redis"

    def test_unknown_backend_rejected(self):
        from datepoll.config import RateLimitSettings

        with patch.dict(os.environ, {"RATE_LIMIT_BACKEND": "memcached"}, clear=True):
            with pytest.raises(ValidationError):
                RateLimitSettings()


class TestFlags:
    def test_enable_db_flag(self):
        from datepoll.config import FeatureSettings

        with patch.dict(os.environ, {"ENABLE_DB": "1"}, clear=True):
            assert FeatureSettings().db is True
        with patch.dict(os.environ, {}, clear=True):
            assert FeatureSettings().db is False

    def test_cors_wildcard_disables_credentials(self):
        from datepoll.config import CorsSettings

        with patch.dict(os.environ, {"CORS_ORIGINS": "*"}, clear=True):
            settings = CorsSettings()
            assert settings.origins == ["*"]
            assert settings.allow_credentials is False


class TestShareSettings:
    def test_event_url(self):
        from datepoll.config import ShareSettings

        with patch.dict(os.environ, {"PUBLIC_BASE_URL": "https://plan.example.com/"}, clear=True):
            assert ShareSettings().event_url("abc") == "https://plan.example.com/abc"


def test_settings_singleton_pattern():
    from datepoll.config import clear_settings_cache, get_settings

    clear_settings_cache()
    assert get_settings() is get_settings()
