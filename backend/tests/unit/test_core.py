"""
Basic Tests for Core Functionality
Tests health endpoint, configuration loading and startup validation
"""
import pytest
from httpx import AsyncClient, ASGITransport


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    @pytest.mark.asyncio
    async def test_health_endpoint_returns_healthy(self):
        """Test that /health returns healthy status."""
        from app.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["realtime"] is False
        assert data["connected_clients"] >= 0

    @pytest.mark.asyncio
    async def test_root_endpoint_returns_running(self):
        """Test that / returns running status."""
        from app.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert "Lead Dashboard" in data["message"]


class TestSettings:
    """Tests for environment-backed settings."""

    def test_defaults(self, monkeypatch):
        """Defaults apply when nothing is set."""
        from app.core.config import Settings

        monkeypatch.delenv("LEADS_PAGE_SIZE", raising=False)
        settings = Settings(_env_file=None)

        assert settings.api_prefix == "/api/v1"
        assert settings.leads_page_size == 20
        assert settings.realtime_channel == "leads-changes"
        assert settings.realtime_tables == ["leads"]

    def test_environment_overrides(self, monkeypatch):
        """Environment variables override defaults."""
        from app.core.config import Settings

        monkeypatch.setenv("CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("REALTIME_TABLES", '["leads", "hire_helper_leads"]')
        settings = Settings(_env_file=None)

        assert settings.cache_ttl_seconds == 5.0
        assert settings.realtime_tables == ["leads", "hire_helper_leads"]


class TestConfigManager:
    """Tests for YAML configuration loading."""

    def test_environment_file_is_merged_over_default(self, tmp_path):
        """<env>.yaml overrides default.yaml key by key."""
        from app.core.config import ConfigManager

        (tmp_path / "default.yaml").write_text("scoring:\n  email_bonus: 2\n  notes_bonus: 2\n")
        (tmp_path / "staging.yaml").write_text("scoring:\n  email_bonus: 5\n")

        config = ConfigManager(env="staging", config_dir=tmp_path)

        assert config.get("scoring.email_bonus") == 5
        assert config.get("scoring.notes_bonus") == 2
        assert config.get("scoring.missing", "fallback") == "fallback"

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        """${VAR} values are replaced from the environment."""
        from app.core.config import ConfigManager

        monkeypatch.setenv("TOP_SOURCE", "Referral")
        (tmp_path / "default.yaml").write_text("insights:\n  top_source: ${TOP_SOURCE}\n")

        assert ConfigManager(env="test", config_dir=tmp_path).get("insights.top_source") == "Referral"


class TestConfigValidation:
    """Tests for startup configuration validation."""

    def test_missing_required_vars_fail(self, monkeypatch):
        """Missing Supabase URL or anon key is an error."""
        from app.core.validation import ConfigValidator

        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")

        validator = ConfigValidator()
        all_valid, results = validator.validate_all()

        assert all_valid is False
        assert "SUPABASE_URL" in validator.get_error_summary()

    def test_missing_service_key_is_only_a_warning(self, monkeypatch):
        """Admin provisioning is optional unless strict."""
        from app.core.validation import ConfigValidator

        monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

        all_valid, results = ConfigValidator().validate_all()
        assert all_valid is True
        assert any(r.is_warning and r.setting == "SUPABASE_SERVICE_ROLE_KEY" for r in results)

        strict_valid, _ = ConfigValidator(strict=True).validate_all()
        assert strict_valid is False

    def test_validate_on_startup_raises(self, monkeypatch):
        """validate_config_on_startup raises RuntimeError on errors."""
        from app.core.validation import validate_config_on_startup

        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)

        with pytest.raises(RuntimeError, match="Configuration errors"):
            validate_config_on_startup()
