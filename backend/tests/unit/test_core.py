"""
Basic Tests for Core Functionality
Tests health endpoint, configuration loading and provider validation
"""
import pytest
from httpx import AsyncClient, ASGITransport

from app.core.config import ConfigManager
from app.core.validation import ProviderValidator, validate_providers_on_startup
from app.domain.exceptions import (
    CampaignConfigurationError,
    InvalidEventError,
    MeetingProviderError,
    UpstreamHTTPError,
)


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    @pytest.mark.asyncio
    async def test_health_endpoint_returns_healthy(self):
        from app.main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data


class TestConfigManager:
    """YAML loading, merging and env substitution"""

    def write(self, path, text):
        path.write_text(text)
        return path

    def test_defaults_loaded(self, config):
        assert config.get("providers.bolna.base_url") == "https://api.bolna.ai"
        assert config.get("campaigns.stale_call_grace_minutes") == 10
        assert config.get("missing.key", "fallback") == "fallback"

    def test_environment_override_merges(self, tmp_path):
        self.write(tmp_path / "default.yaml", "providers:\n  zoom:\n    timeout_ms: 10000\n    duration_minutes: 90\n")
        self.write(tmp_path / "staging.yaml", "providers:\n  zoom:\n    timeout_ms: 2000\n")

        config = ConfigManager(env="staging", config_dir=tmp_path)

        assert config.get("providers.zoom.timeout_ms") == 2000
        assert config.get("providers.zoom.duration_minutes") == 90

    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SUPPORT_PHONE_NUMBER", "+911234567890")
        monkeypatch.delenv("BOOKING_MEDIA_URL", raising=False)
        monkeypatch.delenv("UNSET_WITHOUT_DEFAULT", raising=False)
        self.write(tmp_path / "default.yaml", (
            "support: \"${SUPPORT_PHONE_NUMBER:-}\"\n"
            "media: \"${BOOKING_MEDIA_URL:-}\"\n"
            "template: \"${BOOKING_TEMPLATE_X:-booking_video}\"\n"
            "raw: \"${UNSET_WITHOUT_DEFAULT}\"\n"
        ))

        config = ConfigManager(config_dir=tmp_path)

        assert config.get("support") == "+911234567890"
        assert config.get("media") == ""
        assert config.get("template") == "booking_video"
        assert config.get("raw") == "${UNSET_WITHOUT_DEFAULT}"

    def test_provider_config(self, config):
        assert config.get_provider_config("aisensy")["max_retries"] == 3
        with pytest.raises(ValueError):
            config.get_provider_config("unknown")


class TestProviderValidation:
    """Startup validation of process-wide settings"""

    def test_missing_database_settings_fail(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)

        with pytest.raises(RuntimeError) as exc_info:
            validate_providers_on_startup()
        assert "SUPABASE_URL" in str(exc_info.value)

    def test_optional_messaging_is_warning_only(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "key")
        monkeypatch.delenv("AISENSY_API_KEY", raising=False)
        monkeypatch.delenv("AISENSY_SOURCE", raising=False)

        all_valid, results = ProviderValidator(strict=False).validate_all()

        assert all_valid is True
        assert any("WARNING" in r.message for r in results)

    def test_strict_mode_turns_warnings_into_errors(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "key")
        monkeypatch.delenv("AISENSY_API_KEY", raising=False)

        all_valid, _ = ProviderValidator(strict=True).validate_all()

        assert all_valid is False


class TestExceptions:

    def test_http_status_mapping(self):
        assert InvalidEventError("bad").http_status == 400
        assert CampaignConfigurationError().http_status == 400
        assert MeetingProviderError("x").http_status == 502

    def test_configuration_default_message(self):
        assert "Bolna integration not configured" in CampaignConfigurationError().message

    def test_upstream_error_carries_response(self):
        error = UpstreamHTTPError(503, "https://api.example/x", "busy")
        assert error.message == "HTTP 503 from https://api.example/x"
        assert error.details == "busy"
