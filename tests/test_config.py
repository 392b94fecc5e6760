"""
Tests for settings loaded from the environment
"""
from findr.core.config import ResolvePolicy, load_settings
from findr.utils.report_filter import SearchFields


class TestLoadSettings:

    def test_environment_overrides_defaults(self, monkeypatch):
        monkeypatch.setenv("RESOLVE_POLICY", "anyone")
        monkeypatch.setenv("SEARCH_FIELDS", "title_description_tags")
        monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "2")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")

        settings = load_settings()

        assert settings.resolve_policy == ResolvePolicy.ANYONE
        assert settings.search_fields == SearchFields.TITLE_DESCRIPTION_TAGS
        assert settings.max_upload_bytes == 2 * 1024 * 1024
        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    def test_unset_variables_keep_defaults(self, monkeypatch):
        for name in ("RESOLVE_POLICY", "SEARCH_FIELDS", "CORS_ORIGINS", "MAX_UPLOAD_SIZE_MB"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.resolve_policy == ResolvePolicy.OWNER
        assert settings.search_fields == SearchFields.TITLE_ONLY
        assert settings.cors_origins == ["http://localhost:3000"]
