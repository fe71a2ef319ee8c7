"""Unit tests for the configuration manager."""

from pathlib import Path

import pytest

from config import ConfigurationManager, get_config, load_config


class TestConfigurationManager:
    """Tests for ConfigurationManager."""

    def test_singleton(self):
        assert ConfigurationManager() is ConfigurationManager()

    def test_dotted_get(self):
        """Test nested keys and defaults."""
        assert get_config("ocr.language") == "por"
        assert get_config("pipeline.ocr_skip_issuers")[0] == "itau"
        assert get_config("missing.key", "fallback") == "fallback"
        assert get_config("ocr.language.deeper") is None

    def test_set_creates_sections(self):
        """Test set() builds missing intermediate sections."""
        config = ConfigurationManager()
        config.set("custom.nested.value", 42)
        assert config.get("custom.nested.value") == 42

    def test_reload_discards_changes(self):
        config = ConfigurationManager()
        config.set("ocr.language", "eng")
        config.reload()
        assert config.get("ocr.language") == "por"

    def test_paths_resolved_to_project_root(self):
        """Test relative paths become absolute."""
        output_dir = Path(get_config("output.directory"))
        assert output_dir.is_absolute()
        assert output_dir.name == "outputs"

    @pytest.mark.parametrize("env_name,key", [
        ("INVOICE_EXTERNAL_ENDPOINT", "external_service.endpoint"),
        ("INVOICE_EXTERNAL_CLIENT_ID", "external_service.client_id"),
        ("INVOICE_EXTERNAL_ACCESS_TOKEN", "external_service.access_token"),
        ("INVOICE_REMOTE_EXTRACTOR_URL", "remote_extractor.base_url"),
    ])
    def test_environment_overrides(self, monkeypatch, env_name, key):
        """Test credentials can come from the environment."""
        monkeypatch.setenv(env_name, "from-env")
        assert get_config(key) == "from-env"

    def test_blank_environment_ignored(self, monkeypatch):
        monkeypatch.setenv("INVOICE_REMOTE_EXTRACTOR_URL", "")
        assert get_config("remote_extractor.base_url") == "http://localhost:8000"


class TestLoadConfig:
    """Tests for load_config."""

    def test_custom_file(self, tmp_path):
        """Test a custom settings file replaces the active configuration."""
        settings = tmp_path / "custom.yaml"
        settings.write_text("ocr:\n  language: eng\nquality:\n  min_transactions: 1\n", encoding="utf-8")

        config = load_config(str(settings))

        assert config.get("ocr.language") == "eng"
        assert get_config("quality.min_transactions") == 1
        assert get_config("fallback.significant_margin") is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        """Test an empty file yields an empty configuration."""
        settings = tmp_path / "empty.yaml"
        settings.write_text("", encoding="utf-8")
        assert load_config(str(settings)).get_all() == {}
