"""Tests for settings loading and log redaction."""

from buildrelay.config import DispatchConfig, Settings, TriggerConfig, load_settings
from buildrelay.utils.logging import _filter_sensitive


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.dispatch.api_version == "5.0-preview"
        assert settings.dispatch.signature_algorithm == "sha1"
        assert settings.triggers.parameter_prefix == "_team-build_"
        assert settings.triggers.provider == "TfGit"
        assert settings.jobs == []

    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "server:\n"
            "  port: 9000\n"
            "dispatch:\n"
            "  signature_header: X-Relay-Signature\n"
            "jobs:\n"
            "  - build-web\n"
            f"data_dir: {tmp_path}\n"
        )
        settings = load_settings(path)
        assert settings.server.port == 9000
        assert settings.dispatch.signature_header == "X-Relay-Signature"
        assert settings.dispatch.api_version == DispatchConfig().api_version
        assert settings.jobs == ["build-web"]
        assert settings.get_data_dir() == tmp_path

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BUILDRELAY_TRIGGERS__PROVIDER", "Git")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.triggers.provider == "Git"
        assert TriggerConfig().provider == "TfGit"


class TestRedaction:
    def test_secret_keys_redacted(self):
        event = {"event": "x", "secret": "s3cr3t", "signature": "sha1=abc"}
        out = _filter_sensitive(None, "info", event)
        assert out["secret"] == "***REDACTED***"
        assert out["signature"] == "***REDACTED***"

    def test_secret_in_text_redacted(self):
        event = {"event": "x", "content": "bad request secret=hunter2"}
        out = _filter_sensitive(None, "info", event)
        assert "hunter2" not in out["content"]
