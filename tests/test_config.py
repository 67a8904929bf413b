"""
Tests for config loading: env resolution, default sections, redaction.
"""

import pytest

from andy import config as cfg_mod


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    monkeypatch.setattr(cfg_mod, "_config", None)


def test_env_vars_resolved(tmp_path, monkeypatch):
    monkeypatch.setenv("ANDY_TEST_KEY", "sk-123")
    path = tmp_path / "config.yaml"
    path.write_text(
        "providers:\n"
        "  gpt4:\n"
        "    kind: openai\n"
        "    api_key: \"${ANDY_TEST_KEY}\"\n"
        "    extra: [\"${ANDY_TEST_KEY}\", 3]\n"
    )
    cfg = cfg_mod.load_config(path)
    assert cfg["providers"]["gpt4"]["api_key"] == "sk-123"
    assert cfg["providers"]["gpt4"]["extra"] == ["sk-123", 3]


def test_missing_env_var_becomes_empty(tmp_path, monkeypatch):
    monkeypatch.delenv("ANDY_UNSET_KEY", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("providers:\n  claude:\n    api_key: \"${ANDY_UNSET_KEY}\"\n")
    assert cfg_mod.load_config(path)["providers"]["claude"]["api_key"] == ""


def test_defaults_fill_missing_sections(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("rate_limit:\n  max_requests: 5\n")
    cfg = cfg_mod.load_config(path)
    assert cfg["rate_limit"] == {"max_requests": 5, "per_minute": 1.0, "scope": "global"}
    assert cfg["cache"]["ttl_ms"] == 3_600_000
    assert cfg["resilience"]["retry_attempts"] == 3
    assert cfg["context"]["max_history"] == 50


def test_empty_file_is_all_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    cfg = cfg_mod.load_config(path)
    assert cfg["storage"]["backend"] == "memory"
    assert cfg["providers"] == {}


def test_defaults_not_mutated(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("cache:\n  max_size: 1\n")
    cfg_mod.load_config(path)
    assert cfg_mod.DEFAULTS["cache"]["max_size"] == 1000


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        cfg_mod.load_config(tmp_path / "nope.yaml")


def test_redact_masks_secrets_only():
    cfg = {
        "providers": {"claude": {"api_key": "sk-ant", "model": "claude-3", "url": "https://x"}},
        "db": {"password": "hunter2", "token": ""},
    }
    out = cfg_mod.redact(cfg)
    assert out["providers"]["claude"]["api_key"] == "***redacted***"
    assert out["providers"]["claude"]["model"] == "claude-3"
    assert out["db"]["password"] == "***redacted***"
    assert out["db"]["token"] == ""
    assert cfg["providers"]["claude"]["api_key"] == "sk-ant"


def test_shipped_config_parses():
    cfg = cfg_mod.load_config(reload=True)
    assert set(cfg["providers"]) == {"claude", "gpt4"}
    assert cfg["routing"]["complex_model"] == "claude"
