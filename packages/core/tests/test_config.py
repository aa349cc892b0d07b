"""Tests for configuration loading."""

import pytest

from prwarden_core.config import ConfigError, load_config, load_guidelines


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["model"] == "anthropic"
    assert config["batch_limit"] == 60
    assert config["guidelines"] is None
    assert config["exclude"] == ["*.md", "*.txt"]
    assert config["review_draft_prs"] is False
    assert config["comment_mode"] == "all"
    assert config["max_critical_issues"] == 0
    assert config["max_warning_issues"] == -1
    assert config["quality_tools"] == ["auto"]


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("model: openai\nbatch_limit: 30\n")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "openai"
    assert config["batch_limit"] == 30


def test_exclude_patterns_loaded(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("exclude:\n  - migrations/\n  - '*.lock'\n")
    config = load_config(config_path=str(cfg))
    assert config["exclude"] == ["migrations/", "*.lock"]


def test_nested_mappings_loaded(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("ignore_rules:\n  pylint: [C0114, C0115]\nquality_config_paths:\n  eslint: .eslintrc.json\n")
    config = load_config(config_path=str(cfg))
    assert config["ignore_rules"] == {"pylint": ["C0114", "C0115"]}
    assert config["quality_config_paths"] == {"eslint": ".eslintrc.json"}


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("model: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "anthropic"})
    assert config["model"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("model: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": None})
    assert config["model"] == "openai"


def test_action_inputs_are_coerced(tmp_path, monkeypatch):
    monkeypatch.setenv("INPUT_MAX_WARNING_ISSUES", "5")
    monkeypatch.setenv("INPUT_FAIL_ON_QUALITY_ISSUES", "true")
    monkeypatch.setenv("INPUT_QUALITY_TOOLS", "eslint, pylint")
    monkeypatch.setenv("INPUT_IGNORE_RULES", '{"eslint": ["no-console"]}')
    monkeypatch.setenv("INPUT_MODEL_NAME", "")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["max_warning_issues"] == 5
    assert config["fail_on_quality_issues"] is True
    assert config["quality_tools"] == ["eslint", "pylint"]
    assert config["ignore_rules"] == {"eslint": ["no-console"]}
    assert config["model_name"] is None


def test_action_inputs_override_config_file(tmp_path, monkeypatch):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("comment_mode: new\n")
    monkeypatch.setenv("INPUT_COMMENT_MODE", "unresolved")
    assert load_config(config_path=str(cfg))["comment_mode"] == "unresolved"


def test_bad_integer_input_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("INPUT_MAX_CRITICAL_ISSUES", "none")
    with pytest.raises(ConfigError):
        load_config(config_path=str(tmp_path / "nonexistent.yml"))


def test_bad_json_input_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("INPUT_QUALITY_CONFIG_PATHS", "eslint=.eslintrc")
    with pytest.raises(ConfigError):
        load_config(config_path=str(tmp_path / "nonexistent.yml"))


def test_invalid_yaml_raises(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("model: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(config_path=str(cfg))


def test_non_mapping_yaml_raises(tmp_path):
    cfg = tmp_path / ".warden.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(config_path=str(cfg))


def test_custom_guidelines_path(tmp_path):
    guidelines_file = tmp_path / "my-guidelines.md"
    guidelines_file.write_text("# Custom Guidelines\n- Rule 1")
    cfg = tmp_path / ".warden.yml"
    cfg.write_text(f"guidelines: {guidelines_file}\n")
    config = load_config(config_path=str(cfg))
    assert "Custom Guidelines" in load_guidelines(config)


def test_no_guidelines_is_empty(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert load_guidelines(config) == ""


def test_missing_custom_guidelines_raises(tmp_path):
    config = {"guidelines": str(tmp_path / "does-not-exist.md")}
    with pytest.raises(FileNotFoundError):
        load_guidelines(config)


def test_env_vars_loaded(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
    monkeypatch.setenv("INPUT_TOGETHER_API_KEY", "tog-key")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "gh-token"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["openai_api_key"] == "oai-key"
    assert config["together_api_key"] == "tog-key"


def test_exclude_list_is_not_shared_reference(tmp_path):
    """Mutating one config's exclude list must not affect another."""
    config_a = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_b = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_a["exclude"].append("migrations/")
    assert config_b["exclude"] == ["*.md", "*.txt"]
