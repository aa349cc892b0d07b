import json
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "model_name": None,  # None = provider default
    "max_chars_per_file": 20000,
    "batch_limit": 60,
    "guidelines": None,  # optional path to extra review guidelines
    "exclude": ["*.md", "*.txt"],  # fnmatch patterns or directory names to skip
    "review_draft_prs": False,
    "incremental": False,
    "enable_quality_metrics": True,
    "quality_tools": ["auto"],
    "quality_config_paths": {},  # tool name -> config file path
    "ignore_rules": {},  # tool name -> list of rule ids
    "ignore_files": [],  # extra patterns excluded from static analysis only
    "fail_on_quality_issues": False,
    "max_critical_issues": 0,
    "max_warning_issues": -1,  # -1 = unbounded
    "max_suggestion_issues": -1,
    "comment_mode": "all",  # all | new | unresolved
}

# Config keys settable as GitHub Action inputs. The runner exposes an input
# named ``foo`` as the environment variable ``INPUT_FOO``.
ACTION_INPUTS = tuple(DEFAULT_CONFIG)

_CREDENTIALS = {
    "github_token": "GITHUB_TOKEN",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "openai_api_key": "OPENAI_API_KEY",
    "together_api_key": "TOGETHER_API_KEY",
}


class ConfigError(ValueError):
    """The configuration cannot be used; the run must not continue."""


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _coerce(key: str, value):
    """Coerce a string value (action input) to the type of its default."""
    if not isinstance(value, str):
        return value
    default = DEFAULT_CONFIG.get(key)
    if isinstance(default, bool):
        return _parse_bool(value)
    if isinstance(default, int):
        try:
            return int(value.strip())
        except ValueError as e:
            raise ConfigError(f"{key} must be an integer, got: {value!r}") from e
    if isinstance(default, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(default, dict):
        try:
            parsed = json.loads(value) if value.strip() else {}
        except json.JSONDecodeError as e:
            raise ConfigError(f"{key} must be a JSON object, got: {value!r}") from e
        if not isinstance(parsed, dict):
            raise ConfigError(f"{key} must be a JSON object, got: {value!r}")
        return parsed
    return value


def _action_inputs() -> dict:
    inputs = {}
    for key in ACTION_INPUTS:
        value = os.environ.get(f"INPUT_{key.upper()}")
        if value is not None and value != "":
            inputs[key] = _coerce(key, value)
    return inputs


def load_config(config_path: str = ".prwarden.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prwarden.yml in the current directory
      3. GitHub Action inputs (INPUT_* environment variables)
      4. CLI argument overrides
    """
    config = {
        key: (list(value) if isinstance(value, list) else dict(value) if isinstance(value, dict) else value)
        for key, value in DEFAULT_CONFIG.items()
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Could not parse {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level.")
        config.update({key: _coerce(key, value) for key, value in file_config.items()})

    config.update(_action_inputs())

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = _coerce(key, value)

    # Action inputs win over the ambient environment for credentials too.
    for key, env_name in _CREDENTIALS.items():
        config[key] = os.environ.get(f"INPUT_{env_name}") or os.environ.get(env_name)

    return config


def load_guidelines(config: dict) -> str:
    """
    Load extra review guidelines.

    If ``guidelines`` is set in config, loads from that path (relative to cwd).
    Otherwise there are no extra guidelines and an empty string is returned.
    """
    custom_path = config.get("guidelines")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Guidelines file not found: {custom_path}")
        return p.read_text()
    return ""
