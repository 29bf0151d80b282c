"""App configuration (LLM connection, fragment timeout, default language).

get_config() returns defaults merged with ``{data_dir}/config.json``, then
with environment overrides (a ``.env`` file is loaded by the app). The
``llm`` block is merged key by key; scalars are overwritten.
"""

import json
import os
from pathlib import Path
from typing import Any

from persona_chat.llm import DEFAULT_MODEL, EchoLLM, HttpLLM, StreamingLLM

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_url": "https://generativelanguage.googleapis.com",
        "provider_format": "gemini",
        "model": DEFAULT_MODEL,
        "api_key": "",
        "timeout": 120,
    },
    "fragment_timeout": None,
    "default_language": "Auto",
}

# env var → llm key
_LLM_ENV = {
    "LLM_PROVIDER_URL": "provider_url",
    "LLM_PROVIDER_FORMAT": "provider_format",
    "LLM_MODEL": "model",
    "LLM_API_KEY": "api_key",
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def _stored_config(data_dir: Path) -> dict[str, Any]:
    config: dict[str, Any] = {
        "llm": dict(_CONFIG_DEFAULTS["llm"]),
        "fragment_timeout": _CONFIG_DEFAULTS["fragment_timeout"],
        "default_language": _CONFIG_DEFAULTS["default_language"],
    }
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        if isinstance(stored.get("llm"), dict):
            config["llm"].update(stored["llm"])
        if "fragment_timeout" in stored:
            config["fragment_timeout"] = stored["fragment_timeout"]
        if "default_language" in stored:
            config["default_language"] = stored["default_language"]
    return config


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env overrides."""
    config = _stored_config(data_dir)
    for var, key in _LLM_ENV.items():
        value = os.getenv(var)
        if value:
            config["llm"][key] = value
    if os.getenv("FRAGMENT_TIMEOUT"):
        config["fragment_timeout"] = float(os.environ["FRAGMENT_TIMEOUT"])
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into the stored config and persist. Returns the effective config."""
    config = _stored_config(data_dir)
    if isinstance(fields.get("llm"), dict):
        config["llm"].update(fields["llm"])
    if "fragment_timeout" in fields:
        config["fragment_timeout"] = fields["fragment_timeout"]
    if "default_language" in fields:
        config["default_language"] = fields["default_language"]
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return get_config(data_dir)


def build_llm(config: dict[str, Any]) -> StreamingLLM:
    """Construct the LLM client described by config["llm"]."""
    llm = config["llm"]
    if llm["provider_format"] == "echo":
        return EchoLLM()
    return HttpLLM(
        provider_url=llm["provider_url"],
        api_key=llm["api_key"],
        provider_format=llm["provider_format"],
        model=llm["model"],
        timeout=float(llm["timeout"]),
    )
