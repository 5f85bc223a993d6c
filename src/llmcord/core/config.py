from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError
from .logging_utils import LogConfig

logger = logging.getLogger("llmcord.core.config")

CONFIG_FILENAME = "llmcord.yml"
DEFAULT_OPENAI_API_KEY_ENV = "OPENAI_API_KEY"

DEFAULT_CONFIG: Dict[str, Any] = {
    "authentication": {
        "openai_api_server": None,
        "openai_api_key_env": DEFAULT_OPENAI_API_KEY_ENV,
        "discord_token_env": "LLMCORD_DISCORD_TOKEN",
        "application_id_env": "LLMCORD_DISCORD_APP_ID",
    },
    "commands": {
        "ask": {
            "enabled": False,
            "description": "Responds to the provided instruction.",
            "system_prompt": "You are a helpful assistant.",
        },
    },
    "discord": {
        "enabled": True,
        "message_update_interval_ms": 1000,
        "replace_newlines": True,
        "max_chunk_length": 1500,
        "command_registration": {"enabled": True, "scope": "global"},
    },
    "scripting": {"enabled": True},
    "logging": {
        "level": "INFO",
        "path": "logs/llmcord.log",
        "max_bytes": 10 * 1024 * 1024,
        "backup_count": 3,
    },
}


@dataclass(frozen=True)
class PromptCommand:
    name: str
    enabled: bool
    description: str
    system_prompt: str


@dataclass(frozen=True)
class OpenAIConfig:
    api_server: Optional[str]
    api_key_env: str
    api_key: Optional[str]


@dataclass(frozen=True)
class AppConfig:
    root: Path
    path: Path
    raw: Dict[str, Any]
    openai: OpenAIConfig
    commands: Dict[str, PromptCommand]
    scripting_enabled: bool
    log: LogConfig

    @property
    def enabled_commands(self) -> Dict[str, PromptCommand]:
        return {name: cmd for name, cmd in self.commands.items() if cmd.enabled}

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}


def _merge_defaults(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def write_default_config(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    rendered = yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False).rstrip() + "\n"
    path.write_text(rendered, encoding="utf-8")


def load_dotenv_for_root(root: Path) -> None:
    """Load ``.env`` from the config directory without clobbering exported vars."""
    candidate = root.resolve() / ".env"
    try:
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=False)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def _parse_commands(raw: Any) -> Dict[str, PromptCommand]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("commands must be a mapping of name -> command")
    commands: Dict[str, PromptCommand] = {}
    for name, value in raw.items():
        if not isinstance(value, dict):
            raise ConfigError(f"commands.{name} must be a mapping")
        normalized = str(name).strip().lower()
        if not normalized:
            raise ConfigError("command names must be non-empty")
        description = value.get("description", "")
        system_prompt = value.get("system_prompt", "")
        if not isinstance(description, str) or not isinstance(system_prompt, str):
            raise ConfigError(
                f"commands.{name}.description and system_prompt must be strings"
            )
        commands[normalized] = PromptCommand(
            name=normalized,
            enabled=bool(value.get("enabled", False)),
            description=description.strip() or normalized,
            system_prompt=system_prompt,
        )
    return commands


def _parse_positive_int(value: Any, *, key: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise ConfigError(f"{key} must be > 0")
    return parsed


def _parse_log_config(raw: Any, *, root: Path) -> LogConfig:
    cfg = raw if isinstance(raw, dict) else {}
    level = str(cfg.get("level", "INFO")).strip().upper() or "INFO"
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"logging.level is not a known level: {level}")
    path_value = cfg.get("path")
    path: Optional[Path] = None
    if path_value:
        if not isinstance(path_value, str):
            raise ConfigError("logging.path must be a string path")
        path = (root / path_value).resolve()
    return LogConfig(
        level=level,
        path=path,
        max_bytes=_parse_positive_int(
            cfg.get("max_bytes", LogConfig.max_bytes), key="logging.max_bytes"
        ),
        backup_count=_parse_positive_int(
            cfg.get("backup_count", LogConfig.backup_count),
            key="logging.backup_count",
        ),
    )


def _parse_openai(raw: Any) -> OpenAIConfig:
    cfg = raw if isinstance(raw, dict) else {}
    server = cfg.get("openai_api_server")
    if server is not None and not isinstance(server, str):
        raise ConfigError("authentication.openai_api_server must be a string")
    key_env = str(cfg.get("openai_api_key_env", DEFAULT_OPENAI_API_KEY_ENV)).strip()
    if not key_env:
        raise ConfigError("authentication.openai_api_key_env must be non-empty")
    return OpenAIConfig(
        api_server=server.strip() if server else None,
        api_key_env=key_env,
        api_key=os.environ.get(key_env),
    )


def parse_app_config(raw: Mapping[str, Any], *, path: Path) -> AppConfig:
    root = path.parent.resolve()
    merged = _merge_defaults(DEFAULT_CONFIG, raw)
    scripting = merged.get("scripting")
    scripting_cfg = scripting if isinstance(scripting, dict) else {}
    return AppConfig(
        root=root,
        path=path,
        raw=merged,
        openai=_parse_openai(merged.get("authentication")),
        commands=_parse_commands(merged.get("commands")),
        scripting_enabled=bool(scripting_cfg.get("enabled", True)),
        log=_parse_log_config(merged.get("logging"), root=root),
    )


def load_app_config(path: Optional[Path] = None) -> AppConfig:
    config_path = (path or Path.cwd() / CONFIG_FILENAME).resolve()
    if config_path.is_dir():
        config_path = config_path / CONFIG_FILENAME
    load_dotenv_for_root(config_path.parent)
    if not config_path.exists():
        write_default_config(config_path)
        logger.info("Wrote default config to %s", config_path)
    return parse_app_config(_load_yaml_dict(config_path), path=config_path)
