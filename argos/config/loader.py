import json
import tomllib
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .types import ArgosConfig, ConfigError, Settings, UnsupportedConfigFormatError

_INT_SETTINGS = {
    "command_timeout_ms",
    "task_timeout_ms",
    "single_task_timeout_ms",
    "grace_period_ms",
    "max_concurrency",
}
_STR_SETTINGS = {"shell", "sudo_askpass", "log_level"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_config(path: str | Path) -> ArgosConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    return _build_config(raw_file)


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    match fmt:
        case "yaml":
            try:
                raw_file = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path}: invalid YAML") from exc
        case "toml":
            try:
                raw_file = tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"{path}: invalid TOML") from exc
        case "json":
            try:
                raw_file = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"{path}: invalid JSON") from exc
        case _:
            raise AssertionError("Unreachable")

    # An empty YAML document loads as None
    if raw_file is None:
        return {}

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: {fmt.upper()} parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _build_config(raw: Mapping[str, Any]) -> ArgosConfig:
    for key in raw.keys():
        if key not in {"settings", "tasks"}:
            raise ConfigError(f"Can't process top-level field: {key}")

    settings = _build_settings(raw.get("settings", {}))
    tasks = _build_tasks(raw.get("tasks", {}))
    return ArgosConfig(settings=settings, tasks=tasks)


def _build_settings(raw: Any) -> Settings:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"'settings' must be a mapping, got {type(raw)}")

    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}

    for key, value in raw.items():
        if key not in known:
            raise ConfigError(f"settings: Can't process: {key}")

        if key in _INT_SETTINGS:
            # bool is an int subclass, reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"settings: {key} should be an integer")
            if value < 1:
                raise ConfigError(f"settings: {key} must be positive, got {value}")
            values[key] = value
            continue

        if key in _STR_SETTINGS:
            if not isinstance(value, str) or len(value.strip()) < 1:
                raise ConfigError(f"settings: {key} should be a non-empty string")
            values[key] = value.strip()

    if "log_level" in values:
        level = values["log_level"].upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"settings: unknown log level {values['log_level']!r}")
        values["log_level"] = level

    return Settings(**values)


def _build_tasks(raw: Any) -> dict[str, str]:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"'tasks' must be a mapping, got {type(raw)}")

    tasks: dict[str, str] = {}

    for name, fields_ in raw.items():
        if not isinstance(name, str):
            raise ConfigError(f"Task name must be a string, got {type(name)}")

        name_norm = name.strip()

        if len(name_norm) < 1:
            raise ConfigError("A task name can't be empty")

        if name_norm in tasks:
            raise ConfigError(f"Duplicate task name after normalization: {name_norm}")

        tasks[name_norm] = _build_task_command(name_norm, fields_)

    return tasks


def _build_task_command(name: str, fields_: Any) -> str:
    if isinstance(fields_, str):
        command = fields_
    elif isinstance(fields_, Mapping):
        for field in fields_.keys():
            if field != "command":
                raise ConfigError(f"{name}: Can't process: {field}")

        if "command" not in fields_:
            raise ConfigError(f"{name}: missing 'command'")

        command = fields_["command"]
        if not isinstance(command, str):
            raise ConfigError(f"{name}: The command should be a string")
    else:
        raise ConfigError(f"{name} must be a command string or a mapping")

    if len(command.strip()) < 1:
        raise ConfigError(f"{name}: Command missing")

    return command.strip()
