"""Configuration loading from CLI args, env vars, and an optional YAML file.

Precedence (highest first): CLI flag, environment variable, YAML key, default.
"""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "LOGCLUSTER_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    input_dir: str = "./rawlogs"
    output_dir: str = "./mergedlogs"
    workers: int = 1
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path or no file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _pick(name: str, cli_args, yaml_data: dict, default):
    value = getattr(cli_args, name, None) if cli_args is not None else None
    if value is not None:
        return value
    env_value = os.environ.get(ENV_PREFIX + name.upper())
    if env_value is not None:
        return env_value
    return yaml_data.get(name, default)


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from parsed CLI args, env vars, and parsed YAML data."""
    yaml_data = yaml_data or {}

    workers = int(_pick("workers", cli_args, yaml_data, Config.workers))
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    log_level = str(_pick("log_level", cli_args, yaml_data, Config.log_level)).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {log_level}")

    return Config(
        input_dir=str(_pick("input_dir", cli_args, yaml_data, Config.input_dir)),
        output_dir=str(_pick("output_dir", cli_args, yaml_data, Config.output_dir)),
        workers=workers,
        log_level=log_level,
    )
