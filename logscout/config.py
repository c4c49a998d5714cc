"""Configuration loading from a YAML file, env vars and CLI overrides."""

import logging
import os
from dataclasses import dataclass, field, replace

import jsonschema
import yaml

from logscout.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
SOURCE_KINDS = ("file", "command")

_POSITIVE_NUMBER = {"type": "number", "exclusiveMinimum": 0}

CONFIG_SCHEMA = {
    "type": "object",
    "required": ["sources"],
    "properties": {
        "follow": {"type": "boolean"},
        "include": {"type": "array", "items": {"type": "string"}},
        "exclude": {"type": "array", "items": {"type": "string"}},
        "poll_interval": _POSITIVE_NUMBER,
        "queue_capacity": {"type": "integer", "minimum": 1},
        "shutdown_timeout": _POSITIVE_NUMBER,
        "kill_timeout": _POSITIVE_NUMBER,
        "sources": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "pattern": r"\S"},
                    "type": {"enum": list(SOURCE_KINDS)},
                    "kind": {"enum": list(SOURCE_KINDS)},
                    "path": {"type": "string"},
                    "command": {"type": "string"},
                    "args": {"type": "array", "items": {"type": "string"}},
                },
                "anyOf": [{"required": ["type"]}, {"required": ["kind"]}],
            },
        },
    },
}


@dataclass(frozen=True)
class SourceConfig:
    name: str
    kind: str                     # "file" or "command"
    path: str | None = None       # file sources
    command: str | None = None    # command sources
    args: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, d: dict) -> "SourceConfig":
        return cls(
            name=d["name"].strip(),
            kind=d.get("type", d.get("kind")),
            path=d.get("path"),
            command=d.get("command"),
            args=tuple(d.get("args", [])),
        )


@dataclass(frozen=True)
class Config:
    sources: tuple[SourceConfig, ...] = ()
    follow: bool = False
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    poll_interval: float = 0.25
    queue_capacity: int = 64
    shutdown_timeout: float = 5.0
    kill_timeout: float = 2.0


def validate_config_data(data) -> None:
    """Check *data* against CONFIG_SCHEMA, reporting every violation at once."""
    validator = jsonschema.Draft202012Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    if not errors:
        return
    messages = []
    for error in errors:
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        messages.append(f"{where}: {error.message}")
    raise ConfigError("invalid configuration: " + "; ".join(messages))


def dedup_sources(sources: list[SourceConfig]) -> list[SourceConfig]:
    """Drop sources whose name was already used, keeping the first occurrence."""
    seen = set()
    unique = []
    for src in sources:
        if src.name in seen:
            logger.warning("Duplicate source name `%s` ignored", src.name)
            continue
        seen.add(src.name)
        unique.append(src)
    return unique


def config_from_dict(data) -> Config:
    """Validate parsed YAML data and build a Config."""
    validate_config_data(data)
    sources = dedup_sources([SourceConfig.from_dict(s) for s in data["sources"]])
    return Config(
        sources=tuple(sources),
        follow=data.get("follow", Config.follow),
        include=tuple(data.get("include", ())),
        exclude=tuple(data.get("exclude", ())),
        poll_interval=float(data.get("poll_interval", Config.poll_interval)),
        queue_capacity=int(data.get("queue_capacity", Config.queue_capacity)),
        shutdown_timeout=float(data.get("shutdown_timeout", Config.shutdown_timeout)),
        kill_timeout=float(data.get("kill_timeout", Config.kill_timeout)),
    )


def load_yaml_config(path: str) -> dict:
    """Read and parse the YAML config file at *path*."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file `{path}`: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse YAML in `{path}`: {e}") from e
    if data is None:
        raise ConfigError(f"config file `{path}` is empty")
    return data


def _env_overrides(config: Config) -> Config:
    """Apply LOGSCOUT_* environment variables on top of file values."""
    overrides: dict = {}
    try:
        if "LOGSCOUT_POLL_INTERVAL" in os.environ:
            overrides["poll_interval"] = float(os.environ["LOGSCOUT_POLL_INTERVAL"])
        if "LOGSCOUT_QUEUE_CAPACITY" in os.environ:
            overrides["queue_capacity"] = int(os.environ["LOGSCOUT_QUEUE_CAPACITY"])
        if "LOGSCOUT_SHUTDOWN_TIMEOUT" in os.environ:
            overrides["shutdown_timeout"] = float(os.environ["LOGSCOUT_SHUTDOWN_TIMEOUT"])
        if "LOGSCOUT_KILL_TIMEOUT" in os.environ:
            overrides["kill_timeout"] = float(os.environ["LOGSCOUT_KILL_TIMEOUT"])
    except ValueError as e:
        raise ConfigError(f"invalid environment override: {e}") from e
    for key, value in overrides.items():
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got {value}")
    return replace(config, **overrides) if overrides else config


def resolve_config_path(cli_path: str | None) -> str:
    return cli_path or os.environ.get("LOGSCOUT_CONFIG", DEFAULT_CONFIG_PATH)


def load_config(path: str, follow: bool | None = None) -> Config:
    """Build Config from defaults <- YAML file <- env vars <- CLI flags."""
    config = config_from_dict(load_yaml_config(path))
    logger.info("Loaded config from %s (%d source(s))", path, len(config.sources))
    config = _env_overrides(config)
    if follow is not None:
        config = replace(config, follow=follow)
    return config
