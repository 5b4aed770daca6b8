"""config.py - Settings loading from skillgate.toml."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from .errors import ParseFailure

CONFIG_ENV = "SKILLGATE_CONFIG"
PROJECT_DIR_ENV = "CLAUDE_PROJECT_DIR"
RULES_ENV = "SKILLGATE_RULES"
STATE_DIR_ENV = "SKILLGATE_STATE_DIR"
LOG_LEVEL_ENV = "SKILLGATE_LOG_LEVEL"

DEFAULT_CONFIG_PATH = Path(".claude") / "skillgate.toml"

_DEFAULTS = {
    "rules": {
        "path": ".claude/skills/skill-rules.json",
    },
    "session": {
        "state_dir": ".claude/hooks/state",
        "ttl_hours": 168,
    },
    "logging": {
        "level": "WARNING",
        "file": "",
    },
}

DEFAULT_CONFIG_TOML = (
    "[rules]\n"
    'path = ".claude/skills/skill-rules.json"\n\n'
    "[session]\n"
    'state_dir = ".claude/hooks/state"\n'
    "ttl_hours = 168\n\n"
    "[logging]\n"
    'level = "WARNING"\n'
    'file = ""\n'
)


@dataclass(frozen=True)
class Settings:
    project_dir: Path
    rules_path: Path
    state_dir: Path
    session_ttl_hours: float
    log_level: str
    log_file: Optional[Path]
    config_path: Optional[Path] = None


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base, recursing into nested dicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_project_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    raw = env.get(PROJECT_DIR_ENV)
    return Path(raw) if raw else Path.cwd()


def _resolve(project_dir: Path, raw: str) -> Path:
    path = Path(raw).expanduser()
    return path if path.is_absolute() else project_dir / path


def get_config_path(
    project_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    env = os.environ if environ is None else environ
    raw = env.get(CONFIG_ENV)
    return _resolve(project_dir, raw) if raw else project_dir / DEFAULT_CONFIG_PATH


def get_config(config_path: Path) -> dict:
    """Load config from skillgate.toml, merged with defaults."""
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                user_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ParseFailure(f"malformed settings file {config_path}: {e}") from e
        return _deep_merge(_DEFAULTS, user_config)
    return _deep_merge(_DEFAULTS, {})


def _section(config: dict, name: str, config_path: Path) -> dict:
    section = config.get(name)
    if not isinstance(section, dict):
        raise ParseFailure(f"[{name}] must be a table in {config_path}")
    return section


def _string(section: dict, key: str, where: str, config_path: Path) -> str:
    value = section.get(key, "")
    if not isinstance(value, str):
        raise ParseFailure(f"{where}.{key} must be a string in {config_path}")
    return value


def get_settings(
    project_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings: defaults < skillgate.toml < environment.

    Raises ParseFailure when the settings file is malformed or a key has
    the wrong type.
    """
    env = os.environ if environ is None else environ
    project_dir = Path(project_dir) if project_dir else get_project_dir(env)
    config_path = get_config_path(project_dir, env)
    config = get_config(config_path)

    rules = _section(config, "rules", config_path)
    session = _section(config, "session", config_path)
    logging_cfg = _section(config, "logging", config_path)

    rules_raw = env.get(RULES_ENV) or _string(rules, "path", "rules", config_path)
    state_raw = env.get(STATE_DIR_ENV) or _string(session, "state_dir", "session", config_path)
    level = (env.get(LOG_LEVEL_ENV) or _string(logging_cfg, "level", "logging", config_path)).upper()
    log_file_raw = _string(logging_cfg, "file", "logging", config_path)

    ttl = session.get("ttl_hours")
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise ParseFailure(f"session.ttl_hours must be a number in {config_path}")

    return Settings(
        project_dir=project_dir,
        rules_path=_resolve(project_dir, rules_raw),
        state_dir=_resolve(project_dir, state_raw),
        session_ttl_hours=float(ttl),
        log_level=level,
        log_file=_resolve(project_dir, log_file_raw) if log_file_raw else None,
        config_path=config_path if config_path.exists() else None,
    )


def ensure_config(project_dir: Path) -> Optional[Path]:
    """Create default skillgate.toml if it doesn't exist. Returns it if created."""
    config_path = project_dir / DEFAULT_CONFIG_PATH
    if config_path.exists():
        return None

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TOML)
    return config_path


def configure_logging(settings: Settings) -> None:
    """Route skillgate's loggers to stderr (and optionally a file).

    Hooks talk to their caller through stdout and the exit code, so
    nothing here may write to stdout.
    """
    level = getattr(logging, settings.log_level, logging.WARNING)
    root = logging.getLogger("skillgate")
    root.setLevel(level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter("skillgate %(levelname)s %(name)s: %(message)s")
    stream = logging.StreamHandler()  # stderr
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if settings.log_file:
        try:
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s: %s", settings.log_file, e)
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )
            root.addHandler(file_handler)
