"""setup.py - First-run project setup for skillgate.

Writes the settings file and a starter rule document, then registers both
adapters in the project's .claude/settings.json. Existing files and
existing registrations are left alone.
"""

import json
from pathlib import Path

from .config import ensure_config, get_settings
from .errors import ParseFailure
from .path_utils import atomic_write
from .rules import dump_rules, parse_rules

PROMPT_COMMAND = "skillgate-prompt"
FILE_GUARD_COMMAND = "skillgate-file-guard"
FILE_GUARD_MATCHER = "Edit|MultiEdit|Write"

STARTER_RULES = {
    "version": "1.0",
    "skills": {
        "backend-dev-guidelines": {
            "type": "domain",
            "enforcement": "suggest",
            "priority": "high",
            "description": "Service and route conventions for the backend",
            "promptTriggers": {
                "keywords": ["backend", "route", "controller", "service"],
                "intentPatterns": [r"(create|add|implement).*?(route|endpoint|controller)"],
            },
            "fileTriggers": {
                "pathPatterns": ["backend/src/**/*.ts"],
                "pathExclusions": ["**/*.test.ts"],
            },
        },
        "database-verification": {
            "type": "guardrail",
            "enforcement": "block",
            "priority": "critical",
            "description": "Check column and table names against the schema",
            "promptTriggers": {
                "keywords": ["migration", "schema"],
            },
            "fileTriggers": {
                "pathPatterns": ["**/*.sql", "**/migrations/**"],
                "contentPatterns": [r"\b(ALTER|CREATE|DROP)\s+TABLE\b"],
            },
            "blockMessage": (
                "Database change in {file_path}. Verify table and column names "
                "against the current schema, then retry the edit."
            ),
            "skipConditions": {
                "sessionSkillUsed": True,
                "fileMarkers": ["@skip-validation"],
                "envOverride": "SKIP_DB_VERIFICATION",
            },
        },
    },
}


def _write_starter_rules(rules_path: Path) -> bool:
    if rules_path.exists():
        return False
    dump_rules(parse_rules(STARTER_RULES), rules_path)
    return True


def _has_command(entries: list, command: str) -> bool:
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        for hook in entry.get("hooks", []):
            if isinstance(hook, dict) and hook.get("command") == command:
                return True
    return False


def _load_claude_settings(settings_path: Path) -> dict:
    """Read .claude/settings.json. Raises ParseFailure rather than clobber it."""
    if not settings_path.exists():
        return {}
    try:
        settings = json.loads(settings_path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        raise ParseFailure(f"cannot read {settings_path}: {e}") from e
    if not isinstance(settings, dict):
        raise ParseFailure(f"{settings_path} must contain a JSON object")

    hooks = settings.get("hooks", {})
    if not isinstance(hooks, dict):
        raise ParseFailure(f"'hooks' in {settings_path} must be an object")
    for event in ("UserPromptSubmit", "PreToolUse"):
        if not isinstance(hooks.get(event, []), list):
            raise ParseFailure(f"'hooks.{event}' in {settings_path} must be a list")
    return settings


def _register_hooks(settings_path: Path) -> list[str]:
    """Add both adapters to .claude/settings.json. Returns events registered.

    Other keys in the file are preserved. A file that is not valid JSON,
    or whose hooks section has the wrong shape, is left untouched.
    """
    settings = _load_claude_settings(settings_path)
    hooks = settings.setdefault("hooks", {})
    registered = []

    prompt_entries = hooks.setdefault("UserPromptSubmit", [])
    if not _has_command(prompt_entries, PROMPT_COMMAND):
        prompt_entries.append({"hooks": [{"type": "command", "command": PROMPT_COMMAND}]})
        registered.append("UserPromptSubmit")

    tool_entries = hooks.setdefault("PreToolUse", [])
    if not _has_command(tool_entries, FILE_GUARD_COMMAND):
        tool_entries.append({
            "matcher": FILE_GUARD_MATCHER,
            "hooks": [{"type": "command", "command": FILE_GUARD_COMMAND}],
        })
        registered.append("PreToolUse")

    if registered:
        with atomic_write(settings_path, lock=False) as f:
            f.write(json.dumps(settings, indent=2) + "\n")
    return registered


def run_setup(project_dir: Path) -> dict:
    """Set up skillgate in project_dir. Returns what was done.

    Raises ParseFailure, before writing anything, if an existing
    .claude/settings.json cannot be merged into.
    """
    project_dir = Path(project_dir).resolve()
    results = {"project_dir": str(project_dir), "steps": []}
    claude_settings = project_dir / ".claude" / "settings.json"
    _load_claude_settings(claude_settings)

    config_path = ensure_config(project_dir)
    results["steps"].append("config_created" if config_path else "config_exists")

    settings = get_settings(project_dir=project_dir, environ={})
    if _write_starter_rules(settings.rules_path):
        results["steps"].append("rules_created")
    else:
        results["steps"].append("rules_exist")
    results["rules_path"] = str(settings.rules_path)

    registered = _register_hooks(claude_settings)
    results["hooks_registered"] = registered
    results["steps"].append("hooks_registered" if registered else "hooks_exist")

    return results
