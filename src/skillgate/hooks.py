"""Event adapters for Claude Code hook integration.

Two adapters share the engine and differ only in rendering:

    prompt   (UserPromptSubmit)  suggestions on stdout, always exit 0
    file-op  (PreToolUse)        block messages on stderr, exit 2

Exit-status contract for callers:

    0  proceed (nothing blocked)
    2  blocked: the requested edit/write did not happen
    1  adapter failure (bad rules, bad input). Neither allow nor block.

Entry point: python -m skillgate.hooks prompt|file-op
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, TextIO

from .config import Settings, configure_logging, get_settings
from .engine import Decision, SessionBackend, blocks, evaluate, suggestions
from .enforcement_types import Enforcement, Priority
from .errors import ConfigError, InputError
from .events import (
    file_op_event_from_payload,
    is_file_op_payload,
    parse_payload,
    prompt_event_from_payload,
)
from .rules import RuleSet, load_rules
from .session import SessionStore

logger = logging.getLogger(__name__)

EXIT_ALLOW = 0
EXIT_ERROR = 1
EXIT_BLOCK = 2

HOOK_PROMPT = "prompt"
HOOK_FILE_OP = "file-op"
HOOK_KINDS = (HOOK_PROMPT, HOOK_FILE_OP)

SUGGESTION_MARKER = "RECOMMENDED SKILLS"

_RULE = "=" * 40

PRIORITY_LABELS = {
    Priority.CRITICAL: "Critical (required):",
    Priority.HIGH: "High:",
    Priority.MEDIUM: "Suggested:",
    Priority.LOW: "Optional:",
}


@dataclass
class HookResult:
    """What an adapter tells its caller."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    decisions: list[Decision] = field(default_factory=list)


def render_suggestions(decisions: list[Decision]) -> str:
    """Format suggest-level decisions as one block. Empty string if none."""
    suggested = suggestions(decisions)
    if not suggested:
        return ""

    lines = [SUGGESTION_MARKER, _RULE]
    current = None
    for decision in suggested:
        rule = decision.rule
        if rule.priority != current:
            if current is not None:
                lines.append("")
            lines.append(PRIORITY_LABELS[rule.priority])
            current = rule.priority
        entry = f"  -> {rule.name}"
        if rule.enforcement == Enforcement.WARN:
            entry += " (warn)"
        if rule.description:
            entry += f": {rule.description}"
        lines.append(entry)

    lines.extend([
        "",
        "ACTION: Load the matching skills with the Skill tool before responding.",
        _RULE,
    ])
    return "\n".join(lines) + "\n"


def render_blocks(decisions: list[Decision], file_path: str) -> str:
    """All block messages, {file_path} substituted, blank-line separated."""
    messages = [d.rule.render_block_message(file_path).strip() for d in blocks(decisions)]
    if not messages:
        return ""
    return "\n\n".join(messages) + "\n"


def handle_prompt(
    payload: dict,
    ruleset: RuleSet,
    store: SessionBackend,
    environ: Optional[Mapping[str, str]] = None,
) -> HookResult:
    """Advisory path. Never blocks."""
    event = prompt_event_from_payload(payload)
    decisions = evaluate(ruleset, event, store, environ)
    return HookResult(
        exit_code=EXIT_ALLOW,
        stdout=render_suggestions(decisions),
        decisions=decisions,
    )


def handle_file_op(
    payload: dict,
    ruleset: RuleSet,
    store: SessionBackend,
    project_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> HookResult:
    """Enforcement path. Exit 2 with every block message if any rule blocks."""
    tool_name = payload.get("tool_name")
    if not isinstance(tool_name, str):
        raise InputError("missing required field 'tool_name' in payload")
    if not is_file_op_payload(payload):
        logger.debug("Ignoring tool %r", tool_name)
        return HookResult(exit_code=EXIT_ALLOW)

    event = file_op_event_from_payload(
        payload,
        project_dir=project_dir,
        read_content=ruleset.needs_file_content,
    )
    decisions = evaluate(ruleset, event, store, environ)
    message = render_blocks(decisions, event.file_path)
    if message:
        return HookResult(exit_code=EXIT_BLOCK, stderr=message, decisions=decisions)
    return HookResult(exit_code=EXIT_ALLOW, decisions=decisions)


def run_hook(
    kind: str,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    settings: Optional[Settings] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Read one payload, decide, write the caller's streams, return exit code."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    try:
        if kind not in HOOK_KINDS:
            raise InputError(f"unknown hook kind {kind!r}")
        settings = settings or get_settings(environ=environ)
        payload = parse_payload(stdin.read())
        ruleset = load_rules(settings.rules_path)
        store = SessionStore(settings.state_dir)
        if kind == HOOK_PROMPT:
            result = handle_prompt(payload, ruleset, store, environ)
        else:
            result = handle_file_op(
                payload, ruleset, store, project_dir=settings.project_dir, environ=environ,
            )
    except ConfigError as e:
        logger.error("Rule configuration error: %s", e)
        stderr.write(f"skillgate: configuration error: {e}\n")
        return EXIT_ERROR
    except InputError as e:
        logger.error("Invalid hook input: %s", e)
        stderr.write(f"skillgate: invalid hook input: {e}\n")
        return EXIT_ERROR

    if result.stdout:
        stdout.write(result.stdout)
    if result.stderr:
        stderr.write(result.stderr)
    return result.exit_code


def _main(kind: str) -> None:
    try:
        settings = get_settings()
    except ConfigError as e:
        sys.stderr.write(f"skillgate: configuration error: {e}\n")
        sys.exit(EXIT_ERROR)
    configure_logging(settings)
    sys.exit(run_hook(kind, settings=settings))


def prompt_main() -> None:
    """Console entry point: skillgate-prompt."""
    _main(HOOK_PROMPT)


def file_op_main() -> None:
    """Console entry point: skillgate-file-guard."""
    _main(HOOK_FILE_OP)


def main() -> None:
    """Entry point when called from hooks: python -m skillgate.hooks <kind>"""
    import argparse

    parser = argparse.ArgumentParser(prog="python -m skillgate.hooks")
    parser.add_argument("kind", choices=HOOK_KINDS)
    args = parser.parse_args()
    _main(args.kind)


if __name__ == "__main__":
    main()
