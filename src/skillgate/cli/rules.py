"""Rule commands: list, validate, check."""

import json
import sys
from pathlib import Path

from . import add_project_arg, requires_settings


def _load_or_exit(path: Path):
    from ..errors import ConfigError
    from ..rules import load_rules

    try:
        return load_rules(path)
    except ConfigError as e:
        print(f"INVALID: {e}", file=sys.stderr)
        sys.exit(1)


@requires_settings
def cmd_rules_list(args):
    """List loaded rules in declaration order."""
    ruleset = _load_or_exit(args.settings.rules_path)

    if args.json:
        print(json.dumps([
            {
                "name": r.name,
                "type": r.kind.value,
                "enforcement": r.enforcement.value,
                "priority": r.priority.value,
                "prompt_triggers": r.prompt_triggers is not None,
                "file_triggers": r.file_triggers is not None,
            }
            for r in ruleset
        ], indent=2))
        return

    print(f"Rules ({len(ruleset)}) from {ruleset.source}")
    print("=" * 40)
    for r in ruleset:
        triggers = []
        if r.prompt_triggers is not None:
            triggers.append("prompt")
        if r.file_triggers is not None:
            triggers.append("file")
        print(
            f"  {r.name}  [{r.kind.value}/{r.enforcement.value}/{r.priority.value}]"
            f"  triggers: {', '.join(triggers) or '(none)'}"
        )


@requires_settings
def cmd_rules_validate(args):
    """Validate a rule document. Exit 1 if invalid."""
    path = Path(args.path) if args.path else args.settings.rules_path
    ruleset = _load_or_exit(path)
    blocking = sum(1 for r in ruleset if r.is_blocking)
    print(f"OK: {len(ruleset)} rules ({blocking} blocking) in {path}")


@requires_settings
def cmd_rules_check(args):
    """Dry-run the engine against a prompt or a file path.

    Uses an in-memory session, so no session record is touched.
    """
    from ..engine import evaluate
    from ..enforcement_types import Outcome
    from ..errors import InputError
    from ..events import PromptEvent, file_op_event_from_payload
    from ..session import MemorySessionStore

    ruleset = _load_or_exit(args.settings.rules_path)
    store = MemorySessionStore()

    if args.prompt is not None:
        event = PromptEvent(session_id="dry-run", text=args.prompt)
    else:
        payload = {
            "session_id": "dry-run",
            "tool_name": args.tool,
            "tool_input": {"file_path": args.file},
        }
        try:
            event = file_op_event_from_payload(
                payload,
                project_dir=args.settings.project_dir,
                read_content=ruleset.needs_file_content,
            )
        except InputError as e:
            print(f"Invalid input: {e}", file=sys.stderr)
            sys.exit(1)

    decisions = evaluate(ruleset, event, store)
    matched = [d for d in decisions if d.matched]

    if args.json:
        print(json.dumps([
            {
                "rule": d.rule.name,
                "outcome": d.outcome.value,
                "skip_reason": d.skip_reason,
            }
            for d in matched
        ], indent=2))
        return

    if not matched:
        print("No rules matched.")
        return
    for d in matched:
        line = f"  {d.outcome.value.upper():8} {d.rule.name}"
        if d.skip_reason:
            line += f" (skipped: {d.skip_reason})"
        print(line)
    if any(d.outcome == Outcome.BLOCK for d in matched):
        print("\nWould block.")


def register(subparsers):
    """Register rule commands."""
    rules_parser = subparsers.add_parser("rules", help="Inspect and validate rules")
    sub = rules_parser.add_subparsers(dest="rules_command")

    p = sub.add_parser("list", help="List rules")
    add_project_arg(p)
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_rules_list)

    p = sub.add_parser("validate", help="Validate a rule document")
    p.add_argument("path", nargs="?", help="Rule document (default: configured rules path)")
    add_project_arg(p)
    p.set_defaults(func=cmd_rules_validate)

    p = sub.add_parser("check", help="Dry-run rules against a prompt or file")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--prompt", help="Prompt text")
    target.add_argument("--file", help="File path")
    p.add_argument("--tool", default="Edit", choices=["Edit", "Write", "MultiEdit"],
                   help="File operation (default: Edit)")
    add_project_arg(p)
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_rules_check)
