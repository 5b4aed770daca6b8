"""Session commands: show, list, clear, prune."""

import json
import sys
from datetime import timedelta

from . import add_project_arg, requires_settings


def _store(args):
    from ..session import SessionStore
    return SessionStore(args.settings.state_dir)


@requires_settings
def cmd_session_show(args):
    """Show which guardrails a session has satisfied."""
    state = _store(args).get(args.session_id)

    if args.json:
        print(json.dumps(state.to_record()))
        return

    print(f"Session: {state.session_id}")
    print(f"Updated: {state.updated_at.isoformat() if state.updated_at else '(never)'}")
    if state.used_skills:
        print("Guardrails satisfied:")
        for name in sorted(state.used_skills):
            print(f"  - {name}")
    else:
        print("Guardrails satisfied: (none)")


@requires_settings
def cmd_session_list(args):
    """List stored sessions."""
    states = _store(args).sessions()

    if args.json:
        print(json.dumps([s.to_record() for s in states], indent=2))
        return

    if not states:
        print("No session records.")
        return
    for s in states:
        updated = s.updated_at.isoformat() if s.updated_at else "-"
        print(f"  {s.session_id}  {updated}  {', '.join(sorted(s.used_skills))}")


@requires_settings
def cmd_session_clear(args):
    """Forget a session's satisfied guardrails."""
    if _store(args).clear(args.session_id):
        print(f"Cleared session {args.session_id}")
    else:
        print(f"No record for session {args.session_id}")
        sys.exit(1)


@requires_settings
def cmd_session_prune(args):
    """Delete session records older than the retention window."""
    hours = args.hours if args.hours is not None else args.settings.session_ttl_hours
    removed = _store(args).prune(timedelta(hours=hours))
    print(f"Pruned {len(removed)} session record(s) older than {hours:g}h")


def register(subparsers):
    """Register session commands."""
    session_parser = subparsers.add_parser("session", help="Session state")
    sub = session_parser.add_subparsers(dest="session_command")

    p = sub.add_parser("show", help="Show one session")
    p.add_argument("session_id", help="Session id")
    add_project_arg(p)
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_session_show)

    p = sub.add_parser("list", help="List sessions")
    add_project_arg(p)
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_session_list)

    p = sub.add_parser("clear", help="Forget one session")
    p.add_argument("session_id", help="Session id")
    add_project_arg(p)
    p.set_defaults(func=cmd_session_clear)

    p = sub.add_parser("prune", help="Delete stale session records")
    p.add_argument("--hours", type=float, help="Maximum age in hours (default: session.ttl_hours)")
    add_project_arg(p)
    p.set_defaults(func=cmd_session_prune)
