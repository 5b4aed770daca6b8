"""Setup command: init."""

import json
import sys
from pathlib import Path


def cmd_init(args):
    """Write settings, starter rules and hook registrations."""
    from ..errors import ConfigError
    from ..setup import run_setup

    project_dir = Path(args.project) if args.project else Path.cwd()
    try:
        results = run_setup(project_dir)
    except ConfigError as e:
        print(f"Setup aborted: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(results, indent=2))
        return

    print(f"skillgate setup in {results['project_dir']}")
    for step in results["steps"]:
        print(f"  - {step.replace('_', ' ')}")
    print(f"Rules: {results['rules_path']}")


def register(subparsers):
    """Register setup commands."""
    p = subparsers.add_parser("init", help="Set up skillgate in a project")
    p.add_argument("-p", "--project", help="Project directory (default: cwd)")
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(func=cmd_init)
