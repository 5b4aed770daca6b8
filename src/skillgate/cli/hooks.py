"""Hook commands: run an adapter on stdin."""

import sys

from . import add_project_arg, requires_settings


@requires_settings
def cmd_hook(args):
    """Run the prompt or file-op adapter and exit with its status."""
    from ..hooks import run_hook

    sys.exit(run_hook(args.kind, settings=args.settings))


def register(subparsers):
    """Register hook commands."""
    from ..hooks import HOOK_KINDS

    p = subparsers.add_parser("hook", help="Run a hook adapter (reads JSON on stdin)")
    p.add_argument("kind", choices=HOOK_KINDS, help="Adapter to run")
    add_project_arg(p)
    p.set_defaults(func=cmd_hook)
