"""Command-line interface for skillgate.

One module per command group; each exposes register(subparsers).
"""

import argparse
import sys
from functools import wraps
from pathlib import Path


def requires_settings(func):
    """Decorator that resolves settings and logging before running a command.

    Sets args.settings. A malformed settings file ends the command with
    exit status 1.
    """
    @wraps(func)
    def wrapper(args):
        from ..config import configure_logging, get_settings
        from ..errors import ConfigError

        project_dir = Path(args.project) if getattr(args, "project", None) else None
        try:
            args.settings = get_settings(project_dir=project_dir)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(1)
        configure_logging(args.settings)
        return func(args)
    return wrapper


def add_project_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-p", "--project", help="Project directory (default: $CLAUDE_PROJECT_DIR or cwd)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="skillgate - skill suggestion and guardrail hooks",
        prog="skillgate",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register all command categories (lazy to avoid circular imports)
    from . import hooks, rules, session, setup

    hooks.register(subparsers)
    rules.register(subparsers)
    session.register(subparsers)
    setup.register(subparsers)
    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command or not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
