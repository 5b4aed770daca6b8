"""skillgate - rule-driven skill suggestions and guardrails for coding-assistant hooks."""

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Lazy-loading setup
# ---------------------------------------------------------------------------
# Hook processes start for every prompt and every edit, so `import skillgate`
# must not pull in pydantic until a name that needs it is touched. Public
# names resolve through module-level __getattr__ on first access.
# ---------------------------------------------------------------------------

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    # Registry
    "RuleSet": ("skillgate.rules", "RuleSet"),
    "SkillRule": ("skillgate.rules", "SkillRule"),
    "load_rules": ("skillgate.rules", "load_rules"),
    "loads_rules": ("skillgate.rules", "loads_rules"),
    "dump_rules": ("skillgate.rules", "dump_rules"),
    # Events
    "PromptEvent": ("skillgate.events", "PromptEvent"),
    "FileOpEvent": ("skillgate.events", "FileOpEvent"),
    # Matching and decisions
    "matches": ("skillgate.matcher", "matches"),
    "Decision": ("skillgate.engine", "Decision"),
    "evaluate": ("skillgate.engine", "evaluate"),
    "Outcome": ("skillgate.enforcement_types", "Outcome"),
    # Session state
    "SessionStore": ("skillgate.session", "SessionStore"),
    "SessionState": ("skillgate.session", "SessionState"),
    # Adapters
    "run_hook": ("skillgate.hooks", "run_hook"),
    "EXIT_ALLOW": ("skillgate.hooks", "EXIT_ALLOW"),
    "EXIT_BLOCK": ("skillgate.hooks", "EXIT_BLOCK"),
    "EXIT_ERROR": ("skillgate.hooks", "EXIT_ERROR"),
    # Errors
    "ConfigError": ("skillgate.errors", "ConfigError"),
    "ParseFailure": ("skillgate.errors", "ParseFailure"),
    "SchemaViolation": ("skillgate.errors", "SchemaViolation"),
    "InputError": ("skillgate.errors", "InputError"),
    "StateError": ("skillgate.errors", "StateError"),
}

__all__ = ["__version__", *_LAZY_ATTRS]


def __getattr__(name: str):
    if name in _LAZY_ATTRS:
        import importlib

        module_path, attr = _LAZY_ATTRS[name]
        value = getattr(importlib.import_module(module_path), attr)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'skillgate' has no attribute {name!r}")
