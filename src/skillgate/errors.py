"""Exception taxonomy for skillgate.

ConfigError and InputError are fatal to a hook invocation. StateError is
raised inside the session store only and degraded to an empty session there.
"""

from typing import Optional


class SkillgateError(Exception):
    """Base class for all skillgate errors."""


class ConfigError(SkillgateError):
    """Rule document or settings file cannot be used. Always fail closed."""


class ParseFailure(ConfigError):
    """Document is unreadable or not well-formed."""


class SchemaViolation(ConfigError):
    """A rule breaks a structural invariant."""

    def __init__(self, rule: Optional[str], field: Optional[str], message: str):
        self.rule = rule
        self.field = field
        self.message = message
        location = []
        if rule:
            location.append(f"rule '{rule}'")
        if field:
            location.append(f"field '{field}'")
        prefix = ", ".join(location)
        super().__init__(f"{prefix}: {message}" if prefix else message)


class InputError(SkillgateError):
    """Hook payload is malformed or missing a required field."""


class StateError(SkillgateError):
    """A persisted session record is unreadable or corrupt."""
