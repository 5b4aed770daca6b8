"""Shared enforcement types.

Defines the vocabulary used across rules.py (what a rule asks for),
engine.py (what a rule decided) and hooks.py (what the caller is told).
"""

from enum import Enum


class Tools:
    """Canonical tool names seen in hook payloads."""
    EDIT = "Edit"
    WRITE = "Write"
    MULTI_EDIT = "MultiEdit"


class FileOperation(str, Enum):
    """File-affecting operations the file-op adapter evaluates."""
    EDIT = Tools.EDIT
    WRITE = Tools.WRITE
    MULTI_EDIT = Tools.MULTI_EDIT


FILE_MODIFY_TOOLS = {op.value for op in FileOperation}


class RuleKind(str, Enum):
    """Advisory rules only suggest; guardrails may block."""
    ADVISORY = "advisory"
    GUARDRAIL = "guardrail"


# Older rule files call advisory rules "domain" rules.
KIND_ALIASES = {"domain": RuleKind.ADVISORY.value}


class Enforcement(str, Enum):
    SUGGEST = "suggest"
    WARN = "warn"
    BLOCK = "block"


class Priority(str, Enum):
    """Presentation order for suggestions. Never used to resolve conflicts."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.index(self)


PRIORITY_ORDER = [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW]


class Outcome(str, Enum):
    """Result of evaluating one rule against one event."""
    ALLOW = "allow"
    SUGGEST = "suggest"
    BLOCK = "block"
