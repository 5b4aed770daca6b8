"""Decision Engine - rule match + enforcement + session state -> Decision.

Per rule, per event:

    no match                         -> allow
    match, suggest/warn              -> suggest (never deduplicated)
    match, block, prompt event       -> suggest (blocking is for file ops)
    match, block, file event:
        skip condition holds         -> allow
        otherwise                    -> block, and mark the session

Marking on block means the follow-up edit, made after the caller has
read the block message and remediated, goes through when the rule sets
skipConditions.sessionSkillUsed.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from .enforcement_types import Enforcement, Outcome
from .events import Event, FileOpEvent
from .matcher import matches
from .rules import RuleSet, SkillRule
from .session import SessionState

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    def has_used(self, session_id: str, rule_name: str) -> bool: ...

    def mark_used(self, session_id: str, rule_name: str) -> SessionState: ...


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating one rule against one event."""
    rule: SkillRule
    matched: bool
    outcome: Outcome
    skip_reason: Optional[str] = None  # Why a matching block rule allowed


def skip_reason(
    rule: SkillRule,
    event: FileOpEvent,
    store: SessionBackend,
    environ: Mapping[str, str],
) -> Optional[str]:
    """Which skip condition (if any) turns this block into an allow."""
    skip = rule.skip_conditions

    if skip.env_override and skip.env_override in environ:
        return f"env:{skip.env_override}"

    if event.content is not None:
        for marker in skip.file_markers:
            if marker and marker in event.content:
                return f"marker:{marker}"

    if skip.session_skill_used and store.has_used(event.session_id, rule.name):
        return "session"

    return None


def evaluate_rule(
    rule: SkillRule,
    event: Event,
    store: SessionBackend,
    environ: Mapping[str, str],
) -> Decision:
    if not matches(rule, event):
        return Decision(rule=rule, matched=False, outcome=Outcome.ALLOW)

    if rule.enforcement != Enforcement.BLOCK or not isinstance(event, FileOpEvent):
        return Decision(rule=rule, matched=True, outcome=Outcome.SUGGEST)

    reason = skip_reason(rule, event, store, environ)
    if reason:
        logger.info("Rule %s skipped for %s (%s)", rule.name, event.file_path, reason)
        return Decision(rule=rule, matched=True, outcome=Outcome.ALLOW, skip_reason=reason)

    store.mark_used(event.session_id, rule.name)
    logger.info("Rule %s blocked %s %s", rule.name, event.operation.value, event.file_path)
    return Decision(rule=rule, matched=True, outcome=Outcome.BLOCK)


def evaluate(
    ruleset: RuleSet,
    event: Event,
    store: SessionBackend,
    environ: Optional[Mapping[str, str]] = None,
) -> list[Decision]:
    """One Decision per rule, in declaration order."""
    env = os.environ if environ is None else environ
    return [evaluate_rule(rule, event, store, env) for rule in ruleset.all_rules()]


def suggestions(decisions: list[Decision]) -> list[Decision]:
    """Suggest-level decisions by priority; declaration order breaks ties."""
    suggested = [d for d in decisions if d.outcome == Outcome.SUGGEST]
    return sorted(suggested, key=lambda d: d.rule.priority.rank)


def blocks(decisions: list[Decision]) -> list[Decision]:
    """Every block decision. None are dropped; each is an independent guardrail."""
    return [d for d in decisions if d.outcome == Outcome.BLOCK]
