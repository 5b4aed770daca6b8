"""Trigger Matcher - does a rule's trigger block match an event?

Pure functions over compiled patterns. One evaluation function per trigger
clause kind (keyword, intent pattern, path glob, content pattern); rules
combine them:

    prompt event:  any keyword OR any intent pattern
    file event:    some path glob AND no exclusion
                   AND (some content pattern, if any are configured)

A rule without the trigger block for an event's type never matches it.
"""

import logging
import re
from typing import Iterable, Optional

from .errors import ConfigError
from .events import Event, FileOpEvent, PromptEvent
from .rules import FileTriggers, PromptTriggers, SkillRule

logger = logging.getLogger(__name__)


def match_keyword(keywords: Iterable[str], text: str) -> Optional[str]:
    """First keyword that is a case-insensitive substring of text."""
    lowered = text.lower()
    for keyword in keywords:
        if keyword and keyword.lower() in lowered:
            return keyword
    return None


def match_intent(patterns: Iterable[re.Pattern], text: str) -> Optional[re.Pattern]:
    for pattern in patterns:
        if pattern.search(text):
            return pattern
    return None


def match_path(
    includes: Iterable[re.Pattern],
    excludes: Iterable[re.Pattern],
    path: str,
) -> bool:
    """Path matches some include glob and no exclusion glob."""
    if any(glob.fullmatch(path) for glob in excludes):
        return False
    return any(glob.fullmatch(path) for glob in includes)


def match_content(patterns: Iterable[re.Pattern], content: Optional[str]) -> bool:
    """Some pattern matches the snapshot. No snapshot never matches."""
    if content is None:
        return False
    return any(pattern.search(content) for pattern in patterns)


def prompt_triggers_match(triggers: PromptTriggers, text: str) -> bool:
    if match_keyword(triggers.keywords, text) is not None:
        return True
    return match_intent(triggers.intent_patterns, text) is not None


def file_triggers_match(triggers: FileTriggers, path: str, content: Optional[str]) -> bool:
    if not match_path(triggers.path_regexes, triggers.exclusion_regexes, path):
        return False
    if triggers.content_patterns:
        return match_content(triggers.content_patterns, content)
    return True


def match_prompt(rule: SkillRule, event: PromptEvent) -> bool:
    if rule.prompt_triggers is None:
        return False
    return prompt_triggers_match(rule.prompt_triggers, event.text)


def match_file_op(rule: SkillRule, event: FileOpEvent) -> bool:
    if rule.file_triggers is None:
        return False
    return file_triggers_match(rule.file_triggers, event.file_path, event.content)


def matches(rule: SkillRule, event: Event) -> bool:
    """Does rule trigger on event?

    Patterns are validated at load time, so an exception here means the
    registry let something through; it surfaces as a ConfigError.
    """
    if isinstance(event, PromptEvent):
        evaluate = match_prompt
    elif isinstance(event, FileOpEvent):
        evaluate = match_file_op
    else:
        raise TypeError(f"unsupported event type {type(event).__name__}")

    try:
        result = evaluate(rule, event)
    except Exception as e:
        raise ConfigError(f"rule '{rule.name}' failed while matching: {e}") from e

    logger.debug("rule %s %s", rule.name, "matched" if result else "did not match")
    return result
