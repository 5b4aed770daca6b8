"""Rule Registry - load, validate and expose skill rules.

A rule document is JSON:

    {
      "version": "1.0",
      "skills": {
        "database-verification": {
          "type": "guardrail",
          "enforcement": "block",
          "priority": "critical",
          "fileTriggers": {"pathPatterns": ["**/*.sql"]},
          "blockMessage": "Review {file_path} against the schema first.",
          "skipConditions": {"sessionSkillUsed": true}
        }
      }
    }

One malformed rule rejects the whole document. A partially loaded rule set
could silently drop a guardrail, so there is no "load what you can" mode.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .enforcement_types import KIND_ALIASES, Enforcement, Priority, RuleKind
from .errors import ParseFailure, SchemaViolation
from .patterns import compile_glob, compile_regex, glob_to_regex
from .path_utils import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_RULES_VERSION = "1.0"


def _compile_patterns(value: Any) -> Any:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of regular expressions")
    compiled = []
    for raw in value:
        if isinstance(raw, re.Pattern):
            compiled.append(raw)
            continue
        if not isinstance(raw, str):
            raise ValueError(f"pattern {raw!r} is not a string")
        try:
            compiled.append(compile_regex(raw))
        except re.error as e:
            raise ValueError(f"invalid regex {raw!r}: {e}") from e
    return tuple(compiled)


def _check_globs(value: Any) -> Any:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of glob patterns")
    for raw in value:
        if not isinstance(raw, str):
            raise ValueError(f"glob {raw!r} is not a string")
        try:
            re.compile(glob_to_regex(raw))
        except (ValueError, re.error) as e:
            raise ValueError(f"invalid glob {raw!r}: {e}") from e
    return tuple(value)


class _RuleModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class PromptTriggers(_RuleModel):
    """Keyword and intent-pattern triggers for prompt events."""

    keywords: tuple[str, ...] = ()
    intent_patterns: tuple[re.Pattern, ...] = ()

    @field_validator("intent_patterns", mode="before")
    @classmethod
    def compile_intent_patterns(cls, value: Any) -> Any:
        return _compile_patterns(value)

    @field_serializer("intent_patterns")
    def dump_intent_patterns(self, patterns: tuple[re.Pattern, ...]) -> list[str]:
        return [p.pattern for p in patterns]


class FileTriggers(_RuleModel):
    """Path and content triggers for file operations."""

    path_patterns: tuple[str, ...]
    path_exclusions: tuple[str, ...] = ()
    content_patterns: tuple[re.Pattern, ...] = ()

    _path_regexes: tuple[re.Pattern, ...] = PrivateAttr(default=())
    _exclusion_regexes: tuple[re.Pattern, ...] = PrivateAttr(default=())

    @field_validator("path_patterns", "path_exclusions", mode="before")
    @classmethod
    def check_globs(cls, value: Any) -> Any:
        return _check_globs(value)

    @field_validator("content_patterns", mode="before")
    @classmethod
    def compile_content_patterns(cls, value: Any) -> Any:
        return _compile_patterns(value)

    def model_post_init(self, context: Any) -> None:
        self._path_regexes = tuple(compile_glob(p) for p in self.path_patterns)
        self._exclusion_regexes = tuple(compile_glob(p) for p in self.path_exclusions)

    @property
    def path_regexes(self) -> tuple[re.Pattern, ...]:
        return self._path_regexes

    @property
    def exclusion_regexes(self) -> tuple[re.Pattern, ...]:
        return self._exclusion_regexes

    @field_serializer("content_patterns")
    def dump_content_patterns(self, patterns: tuple[re.Pattern, ...]) -> list[str]:
        return [p.pattern for p in patterns]


class SkipConditions(_RuleModel):
    """Exceptions that turn a would-be block into an allow."""

    session_skill_used: bool = False
    file_markers: tuple[str, ...] = ()
    env_override: Optional[str] = None


class SkillRule(_RuleModel):
    """One named capability's trigger and enforcement policy."""

    name: str
    kind: RuleKind = Field(default=RuleKind.ADVISORY, alias="type")
    enforcement: Enforcement
    priority: Priority = Priority.MEDIUM
    description: Optional[str] = None
    prompt_triggers: Optional[PromptTriggers] = None
    file_triggers: Optional[FileTriggers] = None
    block_message: Optional[str] = None
    skip_conditions: SkipConditions = Field(default_factory=SkipConditions)

    @field_validator("kind", mode="before")
    @classmethod
    def resolve_kind_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return KIND_ALIASES.get(value, value)
        return value

    @model_validator(mode="before")
    @classmethod
    def default_enforcement(cls, data: Any) -> Any:
        """Guardrails block by default; advisory rules suggest."""
        if isinstance(data, dict) and data.get("enforcement") is None:
            kind = data.get("type", data.get("kind", RuleKind.ADVISORY))
            kind = KIND_ALIASES.get(kind, kind) if isinstance(kind, str) else kind
            default = Enforcement.BLOCK if kind == RuleKind.GUARDRAIL else Enforcement.SUGGEST
            data = {**data, "enforcement": default}
        return data

    @property
    def is_blocking(self) -> bool:
        return self.enforcement == Enforcement.BLOCK

    def render_block_message(self, file_path: str) -> str:
        """Substitute {file_path}. Other braces are left alone."""
        return (self.block_message or "").replace("{file_path}", file_path)

    def to_dict(self) -> dict:
        """Serialize to the document shape (name excluded, it is the key)."""
        return self.model_dump(
            mode="json", by_alias=True, exclude={"name"}, exclude_none=True,
        )


def _check_invariants(rule: SkillRule) -> None:
    """Structural rules pydantic field types cannot express."""
    if rule.file_triggers is not None and not rule.file_triggers.path_patterns:
        raise SchemaViolation(
            rule.name, "fileTriggers.pathPatterns",
            "must list at least one glob when fileTriggers is present",
        )
    if rule.enforcement == Enforcement.BLOCK:
        if not (rule.block_message or "").strip():
            raise SchemaViolation(
                rule.name, "blockMessage",
                "is required when enforcement is 'block'",
            )
        if rule.file_triggers is None:
            raise SchemaViolation(
                rule.name, "fileTriggers",
                "is required when enforcement is 'block' (blocking applies to file operations only)",
            )


def build_rule(name: str, spec: Any) -> SkillRule:
    """Validate one rule definition. Raises SchemaViolation."""
    if not isinstance(spec, dict):
        raise SchemaViolation(name, None, "rule definition must be an object")
    try:
        rule = SkillRule.model_validate({**spec, "name": name})
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        raise SchemaViolation(name, loc or None, err.get("msg", str(e))) from e
    _check_invariants(rule)
    return rule


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of the loaded rules, in declaration order."""

    rules: tuple[SkillRule, ...] = ()
    version: str = DEFAULT_RULES_VERSION
    source: Optional[Path] = field(default=None, compare=False)

    def all_rules(self) -> list[SkillRule]:
        return list(self.rules)

    def names(self) -> list[str]:
        return [r.name for r in self.rules]

    def get(self, name: str) -> Optional[SkillRule]:
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None

    @property
    def needs_file_content(self) -> bool:
        """True when some rule can only be decided with the file's contents."""
        for rule in self.rules:
            if rule.file_triggers and rule.file_triggers.content_patterns:
                return True
            if rule.is_blocking and rule.skip_conditions.file_markers:
                return True
        return False

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "skills": {rule.name: rule.to_dict() for rule in self.rules},
        }

    def __iter__(self) -> Iterator[SkillRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict:
    result = {}
    for key, value in pairs:
        if key in result:
            raise ParseFailure(f"duplicate key {key!r} in rule document")
        result[key] = value
    return result


def parse_rules(data: Any, source: Optional[Path] = None) -> RuleSet:
    """Build a RuleSet from an already-decoded document."""
    if not isinstance(data, dict):
        raise ParseFailure("rule document must be a JSON object")

    skills = data.get("skills")
    if skills is None:
        raise SchemaViolation(None, "skills", "rule document has no 'skills' mapping")
    if not isinstance(skills, dict):
        raise SchemaViolation(None, "skills", "must be an object mapping rule name to rule")

    rules = tuple(build_rule(name, spec) for name, spec in skills.items())
    version = str(data.get("version", DEFAULT_RULES_VERSION))
    logger.debug("Loaded %d rules from %s", len(rules), source or "<memory>")
    return RuleSet(rules=rules, version=version, source=source)


def loads_rules(text: str, source: Optional[Path] = None) -> RuleSet:
    """Parse a rule document from JSON text."""
    try:
        data = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as e:
        where = f" in {source}" if source else ""
        raise ParseFailure(f"malformed rule document{where}: {e}") from e
    return parse_rules(data, source=source)


def load_rules(path: Union[str, Path]) -> RuleSet:
    """Load and validate the rule document at path.

    Raises:
        ParseFailure: file unreadable or not valid JSON
        SchemaViolation: a rule breaks an invariant
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseFailure(f"cannot read rule document {path}: {e}") from e
    return loads_rules(text, source=path)


def dumps_rules(ruleset: RuleSet) -> str:
    return json.dumps(ruleset.to_dict(), indent=2) + "\n"


def dump_rules(ruleset: RuleSet, path: Union[str, Path]) -> Path:
    """Write ruleset back to a document. Loading it again yields an equal RuleSet."""
    path = Path(path)
    with atomic_write(path) as f:
        f.write(dumps_rules(ruleset))
    return path
