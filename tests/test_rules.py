"""Tests for the rule registry: loading, validation, round trip."""

import copy
import json

import pytest

from skillgate.enforcement_types import Enforcement, Priority, RuleKind
from skillgate.errors import ConfigError, ParseFailure, SchemaViolation
from skillgate.rules import (
    RuleSet,
    dump_rules,
    dumps_rules,
    load_rules,
    loads_rules,
    parse_rules,
)

from conftest import SAMPLE_RULES


def _doc(**rules):
    return {"version": "1.0", "skills": rules}


class TestLoading:
    """Loading documents from disk and text."""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "skill-rules.json"
        path.write_text(json.dumps(SAMPLE_RULES))
        ruleset = load_rules(path)
        assert len(ruleset) == 3
        assert ruleset.source == path

    def test_declaration_order_preserved(self, sample_rules):
        assert sample_rules.names() == ["prisma-guide", "frontend-tips", "sql-review"]
        assert [r.name for r in sample_rules.all_rules()] == sample_rules.names()

    def test_get_by_name(self, sample_rules):
        assert sample_rules.get("sql-review").is_blocking
        assert sample_rules.get("missing") is None

    def test_camel_case_fields_map_to_attributes(self, sample_rules):
        rule = sample_rules.get("sql-review")
        assert rule.kind == RuleKind.GUARDRAIL
        assert rule.enforcement == Enforcement.BLOCK
        assert rule.priority == Priority.CRITICAL
        assert rule.file_triggers.path_patterns == ("**/*.sql",)
        assert rule.skip_conditions.session_skill_used is True
        assert rule.skip_conditions.file_markers == ("@skip-validation",)
        assert rule.skip_conditions.env_override == "SKIP_SQL_REVIEW"

    def test_domain_is_advisory(self, sample_rules):
        assert sample_rules.get("prisma-guide").kind == RuleKind.ADVISORY

    def test_intent_patterns_compiled_case_insensitive(self, sample_rules):
        pattern = sample_rules.get("prisma-guide").prompt_triggers.intent_patterns[0]
        assert pattern.search("QUERY the DATABASE")

    def test_missing_file_is_parse_failure(self, tmp_path):
        with pytest.raises(ParseFailure):
            load_rules(tmp_path / "nope.json")

    def test_malformed_json_is_parse_failure(self):
        with pytest.raises(ParseFailure):
            loads_rules('{"skills": {')

    def test_non_object_document_is_parse_failure(self):
        with pytest.raises(ParseFailure):
            loads_rules("[1, 2, 3]")

    def test_duplicate_rule_names_rejected(self):
        text = '{"skills": {"a": {"enforcement": "suggest"}, "a": {"enforcement": "suggest"}}}'
        with pytest.raises(ParseFailure, match="duplicate"):
            loads_rules(text)

    def test_missing_skills_mapping(self):
        with pytest.raises(SchemaViolation) as exc:
            parse_rules({"version": "1.0"})
        assert exc.value.field == "skills"

    def test_unknown_top_level_keys_ignored(self):
        ruleset = parse_rules({"$schema": "x", "description": "y", "skills": {}})
        assert len(ruleset) == 0


class TestDefaults:
    """Defaults derived from kind and priority."""

    def test_guardrail_defaults_to_block(self):
        ruleset = parse_rules(_doc(guard={
            "type": "guardrail",
            "fileTriggers": {"pathPatterns": ["*.py"]},
            "blockMessage": "no",
        }))
        assert ruleset.get("guard").enforcement == Enforcement.BLOCK

    def test_advisory_defaults_to_suggest(self):
        ruleset = parse_rules(_doc(tip={"promptTriggers": {"keywords": ["x"]}}))
        rule = ruleset.get("tip")
        assert rule.enforcement == Enforcement.SUGGEST
        assert rule.kind == RuleKind.ADVISORY
        assert rule.priority == Priority.MEDIUM

    def test_guardrail_may_be_downgraded_to_warn(self):
        ruleset = parse_rules(_doc(guard={
            "type": "guardrail", "enforcement": "warn",
            "promptTriggers": {"keywords": ["x"]},
        }))
        assert not ruleset.get("guard").is_blocking


class TestSchemaViolations:
    """A single bad rule fails the whole load."""

    def test_block_without_block_message(self):
        doc = _doc(guard={
            "enforcement": "block",
            "fileTriggers": {"pathPatterns": ["**/*.sql"]},
        })
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.rule == "guard"
        assert exc.value.field == "blockMessage"
        assert "guard" in str(exc.value)
        assert "blockMessage" in str(exc.value)

    def test_block_with_blank_block_message(self):
        doc = _doc(guard={
            "enforcement": "block",
            "blockMessage": "   ",
            "fileTriggers": {"pathPatterns": ["**/*.sql"]},
        })
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.field == "blockMessage"

    def test_block_without_file_triggers(self):
        doc = _doc(guard={
            "enforcement": "block",
            "blockMessage": "stop",
            "promptTriggers": {"keywords": ["sql"]},
        })
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.field == "fileTriggers"

    def test_file_triggers_require_path_patterns(self):
        doc = _doc(tip={"fileTriggers": {"contentPatterns": ["x"]}})
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.rule == "tip"
        assert "pathPatterns" in exc.value.field

    def test_empty_path_patterns_rejected(self):
        doc = _doc(tip={"fileTriggers": {"pathPatterns": []}})
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.field == "fileTriggers.pathPatterns"

    def test_uncompilable_intent_pattern(self):
        doc = _doc(tip={"promptTriggers": {"intentPatterns": ["(unclosed"]}})
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert exc.value.rule == "tip"
        assert "intentPatterns" in exc.value.field

    def test_uncompilable_content_pattern(self):
        doc = _doc(tip={"fileTriggers": {"pathPatterns": ["*"], "contentPatterns": ["[z-a]"]}})
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(doc)
        assert "contentPatterns" in exc.value.field

    def test_unknown_enforcement(self):
        with pytest.raises(SchemaViolation) as exc:
            parse_rules(_doc(tip={"enforcement": "shout"}))
        assert exc.value.field == "enforcement"

    def test_typo_in_trigger_key_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_rules(_doc(tip={"promptTriggers": {"keyword": ["x"]}}))

    def test_rule_must_be_object(self):
        with pytest.raises(SchemaViolation):
            parse_rules(_doc(tip=["keywords"]))

    def test_one_bad_rule_rejects_all(self):
        doc = copy.deepcopy(SAMPLE_RULES)
        del doc["skills"]["sql-review"]["blockMessage"]
        with pytest.raises(ConfigError):
            parse_rules(doc)


class TestRoundTrip:
    """Serializing and reloading yields the same rules."""

    def test_dump_and_reload_equal(self, sample_rules, tmp_path):
        path = dump_rules(sample_rules, tmp_path / "out.json")
        reloaded = load_rules(path)
        assert reloaded == sample_rules

    def test_dumps_uses_document_shape(self, sample_rules):
        data = json.loads(dumps_rules(sample_rules))
        rule = data["skills"]["sql-review"]
        assert rule["type"] == "guardrail"
        assert rule["blockMessage"] == "Review {file_path}"
        assert rule["fileTriggers"]["pathPatterns"] == ["**/*.sql"]
        assert rule["skipConditions"]["sessionSkillUsed"] is True
        assert "name" not in rule

    def test_patterns_serialize_as_source_text(self, sample_rules):
        data = sample_rules.to_dict()
        assert data["skills"]["prisma-guide"]["promptTriggers"]["intentPatterns"] == [
            r"(query|fetch).*?database"
        ]

    def test_ruleset_equality_ignores_source(self, sample_rules):
        assert RuleSet(rules=sample_rules.rules, source=None) == sample_rules


class TestNeedsFileContent:

    def test_markers_need_content(self, sample_rules):
        assert sample_rules.needs_file_content

    def test_path_only_rules_do_not(self):
        ruleset = parse_rules(_doc(tip={"fileTriggers": {"pathPatterns": ["*.py"]}}))
        assert not ruleset.needs_file_content

    def test_content_patterns_need_content(self):
        ruleset = parse_rules(_doc(tip={
            "fileTriggers": {"pathPatterns": ["*.py"], "contentPatterns": ["import"]},
        }))
        assert ruleset.needs_file_content
