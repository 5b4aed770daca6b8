"""Pytest fixtures for skillgate tests."""

import json
import logging

import pytest

from skillgate.rules import parse_rules
from skillgate.session import SessionStore


SAMPLE_RULES = {
    "version": "1.0",
    "skills": {
        "prisma-guide": {
            "type": "domain",
            "enforcement": "suggest",
            "priority": "high",
            "description": "Prisma usage patterns",
            "promptTriggers": {
                "keywords": ["prisma"],
                "intentPatterns": [r"(query|fetch).*?database"],
            },
        },
        "frontend-tips": {
            "type": "domain",
            "enforcement": "warn",
            "priority": "low",
            "promptTriggers": {"keywords": ["component", "react"]},
            "fileTriggers": {
                "pathPatterns": ["frontend/src/**/*.tsx"],
                "pathExclusions": ["**/*.test.tsx"],
            },
        },
        "sql-review": {
            "type": "guardrail",
            "enforcement": "block",
            "priority": "critical",
            "fileTriggers": {"pathPatterns": ["**/*.sql"]},
            "blockMessage": "Review {file_path}",
            "skipConditions": {
                "sessionSkillUsed": True,
                "fileMarkers": ["@skip-validation"],
                "envOverride": "SKIP_SQL_REVIEW",
            },
        },
    },
}


@pytest.fixture(autouse=True)
def reset_skillgate_logging():
    """configure_logging() detaches the package logger; undo it between tests."""
    yield
    logger = logging.getLogger("skillgate")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sample_rules():
    """Loaded RuleSet built from SAMPLE_RULES."""
    return parse_rules(SAMPLE_RULES)


@pytest.fixture
def store(tmp_path):
    """Session store in a temporary state directory."""
    return SessionStore(tmp_path / "state")


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Temporary project with SAMPLE_RULES at the default rules path."""
    rules_path = tmp_path / ".claude" / "skills" / "skill-rules.json"
    rules_path.parent.mkdir(parents=True)
    rules_path.write_text(json.dumps(SAMPLE_RULES))
    monkeypatch.setenv("CLAUDE_PROJECT_DIR", str(tmp_path))
    for var in ("SKILLGATE_CONFIG", "SKILLGATE_RULES", "SKILLGATE_STATE_DIR",
                "SKILLGATE_LOG_LEVEL", "SKIP_SQL_REVIEW"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
