"""Tests for settings resolution and logging setup."""

import logging

import pytest

from skillgate.config import (
    DEFAULT_CONFIG_PATH,
    configure_logging,
    ensure_config,
    get_config,
    get_settings,
)
from skillgate.errors import ParseFailure


class TestGetSettings:
    """defaults < skillgate.toml < environment"""

    def test_defaults(self, tmp_path):
        settings = get_settings(project_dir=tmp_path, environ={})
        assert settings.rules_path == tmp_path / ".claude" / "skills" / "skill-rules.json"
        assert settings.state_dir == tmp_path / ".claude" / "hooks" / "state"
        assert settings.session_ttl_hours == 168
        assert settings.log_level == "WARNING"
        assert settings.log_file is None
        assert settings.config_path is None

    def test_project_dir_from_environment(self, tmp_path):
        settings = get_settings(environ={"CLAUDE_PROJECT_DIR": str(tmp_path)})
        assert settings.project_dir == tmp_path

    def test_project_dir_falls_back_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_settings(environ={}).project_dir == tmp_path

    def test_toml_overrides_defaults(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text('[rules]\npath = "rules.json"\n\n[session]\nttl_hours = 2\n')
        settings = get_settings(project_dir=tmp_path, environ={})
        assert settings.rules_path == tmp_path / "rules.json"
        assert settings.session_ttl_hours == 2
        # Untouched keys keep their defaults
        assert settings.state_dir == tmp_path / ".claude" / "hooks" / "state"
        assert settings.config_path == config

    def test_environment_overrides_toml(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text('[logging]\nlevel = "info"\n')
        settings = get_settings(project_dir=tmp_path, environ={
            "SKILLGATE_RULES": "/etc/rules.json",
            "SKILLGATE_STATE_DIR": "state",
            "SKILLGATE_LOG_LEVEL": "debug",
        })
        assert str(settings.rules_path) == "/etc/rules.json"
        assert settings.state_dir == tmp_path / "state"
        assert settings.log_level == "DEBUG"

    def test_alternate_config_file(self, tmp_path):
        alt = tmp_path / "alt.toml"
        alt.write_text('[logging]\nfile = "logs/skillgate.log"\n')
        settings = get_settings(project_dir=tmp_path, environ={"SKILLGATE_CONFIG": str(alt)})
        assert settings.log_file == tmp_path / "logs" / "skillgate.log"

    def test_malformed_toml(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text("[rules\npath = 1")
        with pytest.raises(ParseFailure):
            get_settings(project_dir=tmp_path, environ={})

    def test_bad_ttl(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text('[session]\nttl_hours = "soon"\n')
        with pytest.raises(ParseFailure, match="ttl_hours"):
            get_settings(project_dir=tmp_path, environ={})

    @pytest.mark.parametrize("toml, key", [
        ('rules = "x"\n', "rules"),
        ("session = 3\n", "session"),
        ("[logging]\nlevel = 10\n", "logging.level"),
        ("[logging]\nfile = false\n", "logging.file"),
        ("[rules]\npath = [\"a.json\"]\n", "rules.path"),
        ("[session]\nstate_dir = {}\n", "session.state_dir"),
        ("[session]\nttl_hours = true\n", "session.ttl_hours"),
    ])
    def test_wrong_types_name_the_key(self, tmp_path, toml, key):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text(toml)
        with pytest.raises(ParseFailure) as exc:
            get_settings(project_dir=tmp_path, environ={})
        assert key in str(exc.value)


class TestEnsureConfig:

    def test_creates_default(self, tmp_path):
        path = ensure_config(tmp_path)
        assert path == tmp_path / DEFAULT_CONFIG_PATH
        assert get_config(path)["session"]["ttl_hours"] == 168

    def test_existing_left_alone(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text("# mine\n")
        assert ensure_config(tmp_path) is None
        assert config.read_text() == "# mine\n"


class TestConfigureLogging:

    def test_level_and_handlers(self, tmp_path):
        settings = get_settings(project_dir=tmp_path, environ={"SKILLGATE_LOG_LEVEL": "info"})
        configure_logging(settings)
        logger = logging.getLogger("skillgate")
        assert logger.level == logging.INFO
        assert logger.propagate is False
        assert len(logger.handlers) == 1

    def test_idempotent(self, tmp_path):
        settings = get_settings(project_dir=tmp_path, environ={})
        configure_logging(settings)
        configure_logging(settings)
        assert len(logging.getLogger("skillgate").handlers) == 1

    def test_log_file(self, tmp_path):
        config = tmp_path / DEFAULT_CONFIG_PATH
        config.parent.mkdir(parents=True)
        config.write_text('[logging]\nlevel = "INFO"\nfile = "logs/sg.log"\n')
        configure_logging(get_settings(project_dir=tmp_path, environ={}))

        logging.getLogger("skillgate.engine").info("hello from the engine")
        for handler in logging.getLogger("skillgate").handlers:
            handler.flush()

        assert "hello from the engine" in (tmp_path / "logs" / "sg.log").read_text()

    def test_nothing_written_to_stdout(self, tmp_path, capsys):
        configure_logging(get_settings(project_dir=tmp_path, environ={}))
        logging.getLogger("skillgate.session").warning("careful")
        captured = capsys.readouterr()
        assert captured.out == ""
