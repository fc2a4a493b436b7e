"""Tests for YAML and INI config loading."""

from pathlib import Path

import pytest

from flickr_rest.config_loader import (
    ConfigError,
    _substitute_env_vars,
    load_ini_config,
    load_session_config,
)
from flickr_rest.models import DEFAULT_REQUEST_DELAY_MS, SessionConfig


def write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadSessionConfig:
    """Tests for load_session_config (YAML)."""

    def test_full_config(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "flickr.yaml",
            """
legacy:
  api_key: abc
  shared_secret: def
  auth_token: ghi
request_delay_ms: 500
user_agent: my-app/1.0
""",
        )
        config = load_session_config(path)
        assert config.legacy.api_key == "abc"
        assert config.legacy.shared_secret == "def"
        assert config.legacy.auth_token == "ghi"
        assert config.request_delay_ms == 500
        assert config.user_agent == "my-app/1.0"
        assert config.oauth is None

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_FLICKR_KEY", "from-env")
        monkeypatch.setenv("TEST_FLICKR_SECRET", "secret-env")
        path = write(
            tmp_path / "flickr.yaml",
            """
oauth:
  consumer_key: ${TEST_FLICKR_KEY}
  consumer_secret: ${TEST_FLICKR_SECRET}
""",
        )
        config = load_session_config(path)
        assert config.oauth.consumer_key == "from-env"
        assert config.oauth.consumer_secret == "secret-env"

    def test_missing_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TEST_FLICKR_UNSET", raising=False)
        path = write(tmp_path / "flickr.yaml", "legacy:\n  api_key: ${TEST_FLICKR_UNSET}\n")
        with pytest.raises(ConfigError, match="TEST_FLICKR_UNSET"):
            load_session_config(path)

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_session_config(write(tmp_path / "empty.yaml", ""))
        assert config == SessionConfig()
        assert config.request_delay_ms == DEFAULT_REQUEST_DELAY_MS

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_session_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_session_config(write(tmp_path / "bad.yaml", "legacy: [unclosed"))

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            load_session_config(write(tmp_path / "list.yaml", "- a\n- b\n"))

    def test_unknown_field_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid config structure"):
            load_session_config(write(tmp_path / "extra.yaml", "retries: 3\n"))

    def test_negative_delay_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_session_config(write(tmp_path / "delay.yaml", "request_delay_ms: -5\n"))


class TestLoadIniConfig:
    """Tests for load_ini_config (~/.flickcurl.conf format)."""

    def test_flickr_section(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "flickcurl.conf",
            "[flickr]\napi_key=0123456789abcdef\nsecret=fedcba98\nauth_token=1234-5678\n",
        )
        config = load_ini_config(path)
        assert config.legacy.api_key == "0123456789abcdef"
        assert config.legacy.shared_secret == "fedcba98"
        assert config.legacy.auth_token == "1234-5678"
        assert config.oauth is None

    def test_oauth_keys(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "flickcurl.conf",
            "[flickr]\noauth_client_key=ck\noauth_client_secret=cs\n"
            "oauth_token=tok\noauth_token_secret=ts\n",
        )
        config = load_ini_config(path)
        assert config.oauth.consumer_key == "ck"
        assert config.oauth.consumer_secret == "cs"
        assert config.oauth.token == "tok"
        assert config.oauth.token_secret == "ts"

    def test_other_section_and_unknown_keys(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "flickcurl.conf",
            "[flickr]\napi_key=a\n\n[zooomr]\napi_key=z\nsecret=s\nfavourite_colour=blue\n",
        )
        config = load_ini_config(path, section="zooomr")
        assert config.legacy.api_key == "z"
        assert config.legacy.shared_secret == "s"

    def test_base_settings_kept(self, tmp_path: Path) -> None:
        path = write(tmp_path / "flickcurl.conf", "[flickr]\napi_key=a\nsecret=b\n")
        base = SessionConfig(request_delay_ms=0, user_agent="ua/1")
        config = load_ini_config(path, base=base)
        assert config.request_delay_ms == 0
        assert config.user_agent == "ua/1"
        assert config.legacy.api_key == "a"

    def test_percent_signs_not_interpolated(self, tmp_path: Path) -> None:
        path = write(tmp_path / "flickcurl.conf", "[flickr]\nsecret=ab%cd\n")
        assert load_ini_config(path).legacy.shared_secret == "ab%cd"

    def test_missing_section(self, tmp_path: Path) -> None:
        path = write(tmp_path / "flickcurl.conf", "[other]\napi_key=a\n")
        with pytest.raises(ConfigError, match=r"\[flickr\]"):
            load_ini_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_ini_config(tmp_path / "missing.conf")

    def test_default_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = write(tmp_path / ".flickcurl.conf", "[flickr]\napi_key=home\n")
        monkeypatch.setattr("flickr_rest.config_loader.DEFAULT_INI_PATH", path)
        assert load_ini_config().legacy.api_key == "home"


class TestSubstituteEnvVars:
    """Tests for _substitute_env_vars."""

    def test_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_FLICKR_A", "1")
        data = {"x": ["${TEST_FLICKR_A}", {"y": "pre-${TEST_FLICKR_A}"}], "z": 5}
        assert _substitute_env_vars(data) == {"x": ["1", {"y": "pre-1"}], "z": 5}
