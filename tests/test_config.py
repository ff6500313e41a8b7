"""Test configuration loading"""

from pathlib import Path
from unittest.mock import patch

import pytest

from genre_tagger.core.config import (
    ENV_BASE_PATH,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    load_config,
)
from genre_tagger.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep real credentials and .env files out of these tests"""
    for name in (ENV_CLIENT_ID, ENV_CLIENT_SECRET, ENV_BASE_PATH):
        monkeypatch.delenv(name, raising=False)
    with patch("genre_tagger.core.config.load_dotenv"):
        yield


def write_config(directory: Path, content: str) -> Path:
    path = directory / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test load_config() from file and environment"""

    def test_full_file(self, temp_dir):
        library = temp_dir / "music"
        library.mkdir()
        path = write_config(temp_dir, f"""
spotify:
  client_id: "abc"
  client_secret: "def"
library:
  base_path: "{library}"
  depth: 2
resolver:
  max_retries: 6
  jitter_ms_per_identifier: 5
write:
  workers: 8
  output_policy: alongside
output:
  log_directory: "{temp_dir / 'logs'}"
""")
        config = load_config(path)

        assert config.spotify.client_id == "abc"
        assert config.library.base_path == library.resolve()
        assert config.library.depth == 2
        assert config.library.manifest_filename == ".song_ids"
        assert config.resolver.max_retries == 6
        assert config.resolver.jitter_ms_per_identifier == 5
        assert config.resolver.base_delay == 1.0
        assert config.write.workers == 8
        assert config.write.output_policy == "alongside"
        assert config.output.log_directory == (temp_dir / "logs").resolve()

    def test_environment_only(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv(ENV_CLIENT_ID, "env_id")
        monkeypatch.setenv(ENV_CLIENT_SECRET, "env_secret")
        monkeypatch.setenv(ENV_BASE_PATH, str(temp_dir))

        config = load_config()

        assert config.spotify.client_id == "env_id"
        assert config.spotify.client_secret == "env_secret"
        assert config.library.base_path == temp_dir.resolve()
        assert config.library.depth == 1
        assert config.write.workers == 4
        assert config.write.output_policy == "replace"

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        path = write_config(temp_dir, f"""
spotify:
  client_id: "file_id"
  client_secret: "file_secret"
library:
  base_path: "{temp_dir}"
""")
        monkeypatch.setenv(ENV_CLIENT_ID, "env_id")

        config = load_config(path)

        assert config.spotify.client_id == "env_id"
        assert config.spotify.client_secret == "file_secret"

    def test_base_path_argument_wins(self, temp_dir, monkeypatch):
        other = temp_dir / "other"
        other.mkdir()
        monkeypatch.setenv(ENV_CLIENT_ID, "id")
        monkeypatch.setenv(ENV_CLIENT_SECRET, "secret")
        monkeypatch.setenv(ENV_BASE_PATH, str(temp_dir))

        config = load_config(write_config(temp_dir, ""), base_path=other)

        assert config.library.base_path == other.resolve()

    def test_explicit_missing_file(self, temp_dir):
        with pytest.raises(ConfigError, match="not found"):
            load_config(temp_dir / "missing.yaml")

    def test_missing_credentials(self, temp_dir):
        path = write_config(temp_dir, f"""
library:
  base_path: "{temp_dir}"
""")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.details["field"] == "spotify.client_id"

    def test_base_path_must_exist(self, temp_dir):
        path = write_config(temp_dir, f"""
spotify: {{client_id: a, client_secret: b}}
library:
  base_path: "{temp_dir / 'nope'}"
""")
        with pytest.raises(ConfigError, match="not a directory"):
            load_config(path)

    def test_invalid_yaml(self, temp_dir):
        path = write_config(temp_dir, "spotify: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_invalid_policy(self, temp_dir):
        path = write_config(temp_dir, f"""
spotify: {{client_id: a, client_secret: b}}
library: {{base_path: "{temp_dir}"}}
write: {{output_policy: merge}}
""")
        with pytest.raises(ConfigError, match="output_policy"):
            load_config(path)

    @pytest.mark.parametrize("section", [
        "write: {workers: 0}",
        "library: {depth: -1}",
        "resolver: {max_retries: -1}",
        "resolver: {base_delay: 5, max_delay: 1}",
    ])
    def test_invalid_numbers(self, temp_dir, monkeypatch, section):
        monkeypatch.setenv(ENV_CLIENT_ID, "id")
        monkeypatch.setenv(ENV_CLIENT_SECRET, "secret")
        monkeypatch.setenv(ENV_BASE_PATH, str(temp_dir))
        path = write_config(temp_dir, section)

        with pytest.raises(ConfigError):
            load_config(path)


class TestOverrides:
    """Test Config.with_overrides()"""

    def test_overrides_applied(self, test_config):
        config = test_config.with_overrides(depth=2, workers=16, output_policy="alongside")

        assert config.library.depth == 2
        assert config.write.workers == 16
        assert config.write.output_policy == "alongside"
        assert test_config.write.workers == 2

    def test_none_keeps_values(self, test_config):
        assert test_config.with_overrides() == test_config

    def test_invalid_override(self, test_config):
        with pytest.raises(ConfigError):
            test_config.with_overrides(workers=0)
