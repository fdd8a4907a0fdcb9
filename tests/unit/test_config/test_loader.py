"""Unit tests for the configuration loader."""

from pathlib import Path

import pytest

from news_digest.config.errors import ConfigurationError
from news_digest.config.loader import ConfigLoader
from news_digest.config.schemas import UserPreferences


SETTINGS_YAML = """\
clustering:
  similarity_threshold: 0.8
breaking:
  max_per_day: 2
feeds:
  - name: Outlet A
    url: https://a.example.com/rss
"""

USER_YAML = """\
email: alice@example.com
schedule:
  timezone: Australia/Sydney
topics:
  boost: [climate]
  exclude: [cricket]
"""


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a config directory with settings and one user."""
    (tmp_path / "users").mkdir()
    (tmp_path / "settings.yaml").write_text(SETTINGS_YAML, encoding="utf-8")
    (tmp_path / "users" / "alice.yaml").write_text(USER_YAML, encoding="utf-8")
    return tmp_path


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_settings(self, config_dir: Path) -> None:
        """Values from the file override defaults."""
        loader = ConfigLoader(config_dir, run_id="test")
        settings = loader.load_settings()

        assert settings.clustering.similarity_threshold == 0.8
        assert settings.breaking.max_per_day == 2
        assert [f.name for f in settings.feeds] == ["Outlet A"]
        assert str(config_dir / "settings.yaml") in loader.file_checksums

    def test_missing_settings(self, tmp_path: Path) -> None:
        """A missing settings file is a configuration error."""
        with pytest.raises(ConfigurationError, match="file not found") as exc_info:
            ConfigLoader(tmp_path).load_settings()
        assert exc_info.value.file_path == str(tmp_path / "settings.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Unparseable YAML is reported with the file path."""
        settings_path = tmp_path / "settings.yaml"
        settings_path.write_text("clustering: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="invalid YAML"):
            ConfigLoader(tmp_path).load_settings()

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        """The top level must be a mapping."""
        (tmp_path / "settings.yaml").write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigLoader(tmp_path).load_settings()

    def test_validation_errors_are_listed(self, tmp_path: Path) -> None:
        """Each schema violation is reported with its location."""
        (tmp_path / "settings.yaml").write_text(
            "clustering:\n  similarity_threshold: 2.0\n  query_k: 0\n",
            encoding="utf-8",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(tmp_path).load_settings()

        locs = {e["loc"] for e in exc_info.value.errors}
        assert locs == {"clustering.similarity_threshold", "clustering.query_k"}

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """An empty settings file yields defaults."""
        (tmp_path / "settings.yaml").write_text("", encoding="utf-8")
        assert ConfigLoader(tmp_path).load_settings().feeds == []

    def test_list_and_load_users(self, config_dir: Path) -> None:
        """Users are the YAML files under users/."""
        (config_dir / "users" / "bob.yaml").write_text(
            "email: bob@example.com\n", encoding="utf-8"
        )
        loader = ConfigLoader(config_dir)

        assert loader.list_users() == ["alice", "bob"]
        profiles = loader.load_users()
        assert profiles["alice"].schedule.timezone == "Australia/Sydney"
        assert profiles["alice"].topics.exclude == ["cricket"]
        assert profiles["bob"].topics.boost == []

    def test_no_users_dir(self, tmp_path: Path) -> None:
        """A missing users/ directory means no users."""
        assert ConfigLoader(tmp_path).list_users() == []

    def test_missing_user(self, config_dir: Path) -> None:
        """Loading an unknown user fails."""
        with pytest.raises(ConfigurationError, match="file not found"):
            ConfigLoader(config_dir).load_user("carol")

    def test_save_user_round_trip(self, config_dir: Path) -> None:
        """Saved profiles load back unchanged."""
        loader = ConfigLoader(config_dir)
        profile = loader.load_user("alice")
        updated = profile.model_copy(
            update={"topics": UserPreferences(boost=["climate", "housing"])}
        )

        path = loader.save_user("alice", updated)

        assert path == config_dir / "users" / "alice.yaml"
        assert loader.load_user("alice") == updated
        assert not path.with_suffix(".yaml.tmp").exists()
