"""Configuration loader for settings.yaml and per-user profiles."""

import hashlib
from pathlib import Path
from typing import TypeVar

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from news_digest.config.errors import ConfigurationError
from news_digest.config.schemas import Settings, UserProfile


logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

SETTINGS_FILE = "settings.yaml"
USERS_DIR = "users"
USER_SUFFIX = ".yaml"


def _format_validation_errors(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "loc": ".".join(str(loc) for loc in err["loc"]),
            "msg": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


class ConfigLoader:
    """Loads and validates configuration from a config directory.

    Layout::

        <config_dir>/settings.yaml
        <config_dir>/users/<name>.yaml

    Every failure surfaces as ``ConfigurationError`` with the offending path.
    """

    def __init__(self, config_dir: Path | str, run_id: str | None = None) -> None:
        """Initialize the loader.

        Args:
            config_dir: Directory holding settings.yaml and users/.
            run_id: Optional run identifier for logging.
        """
        self._config_dir = Path(config_dir)
        self._file_checksums: dict[str, str] = {}
        self._log = logger.bind(component="config", run_id=run_id)

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory."""
        return self._config_dir

    @property
    def users_dir(self) -> Path:
        """Get the per-user profile directory."""
        return self._config_dir / USERS_DIR

    @property
    def file_checksums(self) -> dict[str, str]:
        """Get SHA-256 checksums of loaded files."""
        return self._file_checksums.copy()

    def _load_yaml_file(self, file_path: Path) -> dict[str, object]:
        """Load a YAML file and record its checksum.

        Raises:
            ConfigurationError: If the file is missing or not valid YAML.
        """
        try:
            content_bytes = file_path.read_bytes()
        except FileNotFoundError as e:
            self._log.error("config_file_not_found", file_path=str(file_path))
            raise ConfigurationError(
                "file not found",
                file_path=str(file_path),
                errors=[{"loc": "file", "msg": str(e), "type": "file_not_found"}],
            ) from e

        self._file_checksums[str(file_path)] = hashlib.sha256(content_bytes).hexdigest()

        try:
            parsed = yaml.safe_load(content_bytes.decode("utf-8")) or {}
        except yaml.YAMLError as e:
            self._log.error(
                "config_yaml_parse_error", file_path=str(file_path), error=str(e)
            )
            raise ConfigurationError(
                "invalid YAML",
                file_path=str(file_path),
                errors=[{"loc": "yaml", "msg": str(e), "type": "yaml_parse_error"}],
            ) from e

        if not isinstance(parsed, dict):
            raise ConfigurationError(
                "top-level YAML value must be a mapping", file_path=str(file_path)
            )
        return parsed

    def _validate(
        self, model: type[M], data: dict[str, object], file_path: Path
    ) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            errors = _format_validation_errors(e)
            self._log.error(
                "config_validation_failed",
                file_path=str(file_path),
                validation_error_count=len(errors),
                errors=errors,
            )
            raise ConfigurationError(
                f"validation failed with {len(errors)} errors",
                file_path=str(file_path),
                errors=errors,
            ) from e

    def load_settings(self) -> Settings:
        """Load and validate settings.yaml.

        Returns:
            Validated settings.

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        path = self._config_dir / SETTINGS_FILE
        data = self._load_yaml_file(path)
        settings = self._validate(Settings, data, path)
        self._log.info(
            "config_file_loaded",
            file_path=str(path),
            file_sha256=self._file_checksums[str(path)],
            feed_count=len(settings.feeds),
        )
        return settings

    def list_users(self) -> list[str]:
        """List configured user names in sorted order.

        Returns:
            User names (file stems under users/).
        """
        if not self.users_dir.is_dir():
            return []
        return sorted(p.stem for p in self.users_dir.glob(f"*{USER_SUFFIX}"))

    def user_path(self, name: str) -> Path:
        """Get the profile path for a user."""
        return self.users_dir / f"{name}{USER_SUFFIX}"

    def load_user(self, name: str) -> UserProfile:
        """Load and validate one user profile.

        Args:
            name: User name.

        Returns:
            Validated user profile.

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        path = self.user_path(name)
        data = self._load_yaml_file(path)
        profile = self._validate(UserProfile, data, path)
        self._log.debug("user_profile_loaded", user=name, file_path=str(path))
        return profile

    def load_users(self, names: list[str] | None = None) -> dict[str, UserProfile]:
        """Load several user profiles.

        Args:
            names: Users to load; all configured users when None.

        Returns:
            Mapping of user name to profile, in request order.
        """
        selected = names if names is not None else self.list_users()
        return {name: self.load_user(name) for name in selected}

    def save_user(self, name: str, profile: UserProfile) -> Path:
        """Write a user profile back to its YAML file.

        Args:
            name: User name.
            profile: Profile to write.

        Returns:
            Path of the written file.
        """
        path = self.user_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump(
            profile.model_dump(mode="json"), sort_keys=False, allow_unicode=True
        )
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)
        self._log.info("user_profile_saved", user=name, file_path=str(path))
        return path
