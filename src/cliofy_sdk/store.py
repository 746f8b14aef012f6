"""Persistent configuration store for the Cliofy SDK.

The store owns the configuration record. It is the only component that
reads or writes ``config.json``, and every change to the record is made
through ``save``/``update`` so the in-memory copy is a write-through
cache of the file.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .config import ConfigPaths, EnvironmentDefaults, StoredConfig, default_config_dir
from .errors import ConfigPersistError, ConfigurationInvalidError, ErrorCode
from .telemetry import get_logger


class ConfigStore:
    """Durable key/value record on local disk with a lazily-loaded memo."""

    def __init__(
        self,
        config_dir: str | Path | None = None,
        *,
        defaults: EnvironmentDefaults | None = None,
    ) -> None:
        """Initialize the store and create its directories.

        Args:
            config_dir: Directory holding ``config.json``. Defaults to
                ``$CLIOFY_CONFIG_DIR`` or ``~/.cliofy``.
            defaults: Endpoint/timeout used when no valid record exists.
                Read from the environment when omitted.
        """
        base_dir = Path(config_dir) if config_dir is not None else default_config_dir()
        self._paths = ConfigPaths.in_dir(base_dir)
        self._defaults = defaults or EnvironmentDefaults.from_env()
        self._config: StoredConfig | None = None
        self._logger = get_logger().bind(config_path=str(self._paths.config_file))

        self._ensure_directories()

    def _ensure_directories(self) -> None:
        for directory in {
            self._paths.config_file.parent,
            self._paths.session_file.parent,
            self._paths.logs_dir,
        }:
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> ConfigPaths:
        """Get configuration file paths."""
        return self._paths

    @property
    def defaults(self) -> StoredConfig:
        """Get the record used when nothing valid is on disk."""
        return StoredConfig.defaults(self._defaults)

    @property
    def config(self) -> StoredConfig:
        """Get the current record, loading it on first access."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> StoredConfig:
        """Read the record from disk.

        Never raises for a missing, unreadable or invalid file; the
        default record is returned instead and a warning is logged.
        """
        path = self._paths.config_file
        if not path.exists():
            self._logger.debug("config_not_found")
            return self.defaults

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return StoredConfig.model_validate(data)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and pydantic's ValidationError are ValueErrors
            self._logger.warning(
                "config_load_corrupted",
                code=ErrorCode.CONFIG_LOAD_CORRUPTED.value,
                error=str(e),
            )
            return self.defaults

    def reload(self) -> StoredConfig:
        """Drop the memo and read the record again."""
        self._config = None
        return self.config

    def save(self, record: StoredConfig | Mapping[str, Any]) -> StoredConfig:
        """Validate and persist a record.

        Args:
            record: Record to save, as a model or a mapping keyed by field
                name or on-disk alias.

        Returns:
            The saved record, which is now the memoized record.

        Raises:
            ConfigurationInvalidError: If the record fails validation.
                Nothing is written.
            ConfigPersistError: If the file cannot be written. The memo
                keeps its previous value.
        """
        data = record.model_dump() if isinstance(record, StoredConfig) else dict(record)
        try:
            validated = StoredConfig.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ConfigurationInvalidError(
                f"Invalid configuration: {e}", field=field
            ) from e

        path = self._paths.config_file
        try:
            path.write_text(
                json.dumps(validated.to_json_dict(), indent=2), encoding="utf-8"
            )
        except OSError as e:
            self._logger.error("config_save_failed", error=str(e))
            raise ConfigPersistError(path=str(path), cause=e) from e

        self._config = validated
        return validated

    def update(self, **changes: Any) -> StoredConfig:
        """Merge field changes onto the current record and save it.

        A value of ``None`` removes the field from the record.

        Raises:
            ConfigurationInvalidError: On unknown field names or when the
                merged record fails validation.
        """
        unknown = set(changes) - set(StoredConfig.model_fields)
        if unknown:
            raise ConfigurationInvalidError(
                f"Unknown configuration fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        merged = {**self.config.model_dump(), **changes}
        merged = {key: value for key, value in merged.items() if value is not None}
        return self.save(merged)

    def remove(self, *fields: str) -> StoredConfig:
        """Remove fields from the record.

        Unlike ``update``, a failed write still drops the fields from the
        in-memory record, so removed secrets are never served again.

        Raises:
            ConfigPersistError: If the file cannot be written, after the
                memo has been updated.
        """
        try:
            return self.update(**dict.fromkeys(fields))
        except ConfigPersistError:
            remaining = {
                key: value
                for key, value in self.config.model_dump().items()
                if key not in fields and value is not None
            }
            self._config = StoredConfig.model_validate(remaining)
            raise

    def reset(self) -> StoredConfig:
        """Delete the configuration file and fall back to defaults."""
        path = self._paths.config_file
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._logger.error("config_reset_failed", error=str(e))
            raise ConfigPersistError(
                "Failed to clear configuration", path=str(path), cause=e
            ) from e
        self._config = self.defaults
        return self._config
