# generic_config.py
from __future__ import annotations

from dataclasses import asdict, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Type, TypeVar
import shutil
import time

import yaml

from logger import get_logger

ACTIVE_FILENAME = "settings.yaml"
DEFAULT_FILENAME = "default_settings.yaml"
BACKUP_DIRNAME = "backups"
BACKUP_KEEP = 5  # keep most recent N backups
DEFAULT_SCOPE = "default"

S = TypeVar("S")  # Config schema type (must be a dataclass)


class ConfigValidationError(ValueError):
    """Raised when a settings object fails its own validate() check."""


class ConfigManager(Generic[S]):
    """
    YAML-backed config manager for dataclass-based settings.
    Handles: load/save per scope, defaults file, timestamped backups (+ pruning).

    A scope is a sub-directory (e.g. one per microscope profile).
    If the schema defines validate(), it is run on every load and save.
    """

    def __init__(
        self,
        schema_cls: Type[S],
        *,
        root_dir: str | Path = "./config",
        scope_namer: Callable[[str], str] | None = None,
        default_filename: str = DEFAULT_FILENAME,
        backup_dirname: str = BACKUP_DIRNAME,
        backup_keep: int = BACKUP_KEEP,
    ) -> None:
        if not is_dataclass(schema_cls):
            raise TypeError("schema_cls must be a dataclass type")
        self.schema_cls = schema_cls
        self.root_dir = Path(root_dir).resolve()
        self.scope_namer = scope_namer or (lambda s: s)
        self.default_filename = default_filename
        self.backup_dirname = backup_dirname
        self.backup_keep = backup_keep
        self._logger = get_logger()

    # -------------------------
    # YAML (de)serialization
    # -------------------------
    def _to_dict(self, settings: S) -> Dict[str, Any]:
        data = asdict(settings)
        # Enums are stored by value so the YAML stays plain
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}

    def _from_dict(self, data: Dict[str, Any] | None) -> S:
        data = data or {}
        allowed = {f.name for f in fields(self.schema_cls)}
        unknown = sorted(set(data) - allowed)
        if unknown:
            self._logger.warning(f"Ignoring unknown settings keys: {', '.join(unknown)}")
        try:
            settings = self.schema_cls(**{k: v for k, v in data.items() if k in allowed})  # type: ignore
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e
        self._validate(settings)
        return settings

    def _validate(self, settings: S) -> None:
        validate = getattr(settings, "validate", None)
        if validate is None:
            return
        try:
            validate()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def scope_dir(self, scope: str = DEFAULT_SCOPE) -> Path:
        d = self.root_dir / self.scope_namer(scope)
        d.mkdir(parents=True, exist_ok=True)
        return d

    def active_path(self, scope: str = DEFAULT_SCOPE) -> Path:
        return self.scope_dir(scope) / ACTIVE_FILENAME

    def default_path(self, scope: str = DEFAULT_SCOPE) -> Path:
        return self.scope_dir(scope) / self.default_filename

    def backup_dir(self, scope: str = DEFAULT_SCOPE) -> Path:
        bd = self.scope_dir(scope) / self.backup_dirname
        bd.mkdir(parents=True, exist_ok=True)
        return bd

    def _backup_if_exists(self, scope: str) -> None:
        src = self.active_path(scope)
        if not src.exists():
            return
        ts = time.strftime("%Y%m%d-%H%M%S")
        dst = self.backup_dir(scope) / f"{src.stem}.{ts}{src.suffix}"
        try:
            shutil.copy2(src, dst)
        except OSError as e:
            self._logger.warning(f"Failed to create settings backup: {e}")
            return
        for old in self.list_backups(scope)[self.backup_keep:]:
            try:
                old.unlink(missing_ok=True)
            except OSError as e:
                self._logger.warning(f"Failed to prune backup {old.name}: {e}")

    def _read(self, path: Path) -> S:
        with open(path, "r", encoding="utf-8") as f:
            return self._from_dict(yaml.safe_load(f) or {})

    # -------- public scope-first API
    def load(self, scope: str = DEFAULT_SCOPE) -> S:
        """
        Load the active settings for a scope, falling back to the defaults
        file and then to the schema defaults. A file that exists but fails
        to parse or validate is logged and skipped.
        """
        for p in (self.active_path(scope), self.default_path(scope)):
            if not p.exists():
                continue
            try:
                return self._read(p)
            except (OSError, yaml.YAMLError, TypeError, ConfigValidationError) as e:
                self._logger.error(f"Error loading settings from {p}: {e}")
        return self.schema_cls()

    def load_from_file(self, path: str | Path) -> S:
        return self._read(Path(path))

    def save(self, settings: S, scope: str = DEFAULT_SCOPE) -> Path:
        self._validate(settings)
        self._backup_if_exists(scope)
        p = self.active_path(scope)
        with open(p, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._to_dict(settings), f, sort_keys=False)
        self._logger.debug(f"Settings saved to {p}")
        return p

    def write_defaults(self, settings: S | None = None, scope: str = DEFAULT_SCOPE) -> Path:
        payload = self._to_dict(settings or self.schema_cls())
        dp = self.default_path(scope)
        with open(dp, "w", encoding="utf-8") as f:
            yaml.safe_dump(payload, f, sort_keys=False)
        return dp

    def load_defaults(self, scope: str = DEFAULT_SCOPE) -> S:
        dp = self.default_path(scope)
        if not dp.exists():
            return self.schema_cls()
        try:
            return self._read(dp)
        except (OSError, yaml.YAMLError, TypeError, ConfigValidationError) as e:
            self._logger.error(f"Error loading default settings: {e}")
            return self.schema_cls()

    def restore_defaults_into_active(self, scope: str = DEFAULT_SCOPE) -> S:
        defaults = self.load_defaults(scope)
        self.save(defaults, scope)
        return defaults

    def list_backups(self, scope: str = DEFAULT_SCOPE) -> List[Path]:
        stem, suffix = ACTIVE_FILENAME.rsplit(".", 1)
        return sorted(
            self.backup_dir(scope).glob(f"{stem}.*.{suffix}"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
