from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AutoClickerSettings:
    base_interval_ms: float = 2000.0
    cap: int = 10
    base_cost: int = 50


@dataclass
class LoopSettings:
    tick_rate: float = 20.0
    max_catch_up: int = 10


@dataclass
class DisplaySettings:
    total_achievements: int = 60
    default_background: str = "White"


@dataclass
class PersistenceSettings:
    app_name: str = "BeyondEpic"
    export_file_name: str = "beyond-epic-save.json"


@dataclass
class Settings:
    autoclicker: AutoClickerSettings = field(default_factory=AutoClickerSettings)
    loop: LoopSettings = field(default_factory=LoopSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @staticmethod
    def _section(section_cls: type, name: str, values: object):
        """Build one settings section, dropping keys the dataclass does not know."""
        if values is None:
            return section_cls()
        if not isinstance(values, dict):
            logger.warning("Ignoring settings section '%s': expected a mapping", name)
            return section_cls()
        known = {f.name for f in dataclasses.fields(section_cls)}
        unknown = sorted(str(k) for k in values if k not in known)
        if unknown:
            logger.warning("Ignoring unknown settings in '%s': %s", name, ", ".join(unknown))
        return section_cls(**{k: v for k, v in values.items() if k in known})

    @classmethod
    def _from_dict(cls, data: dict) -> "Settings":
        sections = {
            "autoclicker": AutoClickerSettings,
            "loop": LoopSettings,
            "display": DisplaySettings,
            "persistence": PersistenceSettings,
        }
        for name in sorted(set(data) - set(sections)):
            logger.warning("Ignoring unknown settings section '%s'", name)
        built = {name: cls._section(section_cls, name, data.get(name)) for name, section_cls in sections.items()}
        return Settings(**built)

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "Settings":
        """Load settings from built-in defaults and optional user override file.

        If user_path is provided and exists, overlay values onto defaults.
        """
        try:
            ref = resources.files("beyond_epic.data").joinpath("default_settings.yaml")
            with ref.open("r", encoding="utf-8") as f:
                default_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Default settings not found; falling back to dataclass defaults.")
            default_data = dataclasses.asdict(Settings())

        user_data = {}
        if user_path is not None:
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user settings from %s", user_path)
            else:
                logger.warning("User settings file not found: %s", user_path)

        merged = cls._deep_merge(default_data, user_data)
        settings = cls._from_dict(merged)
        logger.debug("Settings merged: %s", settings)
        return settings

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(dataclasses.asdict(self), f, sort_keys=False)
        logger.info("Saved settings to %s", path)
