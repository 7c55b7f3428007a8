from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import Draft202012Validator

from ..errors import InvalidRarityTable
from .table import RarityTable, rarity_table_from_entries

logger = logging.getLogger(__name__)

_DATA_PKG = "beyond_epic.data"


@lru_cache(maxsize=1)
def _load_table_schema() -> Dict[str, Any]:
    """
    Load the rarity table JSON schema bundled with the package.

    Cached since the schema is static.
    """
    ref = resources.files(_DATA_PKG).joinpath("schemas").joinpath("rarity_table.schema.json")
    with ref.open("r", encoding="utf-8") as f:
        logger.debug("Loading rarity table schema from %s", ref)
        return json.load(f)


def validate_rarity_table_dict(data: Dict[str, Any]) -> None:
    """
    Validate a rarity table document against the bundled JSON schema.

    Raises:
        InvalidRarityTable if the data is invalid; every schema error is logged.
    """
    validator = Draft202012Validator(_load_table_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        for err in errors:
            logger.error("Rarity table schema error at %s: %s", list(err.path), err.message)
        first = errors[0]
        path = "/".join(str(p) for p in first.path) or "<root>"
        raise InvalidRarityTable(f"Invalid rarity table at {path}: {first.message}")


def rarity_table_from_dict(data: Dict[str, Any]) -> RarityTable:
    """Validate a ``{"tiers": [...]}`` document and build the table from it."""
    validate_rarity_table_dict(data)
    return rarity_table_from_entries(data["tiers"])


def load_rarity_table(path: Path) -> RarityTable:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    table = rarity_table_from_dict(data)
    logger.info("Loaded %d rarity tiers from %s", len(table), path)
    return table


@lru_cache(maxsize=1)
def _bundled_table() -> RarityTable:
    ref = resources.files(_DATA_PKG).joinpath("rarities.json")
    with ref.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return rarity_table_from_dict(data)


def default_rarity_table(override: Optional[Path] = None) -> RarityTable:
    """
    Return the rarity table used by new sessions.

    An explicit ``override`` path, or the BE_RARITY_TABLE environment
    variable, replaces the bundled 30-tier catalog.
    """
    path = override or os.environ.get("BE_RARITY_TABLE")
    if path:
        return load_rarity_table(Path(path))
    return _bundled_table()


__all__ = [
    "default_rarity_table",
    "load_rarity_table",
    "rarity_table_from_dict",
    "validate_rarity_table_dict",
]
