from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from platformdirs import PlatformDirs

logger = logging.getLogger(__name__)

SAVE_DIR_ENV = "BE_SAVE_DIR"
APP_NAME = "BeyondEpic"
EXPORT_FILE_NAME = "beyond-epic-save.json"

PathLike = Union[str, Path]


def default_save_dir(app_name: str = APP_NAME) -> Path:
    """Directory exports land in: ``$BE_SAVE_DIR`` or the platform user-data dir."""
    override = os.environ.get(SAVE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(PlatformDirs(appname=app_name, appauthor=False).user_data_dir)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text via a temporary file and replace, so readers never see half a save."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


def export_snapshot(
    text: str,
    directory: Optional[PathLike] = None,
    *,
    file_name: str = EXPORT_FILE_NAME,
    app_name: str = APP_NAME,
) -> Path:
    target_dir = Path(directory) if directory is not None else default_save_dir(app_name)
    path = target_dir / file_name
    atomic_write_text(path, text)
    logger.info("Exported save to %s", path)
    return path


def read_snapshot(path: PathLike) -> str:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    logger.debug("Read %d bytes of save data from %s", len(text), p)
    return text


__all__ = [
    "APP_NAME",
    "EXPORT_FILE_NAME",
    "SAVE_DIR_ENV",
    "atomic_write_text",
    "default_save_dir",
    "export_snapshot",
    "read_snapshot",
]
