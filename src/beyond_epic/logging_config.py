import logging
import os
from typing import Optional


def configure_logging(default_level: int = logging.INFO, level: Optional[int] = None) -> None:
    """Configure root logger with a sane default format.

    Respects BE_LOG_LEVEL env var if present; an explicit ``level`` wins over both.
    """
    if level is None:
        level = default_level
        level_name = os.getenv("BE_LOG_LEVEL")
        if level_name:
            level = getattr(logging, level_name.upper(), default_level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
