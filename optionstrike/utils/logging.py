from __future__ import annotations
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONFIGURED = False


def setup_logging(level: Optional[str] = None, debug: bool = False) -> None:
    """Configure root logging once; later calls only adjust the level."""
    global _CONFIGURED

    level_name = (level or "INFO").upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    if not _CONFIGURED:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        _CONFIGURED = True
    else:
        logging.getLogger().setLevel(numeric_level)

    if debug:
        logging.getLogger("optionstrike").setLevel(logging.DEBUG)
