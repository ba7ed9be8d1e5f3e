from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

_installed: list[logging.Handler] = []


def setup_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Log to the console and to ``<log_dir>/<YYYYMMDD>.txt``.

    The dated file is appended to, so several runs on one day share it.
    Call ``close_logging`` when the run is over.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{datetime.now().strftime('%Y%m%d')}.txt"

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    ch = logging.StreamHandler()
    ch.setLevel(getattr(logging, level.upper(), logging.INFO))
    ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    _installed.clear()

    logger.addHandler(fh)
    logger.addHandler(ch)
    _installed.extend([fh, ch])

    logging.getLogger(__name__).info("Logging to %s", log_path)
    return log_path


def close_logging() -> None:
    """Detach and close the handlers added by ``setup_logging``."""
    logger = logging.getLogger()
    while _installed:
        h = _installed.pop()
        logger.removeHandler(h)
        h.close()
