"""Logging setup for monolog processes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(
    log_file_path: Optional[Union[str, Path]] = None,
    level: Union[int, str] = logging.INFO,
    *,
    console_level: Union[int, str] = logging.WARNING,
) -> Optional[Path]:
    """Route records to an optional log file plus a quiet console handler.

    Args:
        log_file_path: Where detailed logs go; ``None`` disables the file handler.
        level: Level for the file handler and the ``monolog`` logger.
        console_level: Console threshold; the console stays terse by default.

    Returns:
        The resolved log file path, if one was configured.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    log_file: Optional[Path] = None
    if log_file_path is not None:
        log_file = Path(log_file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    root.addHandler(console_handler)

    root.setLevel(logging.DEBUG)
    logging.getLogger("monolog").setLevel(level)
    # urllib3 is chatty at DEBUG for every Ollama request.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_file


__all__ = ["setup_logging"]
