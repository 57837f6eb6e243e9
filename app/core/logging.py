from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from app.core.config import settings


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Configure application logging (console + optional rotating file).

    Idempotent: safe to call multiple times.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_dir = log_dir if log_dir is not None else settings.LOG_DIR

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(level_name)

    if not any(getattr(h, "_payment_calendar", False) for h in root_logger.handlers):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        stream_handler._payment_calendar = True
        root_logger.addHandler(stream_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        server_log_path = path / "server.log"
        if not any(
            getattr(h, "baseFilename", None) == str(server_log_path.resolve())
            for h in root_logger.handlers
        ):
            file_handler = RotatingFileHandler(
                str(server_log_path), maxBytes=5 * 1024 * 1024, backupCount=3
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    # Route uvicorn's loggers through the root handlers
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = []
        uv_logger.propagate = True
