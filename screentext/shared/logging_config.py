"""Shared logging configuration for ScreenText."""

import logging
from logging.handlers import RotatingFileHandler

from screentext.shared.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def configure_logging(component: str = "screentext") -> logging.Logger:
    """Configure logging based on debug setting.

    Args:
        component: Name of the component for the logger (e.g., 'screentext.server')

    Returns:
        Configured logger instance.
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )

    if settings.log_to_file:
        short_name = component.rsplit(".", 1)[-1]
        log_file = settings.logs_path / f"screentext-{short_name}.log"
        root = logging.getLogger()
        already_attached = any(
            isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", "") == str(log_file)
            for h in root.handlers
        )
        if not already_attached:
            settings.logs_path.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler.setLevel(log_level)
            root.addHandler(handler)

    # Suppress noisy third-party loggers (even in debug mode)
    for name in ("PIL", "urllib3", "rapidocr_onnxruntime"):
        logging.getLogger(name).setLevel(logging.WARNING)

    if not settings.debug:
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    return logging.getLogger(component)
