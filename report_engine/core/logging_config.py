"""Root logger setup for the report engine.

Console output is always on. When ``log_dir`` is configured, two rotating
files are added next to it: ``engine.log`` at the configured level and
``errors.log`` for ERROR and above. Only handlers installed here are ever
replaced, so calling this again (one call per app) never stacks handlers
or removes ones added by a host process.
"""

import logging
import logging.handlers
import sys

from report_engine.core.config import Settings, get_settings

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Libraries that log image and upload internals at DEBUG
CHATTY_LOGGERS = ("PIL", "python_multipart", "multipart")

_HANDLER_MARK = "_report_engine_handler"


def _mark(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    setattr(handler, _HANDLER_MARK, True)
    return handler


def _rotating(path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    return _mark(handler, level, FILE_FORMAT)


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Install the engine's handlers on the root logger.

    Args:
        settings: Source of ``log_level`` and ``log_dir``. If None, uses
            global settings.

    Returns:
        The configured root logger.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in [h for h in root_logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers = [_mark(logging.StreamHandler(sys.stdout), level, CONSOLE_FORMAT)]
    if settings.log_dir is not None:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating(settings.log_dir / "engine.log", level))
        handlers.append(_rotating(settings.log_dir / "errors.log", logging.ERROR))
    for handler in handlers:
        root_logger.addHandler(handler)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    # structlog events (assembly flow) render through these handlers too
    settings.configure_logging()

    return root_logger
