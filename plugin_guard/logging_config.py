import logging
import logging.handlers
from rich.logging import RichHandler
from rich.console import Console

from .config import Settings

FILE_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s() - %(message)s"

# Per-request INFO lines from these drown out the scan summaries
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.strip().upper())
    if isinstance(level, int):
        return level
    return logging.INFO


def _console_handler(level: int) -> RichHandler:
    handler = RichHandler(
        console=Console(width=120),
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setLevel(level)
    return handler


def _file_handler(settings: Settings, level: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=settings.log_file_path,
        when="midnight",
        backupCount=settings.log_retention_days,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logging(settings: Settings) -> None:
    """Route the root logger to a rich console and a daily rotated log file."""
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    level = _resolve_level(settings.log_level)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.handlers.TimedRotatingFileHandler):
            handler.close()

    root_logger.setLevel(level)
    root_logger.addHandler(_console_handler(level))
    root_logger.addHandler(_file_handler(settings, level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(
        f"[bold green]Plugin Guard logging ready[/] - "
        f"file [cyan]{settings.log_file_path}[/], "
        f"level [yellow]{logging.getLevelName(level)}[/], "
        f"kept [blue]{settings.log_retention_days}[/] days"
    )
