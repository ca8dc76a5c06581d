import logging
import os

from rich.logging import RichHandler

# names handed out by get_logger, so set_debug can reach all of them
_loggers: set = set()


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # grows with the longest logger name seen

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, initial_width
        )

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def _level(debug: bool) -> int:
    return logging.DEBUG if debug else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger writing through RichHandler.

    Level is DEBUG when the DEBUG env var is set, INFO otherwise.
    Handlers are attached once per logger name.
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    log_level = _level(bool(os.getenv("DEBUG")))
    logger.setLevel(log_level)
    _loggers.add(name)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
        logger.debug(f"Logger '{name}' ready.")

    return logger


def set_debug(debug: bool) -> None:
    """Switch every storefront logger between DEBUG and INFO."""
    for name in _loggers:
        logging.getLogger(name).setLevel(_level(debug))
