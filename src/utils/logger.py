import logging
import os

from rich.logging import RichHandler

_ROOT_NAME = "shirtshop"


class PaddedNameFormatter(logging.Formatter):
    """Pads logger names to the widest one seen so far, so columns line up."""

    widest_name = 12

    def format(self, record):
        PaddedNameFormatter.widest_name = max(
            PaddedNameFormatter.widest_name, len(record.name)
        )
        # pad a copy; other handlers see the record unchanged
        padded = logging.makeLogRecord(record.__dict__)
        padded.name = record.name.ljust(PaddedNameFormatter.widest_name)
        return super().format(padded)


def _level_from_env() -> int:
    if os.getenv("DEBUG"):
        return logging.DEBUG
    name = os.getenv("SHOP_LOG_LEVEL", "INFO").upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger writing through a RichHandler.

    Handlers are attached once per name; later calls reuse the logger.
    """
    name = name or _ROOT_NAME
    logger = logging.getLogger(name)
    level = _level_from_env()
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(PaddedNameFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
