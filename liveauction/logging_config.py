import logging
import sys


def configure_logging(level: str | int = logging.INFO) -> None:
    """Send log records to stdout with time, level, and module."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_liveauction", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - [%(module)s: %(funcName)s] - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    console_handler._liveauction = True  # type: ignore[attr-defined]
    root_logger.addHandler(console_handler)
