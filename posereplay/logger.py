import sys
import logging

# --------------------------------------------------------
# One logger hierarchy for all posereplay modules
# --------------------------------------------------------
LOGGER_NAME = "posereplay"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Return a logger under the posereplay hierarchy."""
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a stdout handler to the root posereplay logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    logger.propagate = False  # Prevent duplicate Dash/werkzeug logs
    return logger
