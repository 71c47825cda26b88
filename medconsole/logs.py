import logging

from medconsole.config import LOG_LEVEL

FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(f"medconsole.{name}")
    logger.setLevel(LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(handler)
    return logger
