"""Package logger and the handler setup used by scripts."""

import logging

logger = logging.getLogger("couchfluent")


def configure_logging(level: int = logging.INFO) -> logging.Handler:
    """Attach a stream handler to the package logger and set its level."""

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler
