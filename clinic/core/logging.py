import logging

from clinic.core import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved_level = (level or config.LOG_LEVEL).upper()
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT)
    logging.getLogger("clinic").setLevel(resolved_level)
