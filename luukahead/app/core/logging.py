# luukahead/app/core/logging.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once per process.

    Modules log through ``logging.getLogger(__name__)``; calling this again
    only adjusts the level.
    """
    global _configured

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    if not _configured:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
        _configured = True
    else:
        logging.getLogger().setLevel(numeric_level)

    # Keep SQL echo out of the app log unless DATABASE_ECHO asks for it
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
