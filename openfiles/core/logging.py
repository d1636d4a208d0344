
import logging
import os

PERSISTENCE_LOGGER = "openfiles.persistence"

def configure_logging(settings):
    logger = logging.getLogger()
    if logger.hasHandlers():
        return
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        fh = logging.FileHandler(os.path.join(settings.LOG_DIR, "app.log"))
        fh.setFormatter(fmt)
        fh.setLevel(level)
        logger.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(level)
    logger.addHandler(ch)

def persistence_logger() -> logging.Logger:
    """Channel for snapshot failures: records that exist only in memory."""
    return logging.getLogger(PERSISTENCE_LOGGER)
