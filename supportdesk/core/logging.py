import logging
import sys

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
HANDLER_NAME = "supportdesk"

# Loggers from the HTTP stack that are too chatty at INFO.
NOISY_LOGGERS = ("urllib3", "httpx", "sqlalchemy.engine")


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stdout handler on the root logger.

    ``extra={...}`` fields passed to log calls show up as top-level keys in
    JSON mode, which is what the log aggregator indexes on.
    """
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(
            JsonFormatter(LOG_FORMAT, rename_fields={"asctime": "timestamp", "levelname": "level"})
        )
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    handler.set_name(HANDLER_NAME)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
