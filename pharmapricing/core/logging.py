# pharmapricing/core/logging.py
"""
Logging setup shared by the API and by scripts that use the services directly.

Modules only ask for `logging.getLogger(__name__)`; this module decides where
the records go.
"""
import logging
import logging.config
import threading

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_lock = threading.Lock()
_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configures the root logger once; later calls only adjust the level."""
    global _configured
    with _lock:
        if _configured:
            logging.getLogger().setLevel(level.upper())
            return

        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {"plain": {"format": LOG_FORMAT}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "formatter": "plain",
                        "stream": "ext://sys.stdout",
                    }
                },
                "root": {"level": level.upper(), "handlers": ["console"]},
            }
        )
        _configured = True
