"""
Shared logging utilities.
"""
import logging
import os

LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"

_configured = False


def _configure_root():
    global _configured
    if _configured:
        return
    root = logging.getLogger("bountyexpo")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
    _configured = True


def get_logger(service_name: str) -> logging.Logger:
    """
    Get a logger for a service or module.

    Args:
        service_name: Name of the service, used as the log prefix. Names are
            placed under the "bountyexpo" logger so one handler serves all.

    Returns:
        logging.Logger: Logger instance
    """
    _configure_root()
    if not service_name.startswith("bountyexpo"):
        service_name = f"bountyexpo.{service_name}"
    return logging.getLogger(service_name)
