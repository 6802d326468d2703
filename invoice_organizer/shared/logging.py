"""Process-wide logging setup."""

import logging

from invoice_organizer.shared.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the running process.

    Args:
        settings: Application settings (uses log_level)
    """
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    # httpx logs every request at INFO, which includes the remote base URL
    logging.getLogger("httpx").setLevel(logging.WARNING)
