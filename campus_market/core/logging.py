import logging
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging defaults for the API process."""
    logging.basicConfig(level=(level or "INFO").upper(), format=_FORMAT)
    # multipart parsing logs every form field at DEBUG
    logging.getLogger("multipart").setLevel(logging.INFO)
    logging.getLogger("python_multipart").setLevel(logging.INFO)
