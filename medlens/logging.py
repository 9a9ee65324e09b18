"""
Logging configuration.
Uvicorn and application logger levels are kept aligned; external-service failures
are logged with logger.exception where they are caught (services/analysis.py).
"""
import logging
import sys


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("medlens").setLevel(level)
    # the openai client logs every retry/request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
