"""
Logging setup.

Usage:
    from log_setup import get_logger

    logger = get_logger(__name__)
    logger.info("Import committed", extra={"total_inserted": 812})

LOG_FORMAT=json switches the handler to python-json-logger so ``extra`` fields
land as top-level keys; the default text format is meant for the terminal
running ``streamlit run``.
"""

import logging
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "compat-catalog"

_configured = False


class CatalogJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding level/logger/service fields."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = SERVICE_NAME


def setup_logging(level: str = "INFO", fmt: str = "text", force: bool = False) -> None:
    """
    Configure the root logger once.

    Args:
        level: DEBUG / INFO / WARNING / ERROR
        fmt: "json" or "text"
        force: reconfigure even if already set up (Streamlit reruns call this)
    """
    global _configured
    if _configured and not force:
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if fmt == "json":
        formatter: logging.Formatter = CatalogJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # SQL echo is controlled by CATALOG_DB_ECHO, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
