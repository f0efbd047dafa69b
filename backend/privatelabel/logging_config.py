# Overview: Root/app logger configuration with PII redaction for email addresses and tokens.

from __future__ import annotations

import logging
import re
from typing import Iterable

from flask import Flask

DEV_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
PROD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
PII_PATTERNS = {
    "email": re.compile(r"[A-Za-z0-9_.+-]+@[A-Za-z0-9-]+\.[A-Za-z0-9-.]+"),
    "token": re.compile(r"(token|secret|password|authorization)\s*[:=]\s*([^\s,;]+)", re.IGNORECASE),
    "approval_link": re.compile(r"/label-approval/[A-Za-z0-9_\-]+"),
}


class PiiRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            msg = record.getMessage()
            record.args = None
        else:
            msg = str(record.msg)
        msg = PII_PATTERNS["email"].sub("[REDACTED_EMAIL]", msg)
        msg = PII_PATTERNS["token"].sub(lambda m: f"{m.group(1)}=[REDACTED]", msg)
        msg = PII_PATTERNS["approval_link"].sub("/label-approval/[REDACTED]", msg)
        record.msg = msg
        return True


def configure_logging(app: Flask) -> None:
    level = _coerce_level(app.config.get("LOG_LEVEL") or ("DEBUG" if app.debug else "INFO"))
    root = logging.getLogger()
    root.setLevel(level)
    app.logger.setLevel(level)

    if not root.handlers:
        root.addHandler(logging.StreamHandler())

    if level > logging.DEBUG:
        for noisy in ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    is_production = app.config.get("ENV") == "production" and not app.debug
    formatter = logging.Formatter(PROD_FORMAT if is_production else DEV_FORMAT)
    redact_pii = app.config.get("LOG_REDACT_PII", True)
    _apply_formatter(root.handlers, formatter, redact_pii)
    _apply_formatter(app.logger.handlers, formatter, redact_pii)


def _apply_formatter(handlers: Iterable[logging.Handler], formatter: logging.Formatter, redact_pii: bool) -> None:
    for handler in handlers:
        handler.setFormatter(formatter)
        if redact_pii and not any(isinstance(f, PiiRedactionFilter) for f in handler.filters):
            handler.addFilter(PiiRedactionFilter())


def _coerce_level(raw_level) -> int:
    if isinstance(raw_level, int):
        return raw_level
    if isinstance(raw_level, str):
        candidate = raw_level.strip().upper()
        return getattr(logging, candidate, logging.INFO)
    return logging.INFO
