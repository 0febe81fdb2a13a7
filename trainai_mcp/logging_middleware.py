"""Request/response logging for the bridge, with header redaction."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Iterable
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

LOGGER_NAME = "trainai_mcp"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log requests and responses, redacting configured headers."""

    def __init__(self, app, redact_headers: Iterable[str] | None = None):
        super().__init__(app)
        self.logger = logging.getLogger(LOGGER_NAME + ".http")
        self.redact_headers = {h.lower() for h in (redact_headers or ("authorization", "cookie"))}

    async def dispatch(self, request: Request, call_next):
        headers = {
            k: ("<redacted>" if k.lower() in self.redact_headers else v)
            for k, v in request.headers.items()
        }
        self.logger.info("request %s %s %s", request.method, request.url.path, headers)
        response = await call_next(request)
        self.logger.info("response %s %s", response.status_code, request.url.path)
        return response


def setup_logging(app, level: str = "INFO", log_file: str | None = None) -> None:
    """Install LoggingMiddleware and attach handlers to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not logger.handlers:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        logger.addHandler(sh)

        if log_file:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
            fh.setFormatter(fmt)
            logger.addHandler(fh)

    logger.setLevel(level)
    # uvicorn configures the root logger; keep our lines from printing twice
    logger.propagate = False

    app.add_middleware(LoggingMiddleware)
