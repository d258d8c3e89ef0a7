import logging
import json
import time
from flask import has_request_context, request

QUIET_PATHS = ("/health",)


class JsonRequestFormatter(logging.Formatter):
    def format(self, record):
        # Si el log proviene del health check, se ignora
        if has_request_context() and request.path in QUIET_PATHS:
            return ""

        data = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if has_request_context():
            data.update({
                "method": request.method,
                "path": request.path,
                "remote_addr": request.headers.get("X-Forwarded-For", request.remote_addr),
                "request_id": request.headers.get("X-Request-ID"),
            })

        extra = getattr(record, "context", None)
        if isinstance(extra, dict):
            data.update(extra)

        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False, default=str)


def _level(name) -> int:
    return getattr(logging, str(name or "info").upper(), logging.INFO)


def setup_logging(app=None, level=None):
    if level is None:
        level = app.config.get("LOG_LEVEL") if app else "info"

    root = logging.getLogger()
    root.setLevel(_level(level))

    # limpia handlers duplicados en reload
    for h in list(root.handlers):
        root.removeHandler(h)

    h = logging.StreamHandler()
    h.setFormatter(JsonRequestFormatter())
    root.addHandler(h)

    if app:
        app.logger.handlers = [h]
        app.logger.setLevel(_level(level))
