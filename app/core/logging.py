from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Optional

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_FORMATS = {
    # Human-readable, one line per event.
    "plain": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    # Grep/ship friendly; messages already carry key=value pairs.
    "kv": "ts=%(asctime)s level=%(levelname)s logger=%(name)s pid=%(process)d %(message)s",
}

# Audit lines are the paper trail for pricing edits; they stay visible even
# when the rest of the app is turned down to WARNING.
_AUDIT_LOGGER = "app.features.audit"


def _norm_level(v: Optional[str], default: str) -> str:
    s = (v or default).upper().strip()
    return s if s in _LEVELS else default


def _console_logger(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def init_logging(
    *,
    root_level: str = "INFO",
    app_level: Optional[str] = None,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure stdout logging for the valuation backend.

    - "app" covers catalog, valuation, pickup requests and pricing admin
    - "app.features.audit" never drops below INFO
    - Mongo driver and uvicorn follow their own levels

    Env overrides:
      LOG_ROOT_LEVEL / LOG_APP_LEVEL / LOG_THIRD_PARTY_LEVEL
      LOG_FORMAT=plain|kv
    """
    root_lvl = _norm_level(os.getenv("LOG_ROOT_LEVEL"), root_level)
    app_lvl = _norm_level(os.getenv("LOG_APP_LEVEL"), app_level or root_lvl)
    third_lvl = _norm_level(os.getenv("LOG_THIRD_PARTY_LEVEL"), third_party_level)

    fmt_name = (os.getenv("LOG_FORMAT") or "plain").strip().lower()
    fmt = _FORMATS.get(fmt_name, _FORMATS["plain"])

    audit_lvl = app_lvl if logging.getLevelName(app_lvl) <= logging.INFO else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": fmt, "datefmt": "%Y-%m-%dT%H:%M:%S"}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "default",
                }
            },
            "root": {"level": root_lvl, "handlers": ["console"]},
            "loggers": {
                "app": _console_logger(app_lvl),
                _AUDIT_LOGGER: _console_logger(audit_lvl),
                "uvicorn": _console_logger(root_lvl),
                "uvicorn.error": _console_logger(root_lvl),
                "uvicorn.access": _console_logger(root_lvl),
                # heartbeats / topology changes
                "pymongo": _console_logger(third_lvl),
                "motor": _console_logger(third_lvl),
            },
        }
    )

    logging.getLogger(__name__).info(
        "logging:configured root=%s app=%s audit=%s third_party=%s format=%s",
        root_lvl,
        app_lvl,
        audit_lvl,
        third_lvl,
        fmt_name if fmt_name in _FORMATS else "plain",
    )
