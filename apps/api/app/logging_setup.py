from __future__ import annotations

import logging

from app.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
  level = getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)
  logging.basicConfig(level=level, format=LOG_FORMAT)
  logging.getLogger("app").setLevel(level)
