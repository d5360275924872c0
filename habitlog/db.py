from __future__ import annotations

import logging
from functools import lru_cache
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from habitlog.settings import get_settings

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    if not url:
        return url
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    try:
        parsed = urlparse(url)
        if "channel_binding=" in (parsed.query or ""):
            query_items = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "channel_binding"]
            parsed = parsed._replace(query=urlencode(query_items))
            url = urlunparse(parsed)
    except Exception:
        logger.debug("Failed to parse database URL query string.")
        return url
    return url


def using_local_sqlite(database_url: str) -> bool:
    return str(database_url).strip().lower().startswith("sqlite")


@lru_cache(maxsize=None)
def _engine_for(database_url: str) -> Engine:
    if using_local_sqlite(database_url):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            future=True,
        )
    return create_engine(database_url, pool_pre_ping=True, future=True)


def get_engine(database_url: str | None = None) -> Engine:
    url = normalize_database_url(database_url or get_settings().database_url)
    return _engine_for(url)
