from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import List

from pydantic import ValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from habitlog.constants import (
    CATEGORIES_KEY,
    COLUMNS_KEY,
    DRIVE_FILE_ID_KEY,
    DRIVE_LAST_SYNCED_KEY,
    ENTRIES_KEY,
    GOOGLE_TOKENS_KEY,
    HABIT_NAME_KEY,
    STATE_TABLE,
)
from habitlog.db_init import init_db
from habitlog.schemas import (
    CustomColumn,
    HabitCategory,
    HabitEntry,
    category_list_adapter,
    column_list_adapter,
    default_categories,
    entry_list_adapter,
)

logger = logging.getLogger(__name__)

_UPSERT_SQL = (
    f"INSERT INTO {STATE_TABLE} (key, value) VALUES (:key, :value) "
    "ON CONFLICT(key) DO UPDATE SET value=EXCLUDED.value"
)


class PersistenceError(RuntimeError):
    """Raised when the local state could not be written."""


class StateRepository:
    """Key-value persistence for the habit log, one record per collection.

    Each collection is stored as JSON text under a stable key. There is no
    schema version; records that no longer validate are logged and replaced
    by their defaults on load.
    """

    def __init__(self, engine: Engine, create_schema: bool = True):
        self._engine = engine
        if create_schema:
            init_db(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get_value(self, key: str) -> str | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                sql_text(f"SELECT value FROM {STATE_TABLE} WHERE key = :key"),
                {"key": key},
            ).fetchone()
        return row[0] if row else None

    def set_value(self, key: str, value: str | None) -> None:
        try:
            with self._engine.begin() as conn:
                if value is None:
                    conn.execute(sql_text(f"DELETE FROM {STATE_TABLE} WHERE key = :key"), {"key": key})
                else:
                    conn.execute(sql_text(_UPSERT_SQL), {"key": key, "value": value})
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist %s", key)
            raise PersistenceError(f"Failed to persist {key}: {exc}") from exc

    def save_state(
        self,
        entries: List[HabitEntry],
        custom_columns: List[CustomColumn],
        categories: List[HabitCategory],
        habit_name: str,
    ) -> None:
        try:
            records = {
                ENTRIES_KEY: entry_list_adapter.dump_json(entries).decode("utf-8"),
                COLUMNS_KEY: column_list_adapter.dump_json(custom_columns).decode("utf-8"),
                CATEGORIES_KEY: category_list_adapter.dump_json(categories).decode("utf-8"),
                HABIT_NAME_KEY: habit_name or "",
            }
        except (TypeError, ValueError) as exc:
            logger.exception("Failed to encode habit log state")
            raise PersistenceError(f"Failed to encode state: {exc}") from exc

        try:
            with self._engine.begin() as conn:
                for key, value in records.items():
                    conn.execute(sql_text(_UPSERT_SQL), {"key": key, "value": value})
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist habit log state")
            raise PersistenceError(f"Failed to persist state: {exc}") from exc

    def _load_list(self, key, adapter, default):
        raw = self.get_value(key)
        if not raw:
            return default()
        try:
            return adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Stored %s could not be decoded; using defaults", key)
            return default()

    def load_entries(self) -> List[HabitEntry]:
        return self._load_list(ENTRIES_KEY, entry_list_adapter, list)

    def load_custom_columns(self) -> List[CustomColumn]:
        return self._load_list(COLUMNS_KEY, column_list_adapter, list)

    def load_categories(self) -> List[HabitCategory]:
        return self._load_list(CATEGORIES_KEY, category_list_adapter, default_categories)

    def load_habit_name(self) -> str:
        return self.get_value(HABIT_NAME_KEY) or ""

    def get_drive_file_id(self) -> str | None:
        return self.get_value(DRIVE_FILE_ID_KEY) or None

    def set_drive_file_id(self, file_id: str | None) -> None:
        self.set_value(DRIVE_FILE_ID_KEY, file_id)

    def get_last_synced(self) -> datetime | None:
        raw = self.get_value(DRIVE_LAST_SYNCED_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def set_last_synced(self, value: datetime | None) -> None:
        self.set_value(DRIVE_LAST_SYNCED_KEY, value.isoformat() if value else None)

    def get_google_tokens(self) -> dict | None:
        raw = self.get_value(GOOGLE_TOKENS_KEY)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except Exception:
            return None
        return payload if isinstance(payload, dict) else None

    def store_google_tokens(self, refresh_token_enc, access_token=None, expires_at=None, scope=None) -> None:
        payload = {
            "refresh_token_enc": refresh_token_enc,
            "access_token": access_token,
            "expires_at": expires_at,
            "scope": scope,
            "updated_at": datetime.utcnow().isoformat(),
        }
        self.set_value(GOOGLE_TOKENS_KEY, json.dumps(payload))

    def update_google_access_token(self, access_token, expires_at, scope=None) -> None:
        payload = self.get_google_tokens() or {}
        payload["access_token"] = access_token
        payload["expires_at"] = expires_at
        if scope:
            payload["scope"] = scope
        payload["updated_at"] = datetime.utcnow().isoformat()
        self.set_value(GOOGLE_TOKENS_KEY, json.dumps(payload))

    def clear_google_tokens(self) -> None:
        self.set_value(GOOGLE_TOKENS_KEY, None)
