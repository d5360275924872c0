from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from habitlog.metrics import start_of_week
from habitlog.repositories import StateRepository
from habitlog.schemas import (
    CustomColumn,
    CustomColumnType,
    HabitCategory,
    HabitEntry,
    default_categories,
)

logger = logging.getLogger(__name__)


class EntryStore:
    """Single source of truth for entries, categories and custom columns.

    Every mutation writes the full state through the repository before it
    returns. Listeners registered with ``on_change`` run afterwards; the sync
    engine uses this to push to the remote document.
    """

    def __init__(self, repository: StateRepository):
        self._repo = repository
        self._entries: List[HabitEntry] = repository.load_entries()
        self._custom_columns: List[CustomColumn] = repository.load_custom_columns()
        self._categories: List[HabitCategory] = repository.load_categories()
        self._habit_name: str = repository.load_habit_name()
        self._change_listeners: List[Callable[[], None]] = []
        self._clear_listeners: List[Callable[[], None]] = []

    @property
    def repository(self) -> StateRepository:
        return self._repo

    @property
    def entries(self) -> List[HabitEntry]:
        return list(self._entries)

    @property
    def categories(self) -> List[HabitCategory]:
        return list(self._categories)

    @property
    def custom_columns(self) -> List[CustomColumn]:
        return list(self._custom_columns)

    @property
    def habit_name(self) -> str:
        return self._habit_name

    def on_change(self, callback: Callable[[], None]) -> None:
        self._change_listeners.append(callback)

    def on_clear(self, callback: Callable[[], None]) -> None:
        self._clear_listeners.append(callback)

    def _commit(self, entries=None, custom_columns=None, categories=None, habit_name=None, notify=True):
        next_entries = self._entries if entries is None else entries
        next_columns = self._custom_columns if custom_columns is None else custom_columns
        next_categories = self._categories if categories is None else categories
        next_name = self._habit_name if habit_name is None else habit_name

        self._repo.save_state(next_entries, next_columns, next_categories, next_name)

        self._entries = list(next_entries)
        self._custom_columns = list(next_columns)
        self._categories = list(next_categories)
        self._habit_name = next_name
        if notify:
            self._notify(self._change_listeners)

    @staticmethod
    def _notify(listeners):
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception("Store listener failed")

    def get_entry(self, entry_id: str) -> Optional[HabitEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def add_entry(self, entry: HabitEntry) -> HabitEntry:
        self._commit(entries=self._entries + [entry])
        return entry

    def update_entry(self, entry: HabitEntry) -> bool:
        for index, existing in enumerate(self._entries):
            if existing.id == entry.id:
                updated = list(self._entries)
                updated[index] = entry
                self._commit(entries=updated)
                return True
        logger.debug("update_entry: no entry with id %s", entry.id)
        return False

    def delete_entry(self, entry: HabitEntry) -> None:
        remaining = [item for item in self._entries if item.id != entry.id]
        if len(remaining) == len(self._entries):
            return
        self._commit(entries=remaining)

    def find_category(self, name: str) -> Optional[HabitCategory]:
        target = (name or "").lower()
        for category in self._categories:
            if category.name.lower() == target:
                return category
        return None

    def get_category(self, category_id: str) -> Optional[HabitCategory]:
        for category in self._categories:
            if category.id == category_id:
                return category
        return None

    def add_category(self, name: str, notify: bool = True) -> HabitCategory:
        category = HabitCategory(name=name, is_custom=True)
        self._commit(categories=self._categories + [category], notify=notify)
        return category

    def delete_category(self, category: HabitCategory) -> None:
        if not category.is_custom:
            return
        remaining = [item for item in self._categories if item.id != category.id]
        if len(remaining) == len(self._categories):
            return
        self._commit(categories=remaining)

    def add_custom_column(self, name: str, column_type: CustomColumnType = CustomColumnType.TEXT) -> CustomColumn:
        # Duplicate names are accepted; CSV lookups resolve to the first match.
        column = CustomColumn(name=name, type=CustomColumnType(column_type))
        self._commit(custom_columns=self._custom_columns + [column])
        return column

    def remove_custom_column(self, column: CustomColumn) -> None:
        remaining = [item for item in self._custom_columns if item.id != column.id]
        if len(remaining) == len(self._custom_columns):
            return
        self._commit(custom_columns=remaining)

    def set_habit_name(self, name: str) -> None:
        self._commit(habit_name=name or "")

    def replace_all(self, entries: List[HabitEntry], notify: bool = True) -> None:
        self._commit(entries=list(entries), notify=notify)

    def clear_all(self) -> None:
        self._commit(
            entries=[],
            custom_columns=[],
            categories=default_categories(),
            habit_name="",
            notify=False,
        )
        self._notify(self._clear_listeners)

    def week_starts(self) -> List[datetime]:
        return sorted({start_of_week(entry.date) for entry in self._entries}, reverse=True)

    def entries_for_week(self, week_start: datetime) -> List[HabitEntry]:
        week_start = start_of_week(week_start)
        week_end = week_start + timedelta(days=7)
        items = [entry for entry in self._entries if week_start <= entry.date < week_end]
        return sorted(items, key=lambda entry: entry.date, reverse=True)
