from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from habitlog.db import get_engine
from habitlog.repositories import StateRepository
from habitlog.schemas import HabitCategory, HabitEntry
from habitlog.services.google_drive_service import DocumentNotFound, SignInCancelled
from habitlog.store import EntryStore


class FakeRemote:
    """In-memory stand-in for the Drive document store."""

    def __init__(self):
        self.documents: dict[str, bytes] = {}
        self.created: list[tuple[str, bytes, str]] = []
        self.updates: list[tuple[str, bytes]] = []
        self.exports: list[str] = []
        self.export_error: Exception | None = None
        self.sign_in_error: Exception | None = None
        self.connected = True
        self._counter = 0

    async def create_document(self, name, data, mime_type):
        self._counter += 1
        document_id = f"doc-{self._counter}"
        self.documents[document_id] = data
        self.created.append((name, data, mime_type))
        return document_id

    async def update_document(self, document_id, data, mime_type):
        if document_id not in self.documents:
            raise DocumentNotFound("not found", 404)
        self.documents[document_id] = data
        self.updates.append((document_id, data))
        return True

    async def export_document(self, document_id, mime_type):
        self.exports.append(document_id)
        if self.export_error is not None:
            raise self.export_error
        if document_id not in self.documents:
            raise DocumentNotFound("not found", 404)
        return self.documents[document_id]

    async def exchange_code_for_tokens(self, code, error=None):
        if error == "access_denied":
            raise SignInCancelled()
        if self.sign_in_error is not None:
            raise self.sign_in_error

    def is_connected(self):
        return self.connected


@pytest.fixture()
def repository(tmp_path: Path) -> StateRepository:
    return StateRepository(get_engine(f"sqlite:///{tmp_path / 'habitlog.db'}"))


@pytest.fixture()
def store(repository) -> EntryStore:
    return EntryStore(repository)


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote()


def make_entry(when: datetime, category_name: str = "RELAX", notes: str = "", **fields) -> HabitEntry:
    return HabitEntry(
        date=when,
        category=HabitCategory(name=category_name),
        notes=notes,
        custom_fields=fields,
    )
