from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from habitlog.db import get_engine
from habitlog.repositories import StateRepository
from habitlog.services.google_drive_service import GoogleDriveService
from habitlog.services.sync_engine import SyncEngine
from habitlog.settings import Settings
from habitlog.store import EntryStore


@dataclass
class HabitLogContext:
    settings: Settings
    repository: StateRepository
    store: EntryStore
    drive: GoogleDriveService
    sync: SyncEngine


def build_context(settings: Settings, drive: GoogleDriveService | None = None) -> HabitLogContext:
    repository = StateRepository(get_engine(settings.database_url))
    store = EntryStore(repository)
    drive = drive or GoogleDriveService(repository, settings=settings)
    sync = SyncEngine(store, drive, document_name=settings.drive_document_name)
    return HabitLogContext(settings=settings, repository=repository, store=store, drive=drive, sync=sync)


def get_context(request: Request) -> HabitLogContext:
    return request.app.state.context
