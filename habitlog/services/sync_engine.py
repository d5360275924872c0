from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from habitlog.constants import CSV_MIME_TYPE
from habitlog.csv_codec import decode_entries, encode_bytes
from habitlog.schemas import HabitCategory, HabitEntry, SyncStatusResponse
from habitlog.services.google_drive_service import DocumentNotFound, SignInCancelled
from habitlog.settings import get_settings
from habitlog.store import EntryStore

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class SyncEngine:
    """Keeps the local store and one remote CSV document in step.

    ``remote`` provides ``create_document``, ``update_document`` and
    ``export_document`` (raising ``DocumentNotFound``); for sign-in it also
    provides ``exchange_code_for_tokens`` and ``is_connected``.

    Only one pull or push runs at a time. A request that arrives while one is
    running is dropped. Reconciliation finishes before the lock is released.
    """

    def __init__(self, store: EntryStore, remote, document_name: Optional[str] = None):
        self._store = store
        self._repo = store.repository
        self._remote = remote
        self._document_name = document_name or get_settings().drive_document_name
        self._lock = asyncio.Lock()
        self._tasks = set()
        self._authenticated = False
        self.state = SyncState.DISCONNECTED
        self.error_message: Optional[str] = None
        self.last_synced: Optional[datetime] = self._repo.get_last_synced()
        store.on_change(self.schedule_push)
        store.on_clear(self.disconnect)

    @property
    def connected(self) -> bool:
        return self._authenticated

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    @property
    def document_id(self) -> Optional[str]:
        return self._repo.get_drive_file_id()

    def status(self) -> SyncStatusResponse:
        return SyncStatusResponse(
            state=self.state.value,
            connected=self.connected,
            error=self.error_message,
            last_synced_at=self.last_synced,
            document_id=self.document_id,
        )

    def clear_error(self) -> None:
        self.error_message = None
        if self.state == SyncState.ERROR:
            self.state = SyncState.IDLE if self._authenticated else SyncState.DISCONNECTED

    def _fail(self, message: str) -> None:
        logger.warning("Sync failed: %s", message)
        if self.state == SyncState.DISCONNECTED:
            # Disconnected while the sync was running.
            return
        self.error_message = message
        self.state = SyncState.ERROR

    def _begin(self) -> None:
        self.state = SyncState.SYNCING
        self.error_message = None

    def _settle(self) -> None:
        self.state = SyncState.IDLE if self._authenticated else SyncState.DISCONNECTED

    def _mark_synced(self) -> None:
        if not self._authenticated:
            return
        self.last_synced = datetime.now().replace(microsecond=0)
        self._repo.set_last_synced(self.last_synced)

    # Authentication

    async def sign_in(self, code: Optional[str], error: Optional[str] = None) -> bool:
        self.error_message = None
        self.state = SyncState.AUTHENTICATING
        try:
            await self._remote.exchange_code_for_tokens(code, error=error)
        except SignInCancelled:
            logger.info("Sign-in cancelled by user")
            self.state = SyncState.DISCONNECTED
            return False
        except Exception as exc:
            self._authenticated = False
            self._fail(f"Sign-in failed: {exc}")
            return False
        self._authenticated = True
        self.state = SyncState.IDLE
        await self.pull()
        return True

    async def restore(self) -> bool:
        if not self._remote.is_connected():
            self.state = SyncState.DISCONNECTED
            return False
        self._authenticated = True
        self.state = SyncState.IDLE
        await self.pull()
        return True

    def disconnect(self) -> None:
        # An in-flight sync is not aborted; later requests are refused.
        self._authenticated = False
        self.state = SyncState.DISCONNECTED
        self.error_message = None
        self.last_synced = None
        self._repo.set_last_synced(None)

    def sign_out(self) -> None:
        self.disconnect()
        self._repo.clear_google_tokens()

    # Sync operations

    async def pull(self) -> bool:
        if not self._authenticated:
            return False
        if self._lock.locked():
            logger.debug("Sync already in progress; pull dropped")
            return False
        async with self._lock:
            return await self._pull_locked()

    async def push(self, entries: Optional[List[HabitEntry]] = None) -> bool:
        if not self._authenticated:
            return False
        if self._lock.locked():
            logger.debug("Sync already in progress; push dropped")
            return False
        async with self._lock:
            self._begin()
            if not await self._push_locked(self._store.entries if entries is None else entries):
                return False
            self._settle()
            return True

    def schedule_push(self) -> Optional[asyncio.Task]:
        if not self._authenticated:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; push skipped")
            return None
        task = loop.create_task(self.push())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _empty_document(self) -> bytes:
        return encode_bytes([], self._store.custom_columns)

    async def _create_document(self, data: bytes) -> str:
        document_id = await self._remote.create_document(self._document_name, data, CSV_MIME_TYPE)
        self._repo.set_drive_file_id(document_id)
        return document_id

    async def _fetch_remote(self) -> bytes:
        document_id = self._repo.get_drive_file_id()
        if not document_id:
            document_id = await self._create_document(self._empty_document())
        try:
            return await self._remote.export_document(document_id, CSV_MIME_TYPE)
        except DocumentNotFound:
            logger.info("Remote document %s no longer exists; recreating", document_id)
            self._repo.set_drive_file_id(None)
            document_id = await self._create_document(self._empty_document())
            return await self._remote.export_document(document_id, CSV_MIME_TYPE)

    def _register_category(self, name: str) -> HabitCategory:
        return self._store.add_category(name, notify=False)

    async def _pull_locked(self) -> bool:
        self._begin()
        try:
            body = await self._fetch_remote()
        except Exception as exc:
            self._fail(f"Failed to download file: {exc}")
            return False

        try:
            result = decode_entries(
                body.decode("utf-8-sig", errors="replace"),
                self._store.categories,
                self._store.custom_columns,
                register_category=self._register_category,
            )
        except Exception as exc:
            self._fail(f"Failed to process downloaded data: {exc}")
            return False

        if not await self._reconcile(result.entries):
            return False
        self._mark_synced()
        self._settle()
        return True

    async def _reconcile(self, remote_entries: List[HabitEntry]) -> bool:
        # Count-based: equal sizes are treated as in sync even if contents differ.
        local_entries = self._store.entries
        if len(remote_entries) == len(local_entries):
            logger.debug("Local and remote both hold %s entries", len(local_entries))
            return True
        if len(remote_entries) > len(local_entries):
            logger.info("Remote has %s entries, local %s; using remote", len(remote_entries), len(local_entries))
            try:
                self._store.replace_all(remote_entries, notify=False)
            except Exception as exc:
                self._fail(f"Failed to update local data: {exc}")
                return False
            return True
        logger.info("Local has %s entries, remote %s; pushing local", len(local_entries), len(remote_entries))
        return await self._push_locked(local_entries)

    async def _push_locked(self, entries: List[HabitEntry]) -> bool:
        data = encode_bytes(entries, self._store.custom_columns)
        document_id = self._repo.get_drive_file_id()
        try:
            if document_id:
                try:
                    await self._remote.update_document(document_id, data, CSV_MIME_TYPE)
                except DocumentNotFound:
                    logger.info("Remote document %s no longer exists; recreating", document_id)
                    self._repo.set_drive_file_id(None)
                    await self._create_document(data)
            else:
                await self._create_document(data)
            self._mark_synced()
        except Exception as exc:
            self._fail(f"Failed to update file: {exc}")
            return False
        return True
