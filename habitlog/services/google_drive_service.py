from __future__ import annotations

import base64
import hashlib
import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode, quote

import httpx
from cryptography.fernet import Fernet

from habitlog.constants import CSV_MIME_TYPE, SPREADSHEET_MIME_TYPE
from habitlog.repositories import StateRepository
from habitlog.settings import Settings, get_settings

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"


class DriveError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DocumentNotFound(DriveError):
    pass


class SignInCancelled(Exception):
    """The user declined the consent screen."""


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
        return payload.get("error", {}).get("message") or payload.get("message") or response.text
    except Exception:
        return response.text


def _raise_for_drive(response: httpx.Response, action: str) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response)
    if response.status_code == 404:
        raise DocumentNotFound(f"Google Drive {action} failed (404): {message}", 404)
    raise DriveError(f"Google Drive {action} failed ({response.status_code}): {message}", response.status_code)


def _multipart_related(metadata: dict, data: bytes, mime_type: str) -> tuple[bytes, str]:
    boundary = f"habitlog-{secrets.token_hex(12)}"
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + data + tail, f"multipart/related; boundary={boundary}"


class GoogleDriveService:
    """Remote document store backed by a single Google Drive spreadsheet.

    Tokens live in the state repository; the refresh token is encrypted with
    a key derived from ``GOOGLE_TOKEN_ENCRYPTION_KEY``.
    """

    def __init__(
        self,
        repository: StateRepository,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._repo = repository
        self._settings = settings or get_settings()
        self._transport = transport

    def _client(self, timeout: int = 20) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _fernet(self) -> Fernet:
        secret = self._settings.google_token_encryption_key
        if not secret:
            raise RuntimeError("Missing GOOGLE_TOKEN_ENCRYPTION_KEY")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))

    def encrypt_token(self, value: str) -> str:
        return self._fernet().encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt_token(self, value: str) -> str:
        return self._fernet().decrypt(value.encode("utf-8")).decode("utf-8")

    def build_connect_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self._settings.drive_client_id,
            "redirect_uri": self._settings.drive_redirect_uri,
            "response_type": "code",
            "scope": DRIVE_SCOPE,
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state or secrets.token_urlsafe(24),
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def is_connected(self) -> bool:
        tokens = self._repo.get_google_tokens()
        return bool(tokens and tokens.get("refresh_token_enc"))

    async def exchange_code_for_tokens(self, code: str | None, error: str | None = None) -> None:
        if error == "access_denied":
            raise SignInCancelled()
        if error:
            raise DriveError(f"Sign-in failed: {error}")
        if not code:
            raise DriveError("Sign-in failed: no authorization code returned")
        payload = {
            "code": code,
            "client_id": self._settings.drive_client_id,
            "client_secret": self._settings.drive_client_secret,
            "redirect_uri": self._settings.drive_redirect_uri,
            "grant_type": "authorization_code",
        }
        async with self._client() as client:
            response = await client.post(TOKEN_URL, data=payload)
        if response.status_code >= 400:
            raise DriveError(f"Sign-in failed ({response.status_code}): {_error_message(response)}", response.status_code)
        token_data = response.json()
        refresh_token = token_data.get("refresh_token")
        if not refresh_token:
            existing = self._repo.get_google_tokens()
            if existing and existing.get("refresh_token_enc"):
                refresh_token = self.decrypt_token(existing["refresh_token_enc"])
            else:
                raise DriveError("Google OAuth did not return refresh_token")
        scope = token_data.get("scope") or ""
        if scope and DRIVE_SCOPE not in scope.split():
            raise DriveError("Drive access is required for sync. Please try again and grant Drive permissions.")
        expires_in = int(token_data.get("expires_in", 3600) or 3600)
        expires_at = (datetime.now(timezone.utc) + timedelta(seconds=expires_in - 30)).isoformat()
        self._repo.store_google_tokens(
            self.encrypt_token(refresh_token),
            access_token=token_data.get("access_token"),
            expires_at=expires_at,
            scope=scope or None,
        )

    async def _refresh_access_token(self) -> str | None:
        token_row = self._repo.get_google_tokens()
        if not token_row or not token_row.get("refresh_token_enc"):
            return None
        payload = {
            "client_id": self._settings.drive_client_id,
            "client_secret": self._settings.drive_client_secret,
            "refresh_token": self.decrypt_token(token_row["refresh_token_enc"]),
            "grant_type": "refresh_token",
        }
        async with self._client() as client:
            response = await client.post(TOKEN_URL, data=payload)
        if response.status_code >= 400:
            raise DriveError(f"Token refresh failed ({response.status_code}): {_error_message(response)}", response.status_code)
        token_data = response.json()
        access_token = token_data.get("access_token")
        if not access_token:
            return None
        expires_in = int(token_data.get("expires_in", 3600) or 3600)
        expires_at = (datetime.now(timezone.utc) + timedelta(seconds=expires_in - 30)).isoformat()
        self._repo.update_google_access_token(access_token, expires_at, token_data.get("scope"))
        return access_token

    async def get_access_token(self) -> str | None:
        token_row = self._repo.get_google_tokens()
        if not token_row:
            return None
        access_token = token_row.get("access_token")
        expires_at = token_row.get("expires_at")
        if access_token and expires_at:
            try:
                expires_dt = datetime.fromisoformat(str(expires_at).replace("Z", "+00:00"))
            except Exception:
                expires_dt = None
            if expires_dt and expires_dt > datetime.now(timezone.utc):
                return access_token
        return await self._refresh_access_token()

    async def _google_headers(self) -> dict:
        access_token = await self.get_access_token()
        if not access_token:
            raise DriveError("Google Drive token unavailable")
        return {"Authorization": f"Bearer {access_token}"}

    async def _send(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        headers = await self._google_headers()
        headers.update(kwargs.pop("headers", {}))
        try:
            async with self._client(timeout=25) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise DriveError(f"Google Drive {action} failed: {exc}") from exc
        _raise_for_drive(response, action)
        return response

    async def create_document(self, name: str, data: bytes, mime_type: str = CSV_MIME_TYPE) -> str:
        metadata = {"name": name, "mimeType": SPREADSHEET_MIME_TYPE}
        body, content_type = _multipart_related(metadata, data, mime_type)
        response = await self._send(
            "POST",
            f"{DRIVE_UPLOAD_API}/files",
            "create",
            params={"uploadType": "multipart", "fields": "id"},
            content=body,
            headers={"Content-Type": content_type},
        )
        file_id = response.json().get("id")
        if not file_id:
            raise DriveError("Failed to create file: No file returned")
        logger.info("Created Google Drive document %s", file_id)
        return file_id

    async def update_document(self, document_id: str, data: bytes, mime_type: str = CSV_MIME_TYPE) -> bool:
        await self._send(
            "PATCH",
            f"{DRIVE_UPLOAD_API}/files/{quote(document_id, safe='')}",
            "update",
            params={"uploadType": "media"},
            content=data,
            headers={"Content-Type": mime_type},
        )
        return True

    async def export_document(self, document_id: str, mime_type: str = CSV_MIME_TYPE) -> bytes:
        response = await self._send(
            "GET",
            f"{DRIVE_API}/files/{quote(document_id, safe='')}/export",
            "export",
            params={"mimeType": mime_type},
        )
        return response.content
