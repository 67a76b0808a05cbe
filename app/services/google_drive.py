"""
Google Drive storage backend and OAuth connection.

Uploads land in `{GOOGLE_DRIVE_ROOT_FOLDER}/<primary tag>/`; folders are
looked up by name and parent before being created. Every uploaded file is
shared "anyone with the link, reader" and addressed through the direct
view URL `https://drive.google.com/uc?export=view&id=<file id>`.

Raw REST calls over httpx:
- Drive v3:    https://developers.google.com/drive/api/reference/rest/v3
- OAuth 2.0:   https://developers.google.com/identity/protocols/oauth2/web-server
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from app.config import Settings, get_settings
from app.exceptions import ConfigurationError, NotFoundError, UpstreamError
from app.models.drive_token import DriveToken
from app.models.photo import utcnow
from app.services.drive_tokens import DriveTokenStore
from app.services.storage import StorageProvider, UploadResult
from app.utils.prometheus_metrics import record_external_request

logger = logging.getLogger("app.drive")

GOOGLE_DRIVE_API = "https://www.googleapis.com/drive/v3"
GOOGLE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = (
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.readonly",
)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
IMAGE_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/svg+xml",
)

# 만료 5분 전부터 갱신
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

NOT_CONNECTED_MESSAGE = (
    "Google Drive not connected. Connect it from the upload page first."
)


@dataclass(frozen=True)
class DriveFile:
    """An image found under the root folder."""

    id: str
    name: str
    mime_type: str
    size: Optional[int] = None
    # 루트 바로 아래 폴더명 (태그). 루트에 바로 있는 파일은 None
    folder_name: Optional[str] = None


def view_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=view&id={file_id}"


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    if isinstance(error, str):
        return body.get("error_description") or error
    return f"HTTP {response.status_code}"


class GoogleDriveStorageProvider(StorageProvider):
    """
    Drive-backed StorageProvider plus the OAuth plumbing the admin uses to connect it.

    Tokens come from an injected DriveTokenStore. `transport` lets tests
    swap the network for httpx.MockTransport.
    """

    name = "google_drive"

    def __init__(
        self,
        token_store: DriveTokenStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.tokens = token_store
        self._transport = transport

    def _client(self, timeout: float = 60.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    def _require_oauth_config(self) -> None:
        missing = []
        if not self.settings.google_client_id:
            missing.append("GOOGLE_CLIENT_ID")
        if not self.settings.google_client_secret:
            missing.append("GOOGLE_CLIENT_SECRET")
        if missing:
            raise ConfigurationError(
                "Google Drive is not configured. Missing environment variables: "
                + ", ".join(missing)
            )

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------
    def build_authorization_url(self, state: str) -> str:
        """Consent screen URL (offline access so Google hands out a refresh token)."""
        self._require_oauth_config()
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.effective_google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with record_external_request("google_oauth"):
                async with self._client(timeout=30.0) as client:
                    response = await client.post(GOOGLE_TOKEN_URL, data=data)
                if response.status_code != 200:
                    raise UpstreamError(_error_message(response))
        except httpx.HTTPError as e:
            raise UpstreamError(str(e))
        return response.json()

    @staticmethod
    def _expiry_from(payload: Dict[str, Any]) -> Optional[datetime]:
        expires_in = payload.get("expires_in")
        if expires_in is None:
            return None
        return utcnow() + timedelta(seconds=int(expires_in))

    async def exchange_code(self, code: str) -> DriveToken:
        """Trade the authorization code for tokens and persist them."""
        self._require_oauth_config()
        payload = await self._token_request(
            {
                "code": code,
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "redirect_uri": self.settings.effective_google_redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        token = await self.tokens.save(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expiry=self._expiry_from(payload),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
        )
        logger.info("Google Drive connected", extra={"event": "drive"})
        return token

    async def _refresh(self, token: DriveToken) -> str:
        self._require_oauth_config()
        payload = await self._token_request(
            {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "refresh_token": token.refresh_token or "",
                "grant_type": "refresh_token",
            }
        )
        saved = await self.tokens.save(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expiry=self._expiry_from(payload),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
        )
        return saved.access_token

    async def get_access_token(self) -> str:
        """
        Current access token, refreshed when it expires within 5 minutes.

        A failed refresh is logged and the stale token is returned; the
        following Drive call then fails on its own if the token really expired.
        Concurrent requests may each refresh; Google accepts repeated refreshes.
        """
        token = await self.tokens.load()
        if token is None or not token.access_token:
            raise ConfigurationError(NOT_CONNECTED_MESSAGE)

        expiring = token.expiry is not None and token.expiry - utcnow() < TOKEN_REFRESH_MARGIN
        if expiring and token.refresh_token:
            try:
                return await self._refresh(token)
            except (UpstreamError, ConfigurationError) as e:
                logger.warning(
                    "Drive token refresh failed, using stale token",
                    extra={"event": "drive", "error": e.message},
                )
        return token.access_token

    async def is_connected(self) -> bool:
        token = await self.tokens.load()
        return bool(token and token.access_token and token.refresh_token)

    async def has_tokens(self) -> bool:
        return await self.tokens.has_tokens()

    async def disconnect(self) -> None:
        await self.tokens.clear()
        logger.info("Google Drive disconnected", extra={"event": "drive"})

    # ------------------------------------------------------------------
    # Drive REST
    # ------------------------------------------------------------------
    async def _request(
        self,
        method: str,
        url: str,
        expected: tuple = (200,),
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> httpx.Response:
        access_token = await self.get_access_token()
        headers = kwargs.pop("headers", {}) or {}
        headers["Authorization"] = f"Bearer {access_token}"
        try:
            async with record_external_request("google_drive"):
                async with self._client(timeout=timeout) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)
                if response.status_code not in expected:
                    raise UpstreamError(_error_message(response))
        except httpx.HTTPError as e:
            raise UpstreamError(str(e))
        return response

    async def _list_files(self, query: str, fields: str) -> List[Dict[str, Any]]:
        """files.list following nextPageToken."""
        files: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken, files({fields})",
                "pageSize": 1000,
            }
            if page_token:
                params["pageToken"] = page_token
            response = await self._request("GET", f"{GOOGLE_DRIVE_API}/files", params=params)
            body = response.json()
            files.extend(body.get("files", []))
            page_token = body.get("nextPageToken")
            if not page_token:
                return files

    async def find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        query = (
            f"name='{_escape_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' "
            f"and trashed=false and '{parent_id or 'root'}' in parents"
        )
        response = await self._request(
            "GET",
            f"{GOOGLE_DRIVE_API}/files",
            params={"q": query, "fields": "files(id, name)"},
        )
        files = response.json().get("files", [])
        return files[0]["id"] if files else None

    async def get_or_create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """
        Folder id for `name` under `parent_id` (My Drive root when None).
        Searches first so repeated calls never create a second folder.
        """
        folder_id = await self.find_folder(name, parent_id)
        if folder_id:
            return folder_id

        metadata: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        response = await self._request(
            "POST",
            f"{GOOGLE_DRIVE_API}/files",
            expected=(200, 201),
            json=metadata,
            params={"fields": "id"},
        )
        folder_id = response.json()["id"]
        logger.info("Drive folder created", extra={"event": "drive", "folder": name})
        return folder_id

    async def _upload_destination(self, primary_tag: Optional[str]) -> str:
        root_id = await self.get_or_create_folder(self.settings.google_drive_root_folder)
        if not primary_tag:
            return root_id
        return await self.get_or_create_folder(primary_tag, root_id)

    async def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        primary_tag: Optional[str] = None,
    ) -> UploadResult:
        parent_id = await self._upload_destination(primary_tag)

        # 1) resumable 세션 시작
        init = await self._request(
            "POST",
            f"{GOOGLE_UPLOAD_API}/files",
            params={"uploadType": "resumable"},
            json={"name": filename, "parents": [parent_id]},
            headers={
                "X-Upload-Content-Type": mime_type,
                "X-Upload-Content-Length": str(len(content)),
            },
        )
        session_url = init.headers.get("Location")
        if not session_url:
            raise UpstreamError("Drive did not return a resumable upload URL")

        # 2) 바이트 전송 (세션 URL 자체가 인증 역할)
        try:
            async with record_external_request("google_drive"):
                async with self._client(timeout=120.0) as client:
                    response = await client.put(
                        session_url,
                        content=content,
                        headers={"Content-Type": mime_type},
                    )
                if response.status_code not in (200, 201):
                    raise UpstreamError(_error_message(response))
        except httpx.HTTPError as e:
            raise UpstreamError(str(e))
        file_id = response.json()["id"]

        # 3) 링크가 있는 모든 사용자 읽기 허용
        await self._request(
            "POST",
            f"{GOOGLE_DRIVE_API}/files/{file_id}/permissions",
            expected=(200, 201),
            json={"role": "reader", "type": "anyone"},
        )

        return UploadResult(key=file_id, url=view_url(file_id), size=len(content))

    async def delete(self, key: str) -> None:
        try:
            await self._request(
                "DELETE",
                f"{GOOGLE_DRIVE_API}/files/{key}",
                expected=(200, 204, 404),
            )
        except UpstreamError as e:
            logger.error("Drive delete failed", extra={"event": "drive", "key": key, "error": e.message})
            raise

    async def fetch(self, key: str) -> bytes:
        response = await self._request(
            "GET",
            f"{GOOGLE_DRIVE_API}/files/{key}",
            expected=(200, 404),
            params={"alt": "media"},
            timeout=120.0,
        )
        if response.status_code == 404:
            raise NotFoundError("Stored file not found")
        return response.content

    async def list_photos(self) -> List[DriveFile]:
        """
        Every image under the root folder: one level of tag folders plus
        images sitting directly in the root.
        """
        root_id = await self.find_folder(self.settings.google_drive_root_folder)
        if not root_id:
            return []

        image_clause = " or ".join(f"mimeType='{m}'" for m in IMAGE_MIME_TYPES)
        file_fields = "id, name, mimeType, size"

        found: List[DriveFile] = []
        folders = await self._list_files(
            f"'{root_id}' in parents and mimeType='{FOLDER_MIME_TYPE}' and trashed=false",
            "id, name",
        )
        for folder in folders:
            files = await self._list_files(
                f"({image_clause}) and trashed=false and '{folder['id']}' in parents",
                file_fields,
            )
            found.extend(self._to_drive_file(f, folder["name"]) for f in files)

        direct = await self._list_files(
            f"({image_clause}) and trashed=false and '{root_id}' in parents",
            file_fields,
        )
        found.extend(self._to_drive_file(f, None) for f in direct)
        return found

    @staticmethod
    def _to_drive_file(item: Dict[str, Any], folder_name: Optional[str]) -> DriveFile:
        size = item.get("size")
        return DriveFile(
            id=item["id"],
            name=item.get("name", item["id"]),
            mime_type=item.get("mimeType", "application/octet-stream"),
            size=int(size) if size is not None else None,
            folder_name=folder_name,
        )


# Singleton instance
_drive_service: Optional[GoogleDriveStorageProvider] = None


def get_google_drive_service() -> GoogleDriveStorageProvider:
    """Get the singleton Drive service backed by the database token store."""
    global _drive_service
    if _drive_service is None:
        from app.database import async_session_maker
        _drive_service = GoogleDriveStorageProvider(DriveTokenStore(async_session_maker))
    return _drive_service


def reset_google_drive_service(service: Optional[GoogleDriveStorageProvider] = None) -> None:
    global _drive_service
    _drive_service = service
