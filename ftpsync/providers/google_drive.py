"""
Google Drive API client used as the synchronization sink.

Provides OAuth authorization for an installed application, folder
lookup/creation, resumable uploads, and access to the private
appDataFolder where the confirmation ledger lives.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from ftpsync import secrets

logger = logging.getLogger(__name__)

# Google API scopes: private app data for the ledger, files created by this app
SCOPES = [
    "https://www.googleapis.com/auth/drive.appdata",
    "https://www.googleapis.com/auth/drive.file",
]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
APP_DATA_SPACE = "appDataFolder"

FILE_FIELDS = (
    "id,name,mimeType,size,modifiedTime,sha256Checksum,"
    "parents,trashed,webViewLink"
)

# Resumable upload chunk size, must be a multiple of 256 KiB
UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024


class GoogleDriveError(Exception):
    """Base exception for Google Drive operations."""

    pass


class TokenExpiredError(GoogleDriveError):
    """Raised when credentials are missing or cannot be refreshed."""

    pass


class UploadStatus(enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DriveFile:
    """Represents a file or folder in Google Drive."""

    id: str
    name: str
    mime_type: str
    size: int | None = None
    modified_time: datetime | None = None
    sha256_checksum: str | None = None
    parents: list[str] = field(default_factory=list)
    trashed: bool = False
    web_view_link: str | None = None

    @classmethod
    def from_api_response(cls, data: dict) -> "DriveFile":
        """Create DriveFile from Google API response."""
        modified = data.get("modifiedTime")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            size=int(data["size"]) if "size" in data else None,
            modified_time=datetime.fromisoformat(modified.replace("Z", "+00:00"))
            if modified
            else None,
            sha256_checksum=data.get("sha256Checksum"),
            parents=data.get("parents", []),
            trashed=data.get("trashed", False),
            web_view_link=data.get("webViewLink"),
        )

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


@dataclass
class UploadResult:
    """Terminal state of an upload request."""

    status: UploadStatus
    file: DriveFile | None = None
    error: str = ""

    @property
    def completed(self) -> bool:
        return self.status == UploadStatus.COMPLETED


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def authorize(client_secrets_path: Path, key: str, port: int = 0) -> Credentials:
    """
    Establish credentials, reusing or refreshing stored ones when possible.

    Falls back to the installed-app browser flow when nothing usable is
    stored. The resulting credentials are written to the token store.

    Args:
        client_secrets_path: OAuth client secrets JSON downloaded from Google
        key: Token store key (the application name)
        port: Local redirect port for the browser flow (0 = any free port)

    Returns:
        Valid credentials
    """
    credentials = secrets.get_credentials(key, SCOPES)

    if credentials and credentials.valid:
        return credentials

    if credentials and credentials.expired and credentials.refresh_token:
        try:
            credentials.refresh(Request())
            secrets.save_credentials(key, credentials)
            return credentials
        except RefreshError as e:
            logger.warning(f"Stored credentials could not be refreshed, re-authorizing: {e}")

    flow = InstalledAppFlow.from_client_secrets_file(str(client_secrets_path), SCOPES)
    credentials = flow.run_local_server(port=port)
    secrets.save_credentials(key, credentials)
    return credentials


class GoogleDriveClient:
    """
    Client for the Google Drive operations the sync engine needs.

    The underlying discovery service is built once per thread since the
    httplib2 transport it wraps is not thread-safe.
    """

    def __init__(self, application_name: str, credentials: Credentials | None = None):
        self.application_name = application_name
        self._credentials = credentials
        self._local = threading.local()
        self._refresh_lock = threading.Lock()

    def _get_credentials(self) -> Credentials:
        """Get credentials from the token store if none were supplied."""
        if self._credentials is None:
            credentials = secrets.get_credentials(self.application_name, SCOPES)
            if credentials is None:
                raise TokenExpiredError(
                    f"No credentials stored for {self.application_name}, run sync_ftp --auth-only"
                )
            self._credentials = credentials
        return self._credentials

    def refresh_token_if_needed(self) -> bool:
        """
        Refresh the access token if expired.

        Returns:
            True if token was refreshed, False otherwise

        Raises:
            TokenExpiredError: If refresh fails
        """
        with self._refresh_lock:
            credentials = self._get_credentials()

            if credentials.valid:
                return False

            if not credentials.refresh_token:
                raise TokenExpiredError("No refresh token available")

            try:
                credentials.refresh(Request())
                secrets.save_credentials(self.application_name, credentials)
                logger.info(f"Refreshed token for {self.application_name}")
                return True

            except (RefreshError, TransportError) as e:
                logger.error(f"Token refresh failed for {self.application_name}: {e}")
                raise TokenExpiredError(f"Token refresh failed: {e}") from e

    def _get_service(self):
        """Get or create this thread's Drive API service."""
        service = getattr(self._local, "service", None)
        if service is None:
            self.refresh_token_if_needed()
            service = build(
                "drive", "v3", credentials=self._get_credentials(), cache_discovery=False
            )
            self._local.service = service
        return service

    def get_user_info(self) -> dict:
        """
        Get basic user info for connection testing.

        Returns:
            Dict with email and display_name
        """
        service = self._get_service()
        about = service.about().get(fields="user").execute()
        return {
            "email": about["user"].get("emailAddress"),
            "display_name": about["user"].get("displayName"),
        }

    def _list(self, query: str, spaces: str = "drive", page_size: int = 1000) -> list[DriveFile]:
        """Run a files.list query, following pagination."""
        service = self._get_service()
        files = []
        page_token = None

        while True:
            params = {
                "q": query,
                "spaces": spaces,
                "pageSize": page_size,
                "fields": f"nextPageToken,files({FILE_FIELDS})",
            }
            if page_token:
                params["pageToken"] = page_token

            response = service.files().list(**params).execute()
            files.extend(DriveFile.from_api_response(f) for f in response.get("files", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return files

    def list_folders(self, name: str, parent_id: str = "") -> list[DriveFile]:
        """
        List non-trashed folders called name, under parent_id if given.

        Args:
            name: Exact folder name
            parent_id: Parent folder ID, empty for anywhere visible to the app

        Returns:
            Matching folders
        """
        query = (
            f"mimeType = '{FOLDER_MIME_TYPE}' and trashed != true"
            f" and name = '{escape_query_value(name)}'"
        )
        if parent_id:
            query += f" and '{escape_query_value(parent_id)}' in parents"
        return [f for f in self._list(query) if f.name == name]

    def create_folder(self, name: str, parent_id: str = "") -> DriveFile:
        """Create a folder, at the top level when parent_id is empty."""
        service = self._get_service()
        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]

        response = service.files().create(body=metadata, fields=FILE_FIELDS).execute()
        logger.debug(f"Created folder {name} ({response['id']}) under {parent_id or 'top level'}")
        return DriveFile.from_api_response(response)

    def find_file(self, name: str, parent_id: str = "") -> DriveFile | None:
        """Find a non-trashed, non-folder file called name."""
        query = (
            f"mimeType != '{FOLDER_MIME_TYPE}' and trashed != true"
            f" and name = '{escape_query_value(name)}'"
        )
        if parent_id:
            query += f" and '{escape_query_value(parent_id)}' in parents"

        for drive_file in self._list(query):
            if drive_file.name == name:
                return drive_file
        return None

    def get_file(self, file_id: str) -> DriveFile:
        """Get current metadata, including the Drive-computed checksums."""
        service = self._get_service()
        response = service.files().get(fileId=file_id, fields=FILE_FIELDS).execute()
        return DriveFile.from_api_response(response)

    def find_app_data_file(self, name: str) -> DriveFile | None:
        """Find a file in the private appDataFolder space."""
        query = f"name = '{escape_query_value(name)}' and trashed != true"
        files = self._list(query, spaces=APP_DATA_SPACE)
        return files[0] if files else None

    def create_file(
        self, name: str, parent_id: str, local_path: Path, mime_type: str
    ) -> UploadResult:
        """
        Upload a local file as a new Drive file.

        Args:
            name: Drive file name
            parent_id: Destination folder ID
            local_path: File to upload
            mime_type: Content type

        Returns:
            UploadResult with the finalized file when completed
        """
        service = self._get_service()
        with open(local_path, "rb") as stream:
            media = MediaIoBaseUpload(
                stream, mimetype=mime_type, chunksize=UPLOAD_CHUNK_SIZE, resumable=True
            )
            request = service.files().create(
                body={"name": name, "parents": [parent_id]},
                media_body=media,
                fields=FILE_FIELDS,
            )
            return self._execute_upload(request, name)

    def update_file(self, file_id: str, local_path: Path, mime_type: str) -> UploadResult:
        """Overwrite the content of an existing Drive file from a local file."""
        service = self._get_service()
        with open(local_path, "rb") as stream:
            media = MediaIoBaseUpload(
                stream, mimetype=mime_type, chunksize=UPLOAD_CHUNK_SIZE, resumable=True
            )
            request = service.files().update(
                fileId=file_id, media_body=media, fields=FILE_FIELDS
            )
            return self._execute_upload(request, file_id)

    def create_app_data_file(self, name: str, data: bytes, mime_type: str) -> UploadResult:
        """Create a file in appDataFolder from in-memory content."""
        service = self._get_service()
        media = MediaIoBaseUpload(BytesIO(data), mimetype=mime_type, resumable=True)
        request = service.files().create(
            body={"name": name, "parents": [APP_DATA_SPACE]},
            media_body=media,
            fields=FILE_FIELDS,
        )
        return self._execute_upload(request, name)

    def update_file_bytes(self, file_id: str, data: bytes, mime_type: str) -> UploadResult:
        """Overwrite the content of an existing file from in-memory content."""
        service = self._get_service()
        media = MediaIoBaseUpload(BytesIO(data), mimetype=mime_type, resumable=True)
        request = service.files().update(fileId=file_id, media_body=media, fields=FILE_FIELDS)
        return self._execute_upload(request, file_id)

    def download_bytes(self, file_id: str) -> bytes:
        """
        Download a file's content into memory.

        Args:
            file_id: The Google Drive file ID

        Returns:
            File contents
        """
        service = self._get_service()
        buffer = BytesIO()
        request = service.files().get_media(fileId=file_id)
        downloader = MediaIoBaseDownload(buffer, request)

        done = False
        while not done:
            status, done = downloader.next_chunk()
            if status:
                logger.debug(f"Download progress: {int(status.progress() * 100)}%")

        return buffer.getvalue()

    def _execute_upload(self, request, label: str) -> UploadResult:
        """Drive a resumable upload to its terminal state."""
        response = None
        try:
            while response is None:
                status, response = request.next_chunk()
                if status:
                    logger.debug(f"{label}: upload progress {int(status.progress() * 100)}%")
        except (HttpError, TransportError, OSError) as e:
            logger.warning(f"{label}: upload failed: {e}")
            return UploadResult(status=UploadStatus.FAILED, error=str(e))

        return UploadResult(
            status=UploadStatus.COMPLETED, file=DriveFile.from_api_response(response)
        )
