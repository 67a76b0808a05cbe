"""
Google Drive HTTP endpoints: OAuth callback redirects, connection status, sync.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from app.config import Settings
from app.exceptions import UpstreamError
from app.services.google_drive import DriveFile, GoogleDriveStorageProvider, reset_google_drive_service
from app.utils.security import create_oauth_state


class StubDrive:
    """Records calls; the Drive file list is set per test."""

    name = "google_drive"

    def __init__(self, files=None, connected=True):
        self.files = files or []
        self.connected = connected
        self.codes = []
        self.fail_exchange = False

    def build_authorization_url(self, state):
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"

    async def exchange_code(self, code):
        if self.fail_exchange:
            raise UpstreamError("invalid_grant")
        self.codes.append(code)
        self.connected = True

    async def is_connected(self):
        return self.connected

    async def has_tokens(self):
        return self.connected

    async def disconnect(self):
        self.connected = False

    async def list_photos(self):
        return list(self.files)


@pytest.fixture
def drive():
    stub = StubDrive(
        files=[
            DriveFile(id="drive-1", name="fern.jpg", mime_type="image/jpeg", size=10, folder_name="Nature"),
            DriveFile(id="drive-2", name="neon.png", mime_type="image/png", folder_name="Night Markets"),
            DriveFile(id="drive-3", name="loose.jpg", mime_type="image/jpeg"),
        ]
    )
    reset_google_drive_service(stub)
    yield stub
    reset_google_drive_service()


def _redirect_params(response):
    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == "http://frontend.test/upload"
    return {k: v[0] for k, v in parse_qs(location.query).items()}


class TestCallback:
    def test_success_exchanges_code(self, client, drive):
        response = client.get(
            "/api/auth/google/callback",
            params={"code": "abc", "state": create_oauth_state()},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {"connected": "true"}
        assert drive.codes == ["abc"]

    def test_google_error_is_forwarded(self, client, drive):
        response = client.get(
            "/api/auth/google/callback",
            params={"error": "access_denied"},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {"error": "access_denied"}

    def test_missing_code(self, client, drive):
        response = client.get(
            "/api/auth/google/callback",
            params={"state": create_oauth_state()},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {"error": "no_code"}

    @pytest.mark.parametrize("state", [None, "forged", "a.b.c"])
    def test_invalid_state(self, client, drive, state):
        params = {"code": "abc"}
        if state:
            params["state"] = state
        response = client.get("/api/auth/google/callback", params=params, follow_redirects=False)

        assert _redirect_params(response) == {"error": "invalid_state"}
        assert drive.codes == []

    def test_exchange_failure(self, client, drive):
        drive.fail_exchange = True
        response = client.get(
            "/api/auth/google/callback",
            params={"code": "abc", "state": create_oauth_state()},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {"error": "auth_failed"}

    def test_missing_client_configuration(self, client):
        unconfigured = GoogleDriveStorageProvider(
            token_store=None,
            settings=Settings(google_client_id="", google_client_secret=""),
        )
        reset_google_drive_service(unconfigured)

        response = client.get(
            "/api/auth/google/callback",
            params={"code": "abc", "state": create_oauth_state()},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {"error": "config"}


class TestConnection:
    def test_auth_url_requires_admin(self, client, admin_client, drive):
        assert client.get("/api/auth/google").status_code == 401

        response = admin_client.get("/api/auth/google")
        assert response.status_code == 200
        state = parse_qs(urlparse(response.json()["auth_url"]).query)["state"][0]
        assert client.get(
            "/api/auth/google/callback",
            params={"code": "c", "state": state},
            follow_redirects=False,
        ).headers["location"].endswith("connected=true")

    def test_token_status_is_public(self, client, drive):
        assert client.get("/api/auth/google/token-status").json() == {"has_tokens": True}

        drive.connected = False
        assert client.get("/api/auth/google/token-status").json() == {"has_tokens": False}

    def test_status_and_disconnect(self, client, admin_client, drive):
        assert client.get("/api/auth/google/status").status_code == 401
        assert client.post("/api/auth/google/disconnect").status_code == 401

        assert admin_client.get("/api/auth/google/status").json() == {"connected": True}
        assert admin_client.post("/api/auth/google/disconnect").json()["success"] is True
        assert admin_client.get("/api/auth/google/status").json() == {"connected": False}


class TestSync:
    def test_requires_admin(self, client, drive):
        assert client.post("/api/drive/sync").status_code == 401

    def test_imports_new_files_as_private(self, client, admin_client, drive):
        response = admin_client.post("/api/drive/sync")

        assert response.status_code == 200
        assert response.json() == {"imported": 3, "skipped": 0}

        assert client.get("/api/photos").json() == []
        photos = admin_client.get("/api/photos", params={"includePrivate": "true"}).json()
        by_key = {p["storage_key"]: p for p in photos}
        assert set(by_key) == {"drive-1", "drive-2", "drive-3"}
        assert all(p["is_public"] is False for p in photos)
        assert by_key["drive-1"]["storage_url"] == "https://drive.google.com/uc?export=view&id=drive-1"
        assert by_key["drive-1"]["storage_provider"] == "google_drive"
        assert by_key["drive-3"]["tags"] == []

    def test_folder_names_become_tags(self, admin_client, drive):
        admin_client.post("/api/drive/sync")

        tags = {t["slug"]: t for t in admin_client.get("/api/tags").json()}
        # existing predefined tag is reused
        assert tags["nature"]["source"] == "seed"
        assert tags["nature"]["count"] == 1
        assert tags["night-markets"]["source"] == "drive_folder"
        assert tags["night-markets"]["name"] == "Night Markets"
        assert tags["night-markets"]["count"] == 1

    def test_second_run_skips_known_files(self, admin_client, drive):
        admin_client.post("/api/drive/sync")
        drive.files.append(DriveFile(id="drive-4", name="new.jpg", mime_type="image/jpeg", folder_name="Nature"))

        response = admin_client.post("/api/drive/sync")

        assert response.json() == {"imported": 1, "skipped": 3}
        photos = admin_client.get("/api/photos", params={"includePrivate": "true", "tag": "nature"}).json()
        assert len(photos) == 2

    def test_non_ascii_folders_keep_their_own_tags(self, admin_client, drive):
        drive.files = [
            DriveFile(id="k-1", name="a.jpg", mime_type="image/jpeg", folder_name="풍경"),
            DriveFile(id="k-2", name="b.jpg", mime_type="image/jpeg", folder_name="인물"),
        ]

        admin_client.post("/api/drive/sync")

        photos = admin_client.get("/api/photos", params={"includePrivate": "true"}).json()
        names = {p["storage_key"]: [t["name"] for t in p["tags"]] for p in photos}
        assert names == {"k-1": ["풍경"], "k-2": ["인물"]}
