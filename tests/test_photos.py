"""
Photo records through the HTTP API: visibility, tags, updates, deletion, downloads.
"""
import io
import time

from PIL import Image

from app.config import Settings
from app.services.local_storage import LocalStorageProvider
from app.services.storage import reset_storage_provider

from conftest import make_image_bytes


def _ids(photos):
    return {p["id"] for p in photos}


class TestVisibility:
    def test_anonymous_list_hides_private_photos(self, client, create_photo):
        public = create_photo(title="Sunrise", is_public=True)
        private = create_photo(title="Draft", is_public=False)

        photos = client.get("/api/photos").json()
        assert _ids(photos) == {public["id"]}

        # includePrivate is ignored without a session
        photos = client.get("/api/photos", params={"includePrivate": "true"}).json()
        assert _ids(photos) == {public["id"]}

        assert private["is_public"] is False

    def test_admin_sees_private_only_when_asked(self, admin_client, create_photo):
        public = create_photo(is_public=True)
        private = create_photo(is_public=False)

        assert _ids(admin_client.get("/api/photos").json()) == {public["id"]}
        photos = admin_client.get("/api/photos", params={"includePrivate": "true"}).json()
        assert _ids(photos) == {public["id"], private["id"]}

    def test_private_photo_is_404_without_session(self, client, admin_client, create_photo):
        private = create_photo(is_public=False)

        response = client.get(f"/api/photos/{private['id']}")
        assert response.status_code == 404
        assert response.json() == {"detail": "Photo not found"}

        assert admin_client.get(f"/api/photos/{private['id']}").status_code == 200

    def test_list_is_newest_first(self, client, create_photo):
        first = create_photo(title="First")
        time.sleep(0.01)
        second = create_photo(title="Second")

        photos = client.get("/api/photos").json()
        assert [p["id"] for p in photos] == [second["id"], first["id"]]

        page = client.get("/api/photos", params={"skip": 1, "limit": 1}).json()
        assert [p["id"] for p in page] == [first["id"]]

    def test_unknown_photo_is_404(self, client):
        assert client.get("/api/photos/does-not-exist").status_code == 404

    def test_new_photos_default_to_private(self, admin_client, storage):
        storage.objects["k.png"] = make_image_bytes()
        response = admin_client.post(
            "/api/photos",
            json={"filename": "k.png", "storage_key": "k.png", "storage_url": "/uploads/k.png"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["is_public"] is False
        assert body["storage_provider"] == "local"
        assert body["uploaded_by"] == "admin"

    def test_create_requires_storage_fields(self, admin_client):
        response = admin_client.post("/api/photos", json={"filename": "x.png"})
        assert response.status_code == 400

    def test_create_rejects_unknown_backend(self, admin_client):
        record = {"filename": "k.png", "storage_key": "k.png", "storage_url": "/uploads/k.png"}

        response = admin_client.post("/api/photos", json={**record, "storage_provider": "s3x"})
        assert response.status_code == 400

        response = admin_client.post("/api/photos", json={**record, "storage_provider": "s3"})
        assert response.status_code == 201
        assert response.json()["storage_provider"] == "s3"

    def test_create_requires_admin(self, client):
        response = client.post(
            "/api/photos",
            json={"filename": "k.png", "storage_key": "k.png", "storage_url": "/uploads/k.png"},
        )
        assert response.status_code == 401


class TestTags:
    def test_tags_resolved_by_slug_or_name_and_unknown_dropped(self, create_photo):
        photo = create_photo(tags=["urban", "Black & White", "no-such-tag"])

        assert [t["name"] for t in photo["tags"]] == ["Black & White", "Urban"]
        assert [t["slug"] for t in photo["tags"]] == ["black-white", "urban"]

    def test_filter_by_slug_or_name(self, client, create_photo):
        nature = create_photo(tags=["Nature"])
        create_photo(tags=["Urban"])

        assert _ids(client.get("/api/photos", params={"tag": "nature"}).json()) == {nature["id"]}
        assert _ids(client.get("/api/photos", params={"tag": "Nature"}).json()) == {nature["id"]}
        assert client.get("/api/photos", params={"tag": "street"}).json() == []

    def test_put_tags_replaces_the_whole_set(self, admin_client, create_photo):
        photo = create_photo(tags=["Nature", "Urban"])

        response = admin_client.put(f"/api/photos/{photo['id']}/tags", json={"tags": ["street"]})

        assert response.status_code == 200
        assert [t["slug"] for t in response.json()["tags"]] == ["street"]
        fetched = admin_client.get(f"/api/photos/{photo['id']}").json()
        assert [t["slug"] for t in fetched["tags"]] == ["street"]

    def test_put_tags_with_empty_list_clears_tags(self, admin_client, create_photo):
        photo = create_photo(tags=["Nature"])

        response = admin_client.put(f"/api/photos/{photo['id']}/tags", json={"tags": []})
        assert response.json()["tags"] == []

    def test_put_tags_rejects_non_array(self, admin_client, create_photo):
        photo = create_photo()

        response = admin_client.put(f"/api/photos/{photo['id']}/tags", json={"tags": "Nature"})
        assert response.status_code == 400

    def test_put_tags_on_unknown_photo_is_404(self, admin_client):
        response = admin_client.put("/api/photos/missing/tags", json={"tags": ["Nature"]})
        assert response.status_code == 404


class TestUpdate:
    def test_only_present_fields_are_applied(self, admin_client, create_photo):
        photo = create_photo(title="Old", tags=["Nature"])
        admin_client.patch(f"/api/photos/{photo['id']}", json={"description": "kept"})

        response = admin_client.patch(f"/api/photos/{photo['id']}", json={"title": "New"})

        body = response.json()
        assert response.status_code == 200
        assert body["title"] == "New"
        assert body["description"] == "kept"
        assert body["is_public"] is True
        assert [t["slug"] for t in body["tags"]] == ["nature"]

    def test_null_clears_title(self, admin_client, create_photo):
        photo = create_photo(title="Temporary")

        body = admin_client.patch(f"/api/photos/{photo['id']}", json={"title": None}).json()
        assert body["title"] is None

    def test_tags_in_patch_replace_the_set(self, admin_client, create_photo):
        photo = create_photo(tags=["Nature"])

        body = admin_client.patch(
            f"/api/photos/{photo['id']}",
            json={"is_public": False, "tags": ["Portrait", "unknown"]},
        ).json()

        assert body["is_public"] is False
        assert [t["slug"] for t in body["tags"]] == ["portrait"]

    def test_patch_requires_admin(self, client, create_photo):
        photo = create_photo()
        assert client.patch(f"/api/photos/{photo['id']}", json={"title": "x"}).status_code == 401

    def test_patch_unknown_photo_is_404(self, admin_client):
        assert admin_client.patch("/api/photos/missing", json={"title": "x"}).status_code == 404


class TestDelete:
    def test_delete_removes_record_and_object(self, client, admin_client, create_photo, storage):
        photo = create_photo(tags=["Nature"])

        response = admin_client.delete(f"/api/photos/{photo['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert storage.deleted == [photo["storage_key"]]
        assert client.get(f"/api/photos/{photo['id']}").status_code == 404
        tags = {t["slug"]: t["count"] for t in client.get("/api/tags").json()}
        assert tags["nature"] == 0

    def test_delete_unknown_photo_touches_nothing(self, admin_client, create_photo, storage):
        photo = create_photo()

        response = admin_client.delete("/api/photos/missing")

        assert response.status_code == 404
        assert storage.deleted == []
        assert admin_client.get(f"/api/photos/{photo['id']}").status_code == 200

    def test_storage_failure_does_not_block_delete(self, admin_client, create_photo, storage):
        photo = create_photo()
        storage.fail_delete = True

        response = admin_client.delete(f"/api/photos/{photo['id']}")

        assert response.status_code == 200
        assert admin_client.get(f"/api/photos/{photo['id']}").status_code == 404

    def test_delete_requires_admin(self, client, create_photo, storage):
        photo = create_photo()

        assert client.delete(f"/api/photos/{photo['id']}").status_code == 401
        assert storage.deleted == []

    def test_local_disk_failure_does_not_block_delete(self, admin_client, tmp_path):
        local = LocalStorageProvider(Settings(local_upload_dir=str(tmp_path)))
        reset_storage_provider(local)
        # a directory where the file should be: unlink fails with an OSError
        (tmp_path / "stuck.png").mkdir()
        photo = admin_client.post(
            "/api/photos",
            json={"filename": "stuck.png", "storage_key": "stuck.png", "storage_url": "/uploads/stuck.png"},
        ).json()

        response = admin_client.delete(f"/api/photos/{photo['id']}")

        assert response.status_code == 200
        assert admin_client.get(f"/api/photos/{photo['id']}").status_code == 404


class TestDownload:
    def test_admin_gets_original_bytes(self, admin_client, create_photo):
        original = make_image_bytes()
        photo = create_photo(title="Harbour at dawn", is_public=False, content=original)

        response = admin_client.get(f"/api/photos/{photo['id']}/download")

        assert response.status_code == 200
        assert response.content == original
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["content-disposition"] == 'attachment; filename="Harbour_at_dawn.png"'
        assert "x-watermark" not in response.headers

    def test_untitled_photo_filename_uses_id(self, admin_client, create_photo):
        photo = create_photo()

        response = admin_client.get(f"/api/photos/{photo['id']}/download")
        assert f'filename="photo_{photo["id"]}.png"' in response.headers["content-disposition"]

    def test_public_download_is_watermarked_jpeg(self, client, create_photo):
        original = make_image_bytes(size=(400, 300))
        photo = create_photo(is_public=True, content=original)

        response = client.get(f"/api/photos/{photo['id']}/download")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["x-watermark"] == "applied"
        assert response.headers["cache-control"] == "no-store"
        assert response.content != original
        with Image.open(io.BytesIO(response.content)) as image:
            assert image.format == "JPEG"
            assert image.size == (400, 300)

    def test_private_download_is_404_for_anonymous(self, client, create_photo):
        photo = create_photo(is_public=False)

        assert client.get(f"/api/photos/{photo['id']}/download").status_code == 404


def test_full_gallery_scenario(client, admin_client, storage):
    upload = admin_client.post(
        "/api/upload",
        files={"file": ("lake.png", make_image_bytes(size=(64, 48)), "image/png")},
        data={"tags": "Nature, Landscape"},
    ).json()
    created = admin_client.post(
        "/api/photos",
        json={
            "title": "Lake",
            "filename": upload["filename"],
            "storage_key": upload["storage_key"],
            "storage_url": upload["storage_url"],
            "mime_type": upload["mime_type"],
            "size": upload["size"],
            "width": upload["width"],
            "height": upload["height"],
            "tags": upload["tags"],
        },
    ).json()

    # private until published
    assert client.get("/api/photos").json() == []
    admin_client.patch(f"/api/photos/{created['id']}", json={"is_public": True})

    photos = client.get("/api/photos", params={"tag": "landscape"}).json()
    assert [p["id"] for p in photos] == [created["id"]]
    assert (photos[0]["width"], photos[0]["height"]) == (64, 48)

    assert admin_client.delete(f"/api/photos/{created['id']}").json() == {"success": True}
    assert client.get("/api/photos").json() == []
    assert storage.objects == {}
