import io
import os
import pytest
from PIL import Image

from conftest import auth_headers, make_user
from smo_social.config import settings
from smo_social.errors import NotFoundError, ValidationError
from smo_social.services.media import MediaLibraryManager
from smo_social.services.memory import format_bytes


def png_bytes(size=(4, 3)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (255, 0, 0)).save(buf, "PNG")
    return buf.getvalue()


@pytest.fixture(autouse=True)
def uploads(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "uploads_dir", str(tmp_path))
    return tmp_path


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(1536) == "1.50 KB"
    assert format_bytes(10 * 1024 * 1024) == "10.00 MB"


def test_upload_stores_file_and_dimensions(db, editor, uploads):
    asset = MediaLibraryManager(db, editor).upload(png_bytes(), "my photo!.png", "image/png", tags="red, tiny")
    assert (asset.width, asset.height) == (4, 3)
    assert asset.filename == "my_photo_.png"
    assert asset.title == "my_photo_"
    assert asset.tags == ["red", "tiny"]
    assert os.path.exists(asset.storage_path)
    assert asset.url.endswith(os.path.basename(asset.storage_path))


def test_upload_rejects_bad_files(db, editor, monkeypatch):
    manager = MediaLibraryManager(db, editor)
    with pytest.raises(ValidationError) as exc:
        manager.upload(b"%PDF", "doc.pdf", "application/pdf")
    assert exc.value.message.startswith("File type not allowed")

    with pytest.raises(ValidationError) as exc:
        manager.upload(b"not really an image", "fake.png", "image/png")
    assert exc.value.message == "Uploaded file is not a valid image"

    with pytest.raises(ValidationError) as exc:
        manager.upload(png_bytes(), "liar.jpg", "image/jpeg")
    assert exc.value.message == "File content does not match its type"

    monkeypatch.setattr(settings, "media_max_upload_bytes", 10)
    with pytest.raises(ValidationError) as exc:
        manager.upload(png_bytes(), "big.png", "image/png")
    assert "too large" in exc.value.message


def test_library_filters_and_pages(db, editor):
    manager = MediaLibraryManager(db, editor)
    for n in range(3):
        manager.upload(png_bytes(), f"shot{n}.png", "image/png", tags="beach" if n == 1 else "")
    page = manager.get_media({}, page=2, per_page=2)
    assert len(page["items"]) == 1
    assert page["pagination"] == {"current_page": 2, "per_page": 2, "total_items": 3, "total_pages": 2}

    tagged = manager.get_media({"tag": "beach"})
    assert [i["filename"] for i in tagged["items"]] == ["shot1.png"]
    assert manager.get_media({"search": "shot2"})["pagination"]["total_items"] == 1


def test_update_and_delete(db, editor):
    manager = MediaLibraryManager(db, editor)
    asset = manager.upload(png_bytes(), "a.png", "image/png")
    path = asset.storage_path

    updated = manager.update_media(asset.id, {"title": "", "alt_text": "Red square", "tags": "one,two"})
    assert updated.title == "a"
    assert updated.alt_text == "Red square"
    assert updated.tags == ["one", "two"]

    manager.delete_media(asset.id)
    assert not os.path.exists(path)
    with pytest.raises(NotFoundError):
        manager.delete_media(asset.id)


def test_stats(db, editor):
    manager = MediaLibraryManager(db, editor)
    raw = png_bytes()
    manager.upload(raw, "a.png", "image/png")
    manager.upload(raw, "b.png", "image/png")
    stats = manager.get_stats()
    assert stats["total_items"] == 2
    assert stats["total_size"] == 2 * len(raw)
    assert stats["by_type"] == {"image/png": 2}


def test_share_creates_one_post_per_image(db, editor):
    manager = MediaLibraryManager(db, editor)
    a = manager.upload(png_bytes(), "a.png", "image/png")
    b = manager.upload(png_bytes(), "b.png", "image/png")

    posts = manager.share_selected_images(f"{b.id},{a.id}", ["instagram", "facebook"], "Summer vibes #sun")
    assert [p.media_ids for p in posts] == [[b.id], [a.id]]
    assert all(p.status == "draft" and p.post_type == "image" for p in posts)
    assert posts[0].hashtags == ["#sun"]

    scheduled = manager.share_selected_images([a.id], ["twitter"], "Later", "2099-06-01T12:00:00Z")
    assert scheduled[0].status == "scheduled"


def test_share_validation(db, editor):
    manager = MediaLibraryManager(db, editor)
    a = manager.upload(png_bytes(), "a.png", "image/png")
    with pytest.raises(ValidationError) as exc:
        manager.share_selected_images([], ["twitter"])
    assert exc.value.message == "Please select at least one image"
    with pytest.raises(ValidationError):
        manager.share_selected_images([a.id], [])
    with pytest.raises(ValidationError):
        manager.share_selected_images(["x"], ["twitter"])
    with pytest.raises(NotFoundError):
        manager.share_selected_images([a.id, 999], ["twitter"])


def test_preview_share(db, editor):
    manager = MediaLibraryManager(db, editor)
    a = manager.upload(png_bytes(), "a.png", "image/png")
    previews = manager.preview_share([a.id], ["twitter"], "Look @friend")
    assert previews[0]["media"]["id"] == a.id
    assert previews[0]["mentions"] == ["@friend"]
    assert previews[0]["previews"]["twitter"]["character_limit"] == 280


def test_ajax_upload(client, editor):
    r = client.post(
        "/ajax/smo_upload_media",
        files={"file": ("pic.png", png_bytes(), "image/png")},
        data={"alt_text": "A pixel"},
        headers=auth_headers(editor),
    )
    data = r.json()["data"]
    assert data["alt_text"] == "A pixel"
    assert data["mime_type"] == "image/png"


def test_ajax_upload_rejects_oversized_file(client, editor, monkeypatch):
    monkeypatch.setattr(settings, "media_max_upload_bytes", 100)
    seen = []
    original = MediaLibraryManager.upload

    def spy(self, raw, *args, **kwargs):
        seen.append(len(raw))
        return original(self, raw, *args, **kwargs)

    monkeypatch.setattr(MediaLibraryManager, "upload", spy)
    r = client.post(
        "/ajax/smo_upload_media",
        files={"file": ("big.png", b"\x89PNG" + b"0" * 5000, "image/png")},
        headers=auth_headers(editor),
    )
    assert r.status_code == 400
    assert r.json()["data"].startswith("File is too large")
    # only the cap plus one byte is read
    assert seen == [101]


def test_ajax_upload_without_file(client, editor):
    r = client.post("/ajax/smo_upload_media", data={"title": "x"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "No file uploaded"}


def test_ajax_library_requires_upload_capability(client, db):
    contributor = make_user(db, "contributor")
    r = client.post("/ajax/smo_get_media_library", headers=auth_headers(contributor))
    assert r.status_code == 403


def test_ajax_share_repeated_fields(client, editor, db):
    manager = MediaLibraryManager(db, editor)
    a = manager.upload(png_bytes(), "a.png", "image/png")
    r = client.post(
        "/ajax/smo_share_selected_images",
        data={"media_ids": [str(a.id)], "platforms": ["twitter", "linkedin"], "caption": "New drop"},
        headers=auth_headers(editor),
    )
    assert r.json()["data"]["message"] == "1 posts created"
