from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.media import DEFAULT_PER_PAGE, MediaLibraryManager, asset_to_dict
from ..services.posts import post_to_dict
from .forms import form_list

router = APIRouter(prefix="/ajax", tags=["media-library"])

@router.post("/smo_get_media_library")
def get_media_library(
    page: int = Form(1),
    per_page: int = Form(DEFAULT_PER_PAGE),
    search: str = Form(""),
    mime_type: str = Form(""),
    tag: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("upload_files")),
):
    try:
        filters = {"search": search.strip(), "mime_type": mime_type, "tag": tag.strip()}
        return json_success(MediaLibraryManager(db, user).get_media(filters, page, per_page))
    except Exception as e:
        return error_response("smo_get_media_library", e)

@router.post("/smo_upload_media")
def upload_media(
    file: UploadFile | None = File(None),
    title: str = Form(""),
    alt_text: str = Form(""),
    tags: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("upload_files")),
):
    try:
        if file is None:
            raise ValidationError("No file uploaded")
        # one byte past the cap is enough to reject an oversized upload
        raw = file.file.read(settings.media_max_upload_bytes + 1)
        asset = MediaLibraryManager(db, user).upload(raw, file.filename, file.content_type, title, alt_text, tags)
        return json_success(asset_to_dict(asset))
    except Exception as e:
        return error_response("smo_upload_media", e)

@router.post("/smo_update_media")
def update_media(
    media_id: int = Form(0),
    title: str | None = Form(None),
    alt_text: str | None = Form(None),
    tags: str | None = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("upload_files")),
):
    try:
        data = {k: v for k, v in {"title": title, "alt_text": alt_text, "tags": tags}.items() if v is not None}
        return json_success(asset_to_dict(MediaLibraryManager(db, user).update_media(media_id, data)))
    except Exception as e:
        return error_response("smo_update_media", e)

@router.post("/smo_delete_media")
def delete_media(
    media_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("upload_files")),
):
    try:
        MediaLibraryManager(db, user).delete_media(media_id)
        return json_success("Media deleted successfully")
    except Exception as e:
        return error_response("smo_delete_media", e)

@router.post("/smo_get_media_stats")
def get_media_stats(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("upload_files")),
):
    try:
        return json_success(MediaLibraryManager(db, user).get_stats())
    except Exception as e:
        return error_response("smo_get_media_stats", e)

@router.post("/smo_share_selected_images")
def share_selected_images(
    media_ids: list[str] = Form([]),
    platforms: list[str] = Form([]),
    caption: str = Form(""),
    scheduled_time: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        posts = MediaLibraryManager(db, user).share_selected_images(form_list(media_ids), form_list(platforms), caption, scheduled_time or None)
        return json_success({
            "posts": [post_to_dict(p) for p in posts],
            "message": f"{len(posts)} posts created",
        })
    except Exception as e:
        return error_response("smo_share_selected_images", e)

@router.post("/smo_preview_share")
def preview_share(
    media_ids: list[str] = Form([]),
    platforms: list[str] = Form([]),
    caption: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(MediaLibraryManager(db, user).preview_share(form_list(media_ids), form_list(platforms), caption))
    except Exception as e:
        return error_response("smo_preview_share", e)
