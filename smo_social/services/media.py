import io
import os
import re
from math import ceil
from PIL import Image, UnidentifiedImageError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from smo_social.config import settings
from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import MediaAsset, Post, User
from smo_social.services.content_organizer import split_list
from smo_social.services.dates import utcnow, as_utc, parse_datetime
from smo_social.services.memory import format_bytes
from smo_social.services.platforms import PLATFORMS
from smo_social.services.posts import extract_hashtags, preview_post

ALLOWED_MIME_TYPES = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}
DEFAULT_PER_PAGE = 24
MAX_PER_PAGE = 100

def _ensure_uploads_dir():
    os.makedirs(settings.uploads_dir, exist_ok=True)

def _safe_name(filename: str) -> str:
    base = os.path.basename(filename or "upload")
    return re.sub(r"[^A-Za-z0-9._-]", "_", base) or "upload"

def asset_to_dict(a: MediaAsset) -> dict:
    return {
        "id": a.id,
        "filename": a.filename,
        "title": a.title,
        "alt_text": a.alt_text,
        "url": a.url,
        "mime_type": a.mime_type,
        "file_size": a.file_size,
        "file_size_formatted": format_bytes(a.file_size or 0),
        "width": a.width,
        "height": a.height,
        "tags": a.tags or [],
        "uploaded_by": a.uploaded_by,
        "created_at": as_utc(a.created_at),
    }


class MediaLibraryManager:
    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def _get(self, media_id: int) -> MediaAsset:
        a = self.db.query(MediaAsset).filter(MediaAsset.id == media_id).first()
        if not a:
            raise NotFoundError("Media", media_id)
        return a

    def upload(self, raw: bytes, filename: str, content_type: str | None,
               title: str | None = None, alt_text: str | None = None, tags=None) -> MediaAsset:
        mime = (content_type or "").lower()
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError("File type not allowed. Allowed types: png, jpeg, jpg, webp, gif")
        if not raw:
            raise ValidationError("Uploaded file is empty")
        if len(raw) > settings.media_max_upload_bytes:
            raise ValidationError(f"File is too large. Maximum size is {format_bytes(settings.media_max_upload_bytes)}")

        try:
            with Image.open(io.BytesIO(raw)) as img:
                width, height = img.size
                fmt = img.format
        except (UnidentifiedImageError, OSError):
            raise ValidationError("Uploaded file is not a valid image")
        if fmt != ALLOWED_MIME_TYPES[mime]:
            raise ValidationError("File content does not match its type")

        _ensure_uploads_dir()
        name = f"media_{int(utcnow().timestamp() * 1000)}_{_safe_name(filename)}"
        path = os.path.join(settings.uploads_dir, name)
        with open(path, "wb") as f:
            f.write(raw)

        asset = MediaAsset(
            uploaded_by=self.user.id,
            filename=_safe_name(filename),
            title=(title or "").strip() or os.path.splitext(_safe_name(filename))[0],
            alt_text=(alt_text or "").strip() or None,
            url=f"{settings.public_base_url.rstrip('/')}/uploads/{name}",
            storage_path=path,
            mime_type=mime,
            file_size=len(raw),
            width=width,
            height=height,
            tags=split_list(tags),
        )
        self.db.add(asset)
        self.db.commit()
        self.db.refresh(asset)
        log_event("media_uploaded", media_id=asset.id, mime_type=mime, file_size=len(raw))
        return asset

    def get_media(self, filters: dict | None = None, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> dict:
        filters = filters or {}
        page = max(int(page or 1), 1)
        per_page = min(max(int(per_page or DEFAULT_PER_PAGE), 1), MAX_PER_PAGE)

        q = self.db.query(MediaAsset)
        if filters.get("search"):
            like = f"%{filters['search']}%"
            q = q.filter(or_(MediaAsset.title.ilike(like), MediaAsset.filename.ilike(like), MediaAsset.alt_text.ilike(like)))
        if filters.get("mime_type"):
            q = q.filter(MediaAsset.mime_type == filters["mime_type"])
        assets = q.order_by(MediaAsset.created_at.desc(), MediaAsset.id.desc()).all()

        # JSON columns are not portable to filter on
        if filters.get("tag"):
            assets = [a for a in assets if filters["tag"] in (a.tags or [])]

        total = len(assets)
        start = (page - 1) * per_page
        return {
            "items": [asset_to_dict(a) for a in assets[start:start + per_page]],
            "pagination": {
                "current_page": page,
                "per_page": per_page,
                "total_items": total,
                "total_pages": ceil(total / per_page) if total else 0,
            },
        }

    def update_media(self, media_id: int, data: dict) -> MediaAsset:
        a = self._get(media_id)
        if "title" in data:
            a.title = (data.get("title") or "").strip() or a.title
        if "alt_text" in data:
            a.alt_text = (data.get("alt_text") or "").strip() or None
        if "tags" in data:
            a.tags = split_list(data.get("tags"))
        self.db.commit()
        self.db.refresh(a)
        return a

    def delete_media(self, media_id: int) -> None:
        a = self._get(media_id)
        if a.storage_path and os.path.exists(a.storage_path):
            try:
                os.remove(a.storage_path)
            except OSError as e:
                log_event("media_file_remove_fail", level="warning", media_id=media_id, error=str(e))
        self.db.delete(a)
        self.db.commit()
        log_event("media_deleted", media_id=media_id)

    def get_stats(self) -> dict:
        count, total_size = self.db.query(func.count(MediaAsset.id), func.coalesce(func.sum(MediaAsset.file_size), 0)).one()
        by_type = dict(
            self.db.query(MediaAsset.mime_type, func.count(MediaAsset.id)).group_by(MediaAsset.mime_type).all()
        )
        return {
            "total_items": count,
            "total_size": int(total_size),
            "total_size_formatted": format_bytes(total_size),
            "by_type": by_type,
        }

    def _share_inputs(self, media_ids, platforms) -> tuple[list[MediaAsset], list[str]]:
        try:
            ids = [int(i) for i in split_list(media_ids)]
        except ValueError:
            raise ValidationError("Invalid media IDs")
        if not ids:
            raise ValidationError("Please select at least one image")
        platforms = split_list(platforms)
        if not platforms:
            raise ValidationError("Please select at least one platform")
        unknown = [p for p in platforms if p not in PLATFORMS]
        if unknown:
            raise ValidationError(f"Unknown platforms: {', '.join(unknown)}")
        assets = self.db.query(MediaAsset).filter(MediaAsset.id.in_(ids)).all()
        if len(assets) != len(set(ids)):
            raise NotFoundError("Media", [i for i in ids if i not in {a.id for a in assets}])
        order = {mid: n for n, mid in enumerate(ids)}
        return sorted(assets, key=lambda a: order[a.id]), platforms

    def preview_share(self, media_ids, platforms, caption: str = "") -> list[dict]:
        assets, platforms = self._share_inputs(media_ids, platforms)
        preview = preview_post(caption, platforms)
        return [{"media": asset_to_dict(a), **preview} for a in assets]

    def share_selected_images(self, media_ids, platforms, caption: str = "", scheduled_time: str | None = None) -> list[Post]:
        assets, platforms = self._share_inputs(media_ids, platforms)
        when = parse_datetime(scheduled_time)
        if when and when <= utcnow():
            raise ValidationError("Scheduled time must be in the future")

        caption = (caption or "").strip()
        posts = []
        for a in assets:
            post = Post(
                user_id=self.user.id,
                title=a.title,
                content=caption or (a.alt_text or ""),
                post_type="image",
                platforms=platforms,
                media_ids=[a.id],
                hashtags=extract_hashtags(caption),
                status="scheduled" if when else "draft",
                scheduled_time=when,
            )
            self.db.add(post)
            posts.append(post)
        self.db.commit()
        for p in posts:
            self.db.refresh(p)
        log_event("media_shared", post_count=len(posts), platforms=platforms)
        return posts
