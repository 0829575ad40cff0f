import re
from urllib.parse import urlparse
import requests
from bs4 import BeautifulSoup
from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import Post, PostTemplate, User
from smo_social.services.dates import utcnow, as_utc, parse_datetime
from smo_social.services.platforms import PLATFORMS, character_limits

POST_TYPES = ("text", "image", "link", "video", "gallery", "reshare")
MIN_CONTENT_LENGTH = 10
MAX_LINKS = 5
MAX_GALLERY_IMAGES = 10
LINK_PREVIEW_TIMEOUT = 10

HASHTAG_RE = re.compile(r"(?<!\w)#(\w+)")
MENTION_RE = re.compile(r"(?<![\w@])@(\w+)")
URL_RE = re.compile(r"https?://[^\s<>\"']+")

def extract_hashtags(text: str) -> list[str]:
    return [f"#{t}" for t in HASHTAG_RE.findall(text or "")]

def extract_mentions(text: str) -> list[str]:
    return [f"@{m}" for m in MENTION_RE.findall(text or "")]

def extract_links(text: str) -> list[str]:
    return URL_RE.findall(text or "")

def is_valid_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)

def validate_post(content: str, platforms: list[str], post_type: str = "text",
                  links: list[str] | None = None, media_ids: list[int] | None = None) -> dict:
    errors, warnings = [], []
    content = (content or "").strip()
    links = links or []
    media_ids = media_ids or []

    if not content:
        errors.append("Post content is required")
    elif len(content) < MIN_CONTENT_LENGTH:
        errors.append(f"Post content must be at least {MIN_CONTENT_LENGTH} characters")

    if not platforms:
        errors.append("Please select at least one platform")
    unknown = [p for p in platforms if p not in PLATFORMS]
    if unknown:
        errors.append(f"Unknown platforms: {', '.join(unknown)}")

    if post_type not in POST_TYPES:
        errors.append(f"Invalid post type: {post_type}")

    if len(links) > MAX_LINKS:
        errors.append(f"A post can contain at most {MAX_LINKS} links")
    bad_links = [l for l in links if not is_valid_url(l)]
    if bad_links:
        errors.append(f"Invalid links: {', '.join(bad_links)}")
    if post_type == "link" and not links:
        errors.append("Link posts need at least one link")

    if post_type == "gallery" and len(media_ids) > MAX_GALLERY_IMAGES:
        errors.append(f"A gallery can contain at most {MAX_GALLERY_IMAGES} images")
    if post_type in ("image", "gallery", "video") and not media_ids:
        errors.append("Please attach media for this post type")

    limits = character_limits()
    length = len(content)
    for p in platforms:
        limit = limits.get(p)
        if limit and length > limit:
            warnings.append(f"{p}: {length}/{limit} characters")

    return {"valid": not errors, "errors": errors, "warnings": warnings, "character_count": length}

def preview_post(content: str, platforms: list[str]) -> dict:
    content = content or ""
    limits = character_limits()
    previews = {}
    for p in platforms:
        limit = limits.get(p)
        if limit is None:
            continue
        previews[p] = {
            "platform": PLATFORMS[p]["name"],
            "content": content[:limit],
            "character_count": len(content),
            "character_limit": limit,
            "remaining": limit - len(content),
            "over_limit": len(content) > limit,
        }
    return {
        "previews": previews,
        "hashtags": extract_hashtags(content),
        "mentions": extract_mentions(content),
        "links": extract_links(content),
    }

def get_link_preview(url: str) -> dict:
    url = (url or "").strip()
    if not is_valid_url(url):
        raise ValidationError("Invalid URL")
    try:
        r = requests.get(url, timeout=LINK_PREVIEW_TIMEOUT, headers={"User-Agent": "SMOSocialBot/1.0"})
        r.raise_for_status()
    except requests.RequestException as e:
        log_event("link_preview_fail", level="warning", url=url, error=str(e))
        raise ValidationError(f"Could not fetch URL: {e}")

    soup = BeautifulSoup(r.text, "html.parser")

    def meta(*, prop: str | None = None, name: str | None = None) -> str:
        tag = soup.find("meta", attrs={"property": prop}) if prop else soup.find("meta", attrs={"name": name})
        return (tag.get("content") or "").strip() if tag else ""

    title = meta(prop="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()
    return {
        "title": title,
        "description": meta(prop="og:description") or meta(name="description"),
        "image": meta(prop="og:image"),
        "domain": urlparse(url).hostname,
        "url": url,
    }

def post_to_dict(p: Post) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "content": p.content,
        "post_type": p.post_type,
        "platforms": p.platforms or [],
        "links": p.links or [],
        "media_ids": p.media_ids or [],
        "hashtags": p.hashtags or [],
        "status": p.status,
        "priority": p.priority,
        "scheduled_time": as_utc(p.scheduled_time),
        "published_time": as_utc(p.published_time),
        "created_at": as_utc(p.created_at),
    }

def template_to_dict(t: PostTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "content": t.content,
        "post_type": t.post_type,
        "platforms": t.platforms or [],
        "hashtags": t.hashtags or [],
        "created_at": as_utc(t.created_at),
    }


class PostComposer:
    """Drafts, scheduling and templates for the create-post screen."""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def _build(self, data: dict, status: str, scheduled_time=None) -> Post:
        content = (data.get("content") or "").strip()
        platforms = data.get("platforms") or []
        post_type = data.get("post_type") or "text"
        links = data.get("links") or []
        media_ids = data.get("media_ids") or []

        result = validate_post(content, platforms, post_type, links, media_ids)
        if not result["valid"]:
            raise ValidationError(result["errors"][0], details={"errors": result["errors"]})

        hashtags = data.get("hashtags") or extract_hashtags(content)
        post = Post(
            user_id=self.user.id,
            title=(data.get("title") or "").strip() or None,
            content=content,
            post_type=post_type,
            platforms=platforms,
            links=links,
            media_ids=[int(m) for m in media_ids],
            hashtags=hashtags,
            status=status,
            priority=data.get("priority") or "normal",
            scheduled_time=scheduled_time,
        )
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        log_event("post_saved", post_id=post.id, post_status=status, user_id=self.user.id)
        return post

    def save_draft(self, data: dict) -> Post:
        return self._build(data, "draft")

    def schedule_post(self, data: dict) -> Post:
        when = parse_datetime(data.get("scheduled_time"))
        if not when:
            raise ValidationError("Scheduled time is required")
        if when <= utcnow():
            raise ValidationError("Scheduled time must be in the future")
        return self._build(data, "scheduled", when)

    def save_template(self, data: dict) -> PostTemplate:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Template name is required")
        t = PostTemplate(
            user_id=self.user.id,
            name=name,
            description=(data.get("description") or "").strip() or None,
            content=data.get("content") or "",
            post_type=data.get("post_type") or "text",
            platforms=data.get("platforms") or [],
            hashtags=data.get("hashtags") or extract_hashtags(data.get("content") or ""),
        )
        self.db.add(t)
        self.db.commit()
        self.db.refresh(t)
        return t

    def _template(self, template_id: int) -> PostTemplate:
        t = self.db.query(PostTemplate).filter(
            PostTemplate.id == template_id,
            PostTemplate.user_id == self.user.id,
        ).first()
        if not t:
            raise NotFoundError("Template", template_id)
        return t

    def load_template(self, template_id: int) -> dict:
        return template_to_dict(self._template(template_id))

    def get_templates(self) -> list[dict]:
        rows = (
            self.db.query(PostTemplate)
            .filter(PostTemplate.user_id == self.user.id)
            .order_by(PostTemplate.name.asc())
            .all()
        )
        return [template_to_dict(t) for t in rows]

    def delete_template(self, template_id: int) -> None:
        self.db.delete(self._template(template_id))
        self.db.commit()
