import re
from datetime import timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import ContentCategory, ContentIdea, Post, PostCategoryAssignment
from smo_social.services.dates import utcnow, as_utc, parse_datetime

DEFAULT_COLOR = "#007cba"
DEFAULT_ICON = "dashicons-category"
IDEA_STATUSES = ("idea", "draft", "scheduled", "published")
IDEA_PRIORITIES = ("low", "normal", "high", "urgent")

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")

def split_list(value) -> list[str]:
    """Accepts a list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(i).strip() for i in items if str(i).strip()]

def category_to_dict(c: ContentCategory, post_count: int = 0) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "color_code": c.color_code,
        "icon": c.icon,
        "parent_id": c.parent_id,
        "sort_order": c.sort_order,
        "is_default": c.is_default,
        "post_count": post_count,
        "created_at": as_utc(c.created_at),
    }

def idea_to_dict(i: ContentIdea) -> dict:
    return {
        "id": i.id,
        "title": i.title,
        "description": i.description,
        "content_type": i.content_type,
        "target_platforms": i.target_platforms or [],
        "tags": i.tags or [],
        "category": i.category,
        "priority": i.priority,
        "status": i.status,
        "scheduled_date": as_utc(i.scheduled_date),
        "created_at": as_utc(i.created_at),
        "updated_at": as_utc(i.updated_at),
    }

def post_summary(p: Post) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "content": p.content,
        "status": p.status,
        "platforms": p.platforms or [],
        "scheduled_time": as_utc(p.scheduled_time),
        "created_at": as_utc(p.created_at),
    }


class ContentCategoriesManager:
    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def _get(self, category_id: int) -> ContentCategory:
        c = self.db.query(ContentCategory).filter(
            ContentCategory.id == category_id,
            ContentCategory.user_id == self.user_id,
        ).first()
        if not c:
            raise NotFoundError("Category", category_id)
        return c

    def _post_count(self, category_id: int) -> int:
        return self.db.query(PostCategoryAssignment).filter(PostCategoryAssignment.category_id == category_id).count()

    def save_category(self, data: dict) -> ContentCategory:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Category name is required")

        color = (data.get("color") or data.get("color_code") or "").strip()
        if not HEX_COLOR.match(color):
            color = DEFAULT_COLOR

        category_id = int(data.get("id") or 0)
        c = self._get(category_id) if category_id > 0 else ContentCategory(user_id=self.user_id)
        c.name = name
        c.description = (data.get("description") or "").strip() or None
        c.color_code = color
        c.icon = (data.get("icon") or "").strip() or DEFAULT_ICON
        if data.get("parent_id"):
            c.parent_id = int(data["parent_id"])
        if data.get("sort_order") not in (None, ""):
            c.sort_order = int(data["sort_order"])
        if category_id <= 0:
            self.db.add(c)
        self.db.commit()
        self.db.refresh(c)
        log_event("category_saved", category_id=c.id, user_id=self.user_id)
        return c

    def get_category(self, category_id: int) -> dict:
        c = self._get(category_id)
        return category_to_dict(c, self._post_count(c.id))

    def get_categories(self) -> list[dict]:
        counts = dict(
            self.db.query(PostCategoryAssignment.category_id, func.count(PostCategoryAssignment.id))
            .group_by(PostCategoryAssignment.category_id)
            .all()
        )
        rows = (
            self.db.query(ContentCategory)
            .filter(ContentCategory.user_id == self.user_id, ContentCategory.is_active == True)
            .order_by(ContentCategory.sort_order.asc(), ContentCategory.name.asc())
            .all()
        )
        return [category_to_dict(c, counts.get(c.id, 0)) for c in rows]

    def count_categories(self) -> int:
        return self.db.query(ContentCategory).filter(
            ContentCategory.user_id == self.user_id, ContentCategory.is_active == True
        ).count()

    def delete_category(self, category_id: int) -> None:
        c = self._get(category_id)
        self.db.query(PostCategoryAssignment).filter(PostCategoryAssignment.category_id == c.id).delete()
        self.db.query(ContentCategory).filter(ContentCategory.parent_id == c.id).update({ContentCategory.parent_id: None})
        self.db.delete(c)
        self.db.commit()
        log_event("category_deleted", category_id=category_id, user_id=self.user_id)

    def assign_post(self, post_id: int, category_id: int) -> bool:
        self._get(category_id)
        if not self.db.query(Post).filter(Post.id == post_id).first():
            raise NotFoundError("Post", post_id)
        self.db.add(PostCategoryAssignment(post_id=post_id, category_id=category_id, user_id=self.user_id))
        try:
            self.db.commit()
        except IntegrityError:
            # already assigned
            self.db.rollback()
            return False
        return True

    def remove_post(self, post_id: int, category_id: int) -> bool:
        deleted = self.db.query(PostCategoryAssignment).filter(
            PostCategoryAssignment.post_id == post_id,
            PostCategoryAssignment.category_id == category_id,
        ).delete()
        self.db.commit()
        return deleted > 0

    def get_posts_by_category(self, category_id: int, limit: int = 50) -> list[dict]:
        self._get(category_id)
        posts = (
            self.db.query(Post)
            .join(PostCategoryAssignment, PostCategoryAssignment.post_id == Post.id)
            .filter(PostCategoryAssignment.category_id == category_id)
            .order_by(Post.created_at.desc())
            .limit(limit)
            .all()
        )
        return [post_summary(p) for p in posts]

    def get_category_analytics(self, category_id: int) -> dict:
        c = self._get(category_id)
        by_status = dict(
            self.db.query(Post.status, func.count(Post.id))
            .join(PostCategoryAssignment, PostCategoryAssignment.post_id == Post.id)
            .filter(PostCategoryAssignment.category_id == c.id)
            .group_by(Post.status)
            .all()
        )
        return {
            "category_id": c.id,
            "name": c.name,
            "post_count": sum(by_status.values()),
            "by_status": by_status,
        }


class ContentIdeasManager:
    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def _get(self, idea_id: int) -> ContentIdea:
        i = self.db.query(ContentIdea).filter(ContentIdea.id == idea_id, ContentIdea.user_id == self.user_id).first()
        if not i:
            raise NotFoundError("Idea", idea_id)
        return i

    def _apply(self, idea: ContentIdea, data: dict) -> None:
        if "title" in data:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("Idea title is required")
            idea.title = title
        if "description" in data:
            idea.description = (data.get("description") or "").strip() or None
        if data.get("content_type"):
            idea.content_type = data["content_type"]
        if "target_platforms" in data:
            idea.target_platforms = split_list(data["target_platforms"])
        if "tags" in data:
            idea.tags = split_list(data["tags"])
        if data.get("category"):
            idea.category = str(data["category"]).strip()
        if data.get("priority"):
            if data["priority"] not in IDEA_PRIORITIES:
                raise ValidationError("Invalid priority")
            idea.priority = data["priority"]
        if data.get("status"):
            if data["status"] not in IDEA_STATUSES:
                raise ValidationError("Invalid status")
            idea.status = data["status"]
        if "scheduled_date" in data:
            idea.scheduled_date = parse_datetime(data.get("scheduled_date"))

    def add_idea(self, data: dict) -> ContentIdea:
        if not (data.get("title") or "").strip():
            raise ValidationError("Idea title is required")
        idea = ContentIdea(
            user_id=self.user_id,
            content_type="text",
            category="general",
            priority="normal",
            status="idea",
            target_platforms=[],
            tags=[],
        )
        self._apply(idea, data)
        self.db.add(idea)
        self.db.commit()
        self.db.refresh(idea)
        log_event("idea_saved", idea_id=idea.id, user_id=self.user_id)
        return idea

    def save_quick_idea(self, title: str, description: str = "", category: str | None = None, priority: str | None = None) -> ContentIdea:
        return self.add_idea({"title": title, "description": description, "category": category, "priority": priority})

    def update_idea(self, idea_id: int, data: dict) -> ContentIdea:
        idea = self._get(idea_id)
        self._apply(idea, data)
        self.db.commit()
        self.db.refresh(idea)
        return idea

    def save_idea(self, data: dict) -> ContentIdea:
        idea_id = int(data.get("id") or 0)
        if idea_id > 0:
            return self.update_idea(idea_id, data)
        return self.add_idea(data)

    def get_idea(self, idea_id: int) -> dict:
        return idea_to_dict(self._get(idea_id))

    def update_status(self, idea_id: int, status: str) -> ContentIdea:
        if status not in IDEA_STATUSES:
            raise ValidationError("Invalid parameters")
        idea = self._get(idea_id)
        idea.status = status
        self.db.commit()
        return idea

    def delete_idea(self, idea_id: int) -> None:
        idea = self._get(idea_id)
        self.db.query(Post).filter(Post.content_idea_id == idea.id).update({Post.content_idea_id: None})
        self.db.delete(idea)
        self.db.commit()
        log_event("idea_deleted", idea_id=idea_id, user_id=self.user_id)

    def get_ideas(self, filters: dict | None = None) -> dict:
        """Ideas grouped by status for the kanban board."""
        filters = filters or {}
        q = self.db.query(ContentIdea).filter(ContentIdea.user_id == self.user_id)
        if filters.get("category"):
            q = q.filter(ContentIdea.category == filters["category"])
        if filters.get("priority"):
            q = q.filter(ContentIdea.priority == filters["priority"])
        if filters.get("search"):
            q = q.filter(ContentIdea.title.ilike(f"%{filters['search']}%"))

        grouped = {s: [] for s in IDEA_STATUSES}
        for idea in q.order_by(ContentIdea.created_at.desc(), ContentIdea.id.desc()).all():
            if idea.status in grouped:
                grouped[idea.status].append(idea_to_dict(idea))
        return grouped

    def count_ideas(self, status: str | None = None) -> int:
        q = self.db.query(ContentIdea).filter(ContentIdea.user_id == self.user_id)
        if status:
            q = q.filter(ContentIdea.status == status)
        return q.count()

    def idea_to_post(self, idea_id: int, scheduled_time: str | None = None) -> Post:
        idea = self._get(idea_id)
        when = parse_datetime(scheduled_time)
        post = Post(
            user_id=self.user_id,
            title=idea.title,
            content=idea.description or idea.title,
            post_type=idea.content_type if idea.content_type else "text",
            platforms=list(idea.target_platforms or []),
            hashtags=[t if t.startswith("#") else f"#{t}" for t in (idea.tags or [])],
            status="scheduled" if when else "draft",
            priority=idea.priority,
            content_idea_id=idea.id,
            scheduled_time=when,
        )
        self.db.add(post)
        idea.status = "scheduled"
        self.db.commit()
        self.db.refresh(post)
        log_event("idea_converted", idea_id=idea.id, post_id=post.id, post_status=post.status)
        return post

    def duplicate_idea(self, idea_id: int) -> ContentIdea:
        src = self._get(idea_id)
        copy = ContentIdea(
            user_id=self.user_id,
            title=f"{src.title} (Copy)",
            description=src.description,
            content_type=src.content_type,
            target_platforms=list(src.target_platforms or []),
            tags=list(src.tags or []),
            category=src.category,
            priority=src.priority,
            status="idea",
        )
        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        return copy

    def get_idea_statistics(self) -> dict:
        ideas = self.db.query(ContentIdea).filter(ContentIdea.user_id == self.user_id).all()
        cutoff = utcnow() - timedelta(days=30)

        def tally(attr: str) -> dict:
            out = {}
            for i in ideas:
                key = getattr(i, attr)
                out[key] = out.get(key, 0) + 1
            return out

        return {
            "total": len(ideas),
            "recent": sum(1 for i in ideas if i.created_at and as_utc(i.created_at) >= cutoff),
            "by_status": tally("status"),
            "by_priority": tally("priority"),
            "by_type": tally("content_type"),
        }

    def get_popular_tags(self, limit: int = 20) -> list[dict]:
        counts = {}
        for (tags,) in self.db.query(ContentIdea.tags).filter(ContentIdea.user_id == self.user_id).all():
            for t in tags or []:
                counts[t] = counts.get(t, 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
        return [{"tag": t, "count": n} for t, n in ranked]


def get_organizer_stats(db: Session, user_id: int) -> dict:
    ideas = ContentIdeasManager(db, user_id)
    return {
        "total_categories": ContentCategoriesManager(db, user_id).count_categories(),
        "total_ideas": ideas.count_ideas(),
        "total_drafts": ideas.count_ideas("draft"),
        "total_scheduled": ideas.count_ideas("scheduled"),
    }
