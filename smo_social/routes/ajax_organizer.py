from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.content_organizer import (
    ContentCategoriesManager,
    ContentIdeasManager,
    category_to_dict,
    get_organizer_stats,
    idea_to_dict,
    post_summary,
)
from .forms import form_list

router = APIRouter(prefix="/ajax", tags=["content-organizer"])

@router.post("/smo_get_organizer_stats")
def organizer_stats(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(get_organizer_stats(db, user.id))
    except Exception as e:
        return error_response("smo_get_organizer_stats", e)

# --- Categories ---

@router.post("/smo_save_category")
def save_category(
    id: int = Form(0),
    name: str = Form(""),
    description: str = Form(""),
    color: str = Form(""),
    icon: str = Form(""),
    parent_id: int = Form(0),
    sort_order: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        category = ContentCategoriesManager(db, user.id).save_category({
            "id": id, "name": name, "description": description, "color": color,
            "icon": icon, "parent_id": parent_id or None, "sort_order": sort_order,
        })
        return json_success(category_to_dict(category))
    except Exception as e:
        return error_response("smo_save_category", e)

@router.post("/smo_get_categories")
def get_categories(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(ContentCategoriesManager(db, user.id).get_categories())
    except Exception as e:
        return error_response("smo_get_categories", e)

@router.post("/smo_get_category")
def get_category(
    category_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(ContentCategoriesManager(db, user.id).get_category(category_id))
    except Exception as e:
        return error_response("smo_get_category", e)

@router.post("/smo_delete_category")
def delete_category(
    category_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        ContentCategoriesManager(db, user.id).delete_category(category_id)
        return json_success("Category deleted successfully")
    except Exception as e:
        return error_response("smo_delete_category", e)

@router.post("/smo_assign_post_to_category")
def assign_post_to_category(
    post_id: int = Form(0),
    category_id: int = Form(0),
    remove: bool = Form(False),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        if not post_id or not category_id:
            raise ValidationError("Post ID and category ID are required")
        manager = ContentCategoriesManager(db, user.id)
        if remove:
            manager.remove_post(post_id, category_id)
            return json_success("Post removed from category")
        if not manager.assign_post(post_id, category_id):
            return json_success("Post is already in this category")
        return json_success("Post assigned to category")
    except Exception as e:
        return error_response("smo_assign_post_to_category", e)

@router.post("/smo_get_posts_by_category")
def get_posts_by_category(
    category_id: int = Form(0),
    limit: int = Form(50),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(ContentCategoriesManager(db, user.id).get_posts_by_category(category_id, limit))
    except Exception as e:
        return error_response("smo_get_posts_by_category", e)

@router.post("/smo_get_category_analytics")
def get_category_analytics(
    category_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(ContentCategoriesManager(db, user.id).get_category_analytics(category_id))
    except Exception as e:
        return error_response("smo_get_category_analytics", e)

# --- Ideas ---

@router.post("/smo_save_quick_idea")
def save_quick_idea(
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    priority: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        idea = ContentIdeasManager(db, user.id).save_quick_idea(title, description, category or None, priority or None)
        return json_success(idea_to_dict(idea))
    except Exception as e:
        return error_response("smo_save_quick_idea", e)

@router.post("/smo_save_idea")
def save_idea(
    id: int = Form(0),
    title: str = Form(""),
    description: str = Form(""),
    content_type: str = Form(""),
    target_platforms: list[str] = Form([]),
    tags: str = Form(""),
    category: str = Form(""),
    priority: str = Form(""),
    status: str = Form(""),
    scheduled_date: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        idea = ContentIdeasManager(db, user.id).save_idea({
            "id": id, "title": title, "description": description, "content_type": content_type,
            "target_platforms": form_list(target_platforms), "tags": tags, "category": category,
            "priority": priority, "status": status, "scheduled_date": scheduled_date or None,
        })
        return json_success(idea_to_dict(idea))
    except Exception as e:
        return error_response("smo_save_idea", e)

@router.post("/smo_get_ideas")
def get_ideas(
    category: str = Form(""),
    priority: str = Form(""),
    search: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        filters = {"category": category, "priority": priority, "search": search.strip()}
        return json_success(ContentIdeasManager(db, user.id).get_ideas(filters))
    except Exception as e:
        return error_response("smo_get_ideas", e)

@router.post("/smo_get_idea")
def get_idea(
    idea_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(ContentIdeasManager(db, user.id).get_idea(idea_id))
    except Exception as e:
        return error_response("smo_get_idea", e)

@router.post("/smo_update_idea_status")
def update_idea_status(
    idea_id: int = Form(0),
    status: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        if not idea_id:
            raise ValidationError("Invalid parameters")
        idea = ContentIdeasManager(db, user.id).update_status(idea_id, status)
        return json_success(idea_to_dict(idea))
    except Exception as e:
        return error_response("smo_update_idea_status", e)

@router.post("/smo_delete_idea")
def delete_idea(
    idea_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        ContentIdeasManager(db, user.id).delete_idea(idea_id)
        return json_success("Idea deleted successfully")
    except Exception as e:
        return error_response("smo_delete_idea", e)

@router.post("/smo_idea_to_post")
def idea_to_post(
    idea_id: int = Form(0),
    scheduled_time: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        post = ContentIdeasManager(db, user.id).idea_to_post(idea_id, scheduled_time or None)
        return json_success(post_summary(post))
    except Exception as e:
        return error_response("smo_idea_to_post", e)

@router.post("/smo_duplicate_idea")
def duplicate_idea(
    idea_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(idea_to_dict(ContentIdeasManager(db, user.id).duplicate_idea(idea_id)))
    except Exception as e:
        return error_response("smo_duplicate_idea", e)

@router.post("/smo_get_idea_statistics")
def get_idea_statistics(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        ideas = ContentIdeasManager(db, user.id)
        stats = ideas.get_idea_statistics()
        stats["popular_tags"] = ideas.get_popular_tags()
        return json_success(stats)
    except Exception as e:
        return error_response("smo_get_idea_statistics", e)
