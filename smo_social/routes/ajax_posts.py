from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import PermissionDeniedError, ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.analytics import AnalyticsService
from ..services.llm import generate_hashtags, optimize_content
from ..services.permissions import PermissionValidator
from ..services.posts import (
    PostComposer,
    get_link_preview,
    post_to_dict,
    preview_post,
    template_to_dict,
    validate_post,
)
from .forms import form_ids, form_list

router = APIRouter(prefix="/ajax", tags=["create-post"])

def post_form(
    title: str = Form(""),
    content: str = Form(""),
    platforms: list[str] = Form([]),
    post_type: str = Form("text"),
    links: list[str] = Form([]),
    media_ids: list[str] = Form([]),
    hashtags: list[str] = Form([]),
    priority: str = Form("normal"),
    scheduled_time: str = Form(""),
) -> dict:
    return {
        "title": title,
        "content": content,
        "platforms": form_list(platforms),
        "post_type": post_type or "text",
        "links": form_list(links),
        "media_ids": form_ids(media_ids),
        "hashtags": form_list(hashtags),
        "priority": priority or "normal",
        "scheduled_time": scheduled_time or None,
    }

@router.post("/smo_validate_post")
def validate(
    data: dict = Depends(post_form),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(validate_post(data["content"], data["platforms"], data["post_type"], data["links"], data["media_ids"]))
    except Exception as e:
        return error_response("smo_validate_post", e)

@router.post("/smo_save_draft")
def save_draft(
    data: dict = Depends(post_form),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(post_to_dict(PostComposer(db, user).save_draft(data)))
    except Exception as e:
        return error_response("smo_save_draft", e)

@router.post("/smo_schedule_post")
def schedule_post(
    data: dict = Depends(post_form),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        check = PermissionValidator(db).check_scheduling_permission(user.id, "post")
        if not check["success"]:
            raise PermissionDeniedError(check["error"])
        return json_success(post_to_dict(PostComposer(db, user).schedule_post(data)))
    except Exception as e:
        return error_response("smo_schedule_post", e)

@router.post("/smo_preview_post")
def preview(
    content: str = Form(""),
    platforms: list[str] = Form([]),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(preview_post(content, form_list(platforms)))
    except Exception as e:
        return error_response("smo_preview_post", e)

# --- Templates ---

@router.post("/smo_save_template")
def save_template(
    name: str = Form(""),
    description: str = Form(""),
    data: dict = Depends(post_form),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        template = PostComposer(db, user).save_template({**data, "name": name, "description": description})
        return json_success(template_to_dict(template))
    except Exception as e:
        return error_response("smo_save_template", e)

@router.post("/smo_load_template")
def load_template(
    template_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(PostComposer(db, user).load_template(template_id))
    except Exception as e:
        return error_response("smo_load_template", e)

@router.post("/smo_get_templates")
def get_templates(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(PostComposer(db, user).get_templates())
    except Exception as e:
        return error_response("smo_get_templates", e)

@router.post("/smo_delete_template")
def delete_template(
    template_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        PostComposer(db, user).delete_template(template_id)
        return json_success("Template deleted successfully")
    except Exception as e:
        return error_response("smo_delete_template", e)

# --- Helpers ---

@router.post("/smo_get_best_posting_times")
def best_posting_times(
    platforms: list[str] = Form([]),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(AnalyticsService(db).get_best_posting_times(form_list(platforms) or None))
    except Exception as e:
        return error_response("smo_get_best_posting_times", e)

@router.post("/smo_get_link_preview")
def link_preview(
    url: str = Form(""),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(get_link_preview(url))
    except Exception as e:
        return error_response("smo_get_link_preview", e)

@router.post("/smo_ai_optimize_content")
def ai_optimize_content(
    content: str = Form(""),
    platforms: list[str] = Form([]),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        platforms = form_list(platforms)
        if not content.strip() or not platforms:
            raise ValidationError("Content and at least one platform are required")
        return json_success(optimize_content(content, platforms))
    except Exception as e:
        return error_response("smo_ai_optimize_content", e)

@router.post("/smo_ai_generate_hashtags")
def ai_generate_hashtags(
    content: str = Form(""),
    count: int = Form(10),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        if not content.strip():
            raise ValidationError("Content is required")
        return json_success({"hashtags": generate_hashtags(content, count)})
    except Exception as e:
        return error_response("smo_ai_generate_hashtags", e)
