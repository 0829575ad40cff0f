from math import ceil
from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..logging_setup import log_event
from ..models import User
from ..responses import json_error, json_success, error_response
from ..security.capabilities import require_capability
from ..services.comments import CommentManager, SENTIMENTS
from .forms import form_ids

router = APIRouter(prefix="/ajax", tags=["comments"])

DEFAULT_LIMIT = 20

@router.post("/smo_get_comment_management_data")
def get_comment_management_data(
    page: int = Form(1),
    limit: int = Form(DEFAULT_LIMIT),
    platform: str = Form(""),
    sentiment: str = Form(""),
    status: str = Form(""),
    search: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        page = max(page, 1)
        per_page = max(limit, 1)
        filters = {"platform": platform, "sentiment": sentiment, "status": status, "search": search.strip()}
        manager = CommentManager(db)
        total = manager.count_comments(filters)
        comments = manager.get_comments(filters, limit=per_page, offset=(page - 1) * per_page)
        return json_success({
            "comments": comments,
            "pagination": {
                "current_page": page,
                "total_pages": ceil(total / per_page),
                "total_items": total,
            },
            "total_count": total,
        })
    except Exception as e:
        return error_response("smo_get_comment_management_data", e)

@router.post("/smo_bulk_reply_comments")
def bulk_reply_comments(
    comment_ids: list[str] = Form([]),
    reply_content: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        ids = form_ids(comment_ids)
        if not ids or not reply_content.strip():
            raise ValidationError("Comment IDs and reply content are required")

        manager = CommentManager(db)
        success_count = 0
        for comment_id in ids:
            try:
                manager.reply_to_comment(comment_id, reply_content, user)
                success_count += 1
            except Exception as e:
                db.rollback()
                log_event("bulk_reply_fail", level="warning", comment_id=comment_id, error=str(e))
        return json_success({"success_count": success_count, "message": f"Replies sent to {success_count} comments"})
    except Exception as e:
        return error_response("smo_bulk_reply_comments", e)

@router.post("/smo_update_comment_batch_sentiment")
def update_comment_batch_sentiment(
    comment_ids: list[str] = Form([]),
    sentiment: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        ids = form_ids(comment_ids)
        if not ids or sentiment not in SENTIMENTS:
            raise ValidationError("Valid comment IDs and sentiment are required")
        count = CommentManager(db).update_sentiment(ids, sentiment)
        return json_success({"success_count": count, "message": f"Sentiment updated for {count} comments"})
    except Exception as e:
        return error_response("smo_update_comment_batch_sentiment", e)

@router.post("/smo_get_comment_scores_modal")
def get_comment_scores_modal(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(CommentManager(db).get_user_comment_scores(user.id))
    except Exception as e:
        return error_response("smo_get_comment_scores_modal", e)

@router.post("/smo_reply_to_comment")
def reply_to_comment(
    comment_id: int = Form(0),
    reply_content: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        if not comment_id or not reply_content.strip():
            raise ValidationError("Comment ID and reply content are required")
        CommentManager(db).reply_to_comment(comment_id, reply_content, user)
        return json_success("Reply sent successfully")
    except Exception as e:
        return error_response("smo_reply_to_comment", e)

@router.post("/smo_sync_comments")
def sync_comments(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        CommentManager(db).sync_all_comments()
        return json_success({"message": "Comments synchronized successfully"})
    except Exception as e:
        return error_response("smo_sync_comments", e)

@router.post("/smo_update_comment_sentiment")
def update_comment_sentiment(
    comment_id: int = Form(0),
    sentiment: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        if not comment_id or sentiment not in SENTIMENTS:
            raise ValidationError("Valid comment ID and sentiment are required")
        if CommentManager(db).update_sentiment([comment_id], sentiment):
            return json_success("Sentiment updated")
        return json_error("Failed to update sentiment")
    except Exception as e:
        return error_response("smo_update_comment_sentiment", e)
