# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import re
from datetime import timedelta
from bs4 import BeautifulSoup
from sqlalchemy import or_
from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, PlatformError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import Comment, User
from smo_social.services.dates import utcnow, as_utc
from smo_social.services.platforms import PLATFORMS, get_connector

SENTIMENTS = ("positive", "neutral", "negative")
STATUSES = ("pending", "replied", "hidden")

POSITIVE_WORDS = [
    "love", "great", "awesome", "amazing", "thanks", "thank you", "excellent",
    "beautiful", "perfect", "helpful", "nice", "good", "best", "wonderful",
]

NEGATIVE_WORDS = [
    "hate", "bad", "terrible", "awful", "worst", "scam", "broken", "disappointed",
    "refund", "angry", "useless", "poor", "problem", "not working",
]

def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())

def classify_sentiment(text: str) -> str:
    t = _normalize(text)
    pos = sum(1 for w in POSITIVE_WORDS if w in t)
    neg = sum(1 for w in NEGATIVE_WORDS if w in t)
    if pos > neg:
        return "positive"
    if neg > pos:
        return "negative"
    return "neutral"

def sanitize_text(text: str) -> str:
    return BeautifulSoup(text or "", "html.parser").get_text().strip()

def comment_to_dict(c: Comment) -> dict:
    return {
        "id": c.id,
        "platform": c.platform,
        "platform_comment_id": c.platform_comment_id,
        "platform_post_id": c.platform_post_id,
        "author_name": c.author_name,
        "content": c.content,
        "sentiment": c.sentiment,
        "status": c.status,
        "reply_content": c.reply_content,
        "replied_at": as_utc(c.replied_at),
        "replied_by": c.replied_by,
        "created_at": as_utc(c.created_at),
    }


class CommentManager:
    def __init__(self, db: Session, connector_factory=get_connector):
        self.db = db
        self.connector_factory = connector_factory

    def _query(self, filters: dict | None):
        filters = filters or {}
        q = self.db.query(Comment)
        if filters.get("platform"):
            q = q.filter(Comment.platform == filters["platform"])
        if filters.get("sentiment"):
            q = q.filter(Comment.sentiment == filters["sentiment"])
        if filters.get("status"):
            q = q.filter(Comment.status == filters["status"])
        if filters.get("search"):
            like = f"%{filters['search']}%"
            q = q.filter(or_(Comment.content.ilike(like), Comment.author_name.ilike(like)))
        return q

    def get_comments(self, filters: dict | None = None, limit: int | None = None, offset: int = 0) -> list[dict]:
        q = self._query(filters).order_by(Comment.created_at.desc(), Comment.id.desc())
        if limit:
            q = q.offset(offset).limit(limit)
        return [comment_to_dict(c) for c in q.all()]

    def count_comments(self, filters: dict | None = None) -> int:
        return self._query(filters).count()

    def reply_to_comment(self, comment_id: int, content: str, user: User) -> dict:
        reply = sanitize_text(content)
        if not reply:
            raise ValidationError("Reply content is required")

        comment = self.db.query(Comment).filter(Comment.id == comment_id).first()
        if not comment:
            raise NotFoundError("Comment", comment_id)

        connector = self.connector_factory(self.db, comment.platform)
        if connector is None:
            raise PlatformError(comment.platform, "platform is not connected")

        result = connector.reply_to_comment(comment.platform_comment_id, reply)

        comment.reply_content = reply
        comment.status = "replied"
        comment.replied_at = utcnow()
        comment.replied_by = user.id
        self.db.commit()
        log_event("comment_replied", comment_id=comment.id, platform=comment.platform, user_id=user.id)
        return result

    def sync_all_comments(self) -> dict:
        results = {}
        for platform in PLATFORMS:
            connector = self.connector_factory(self.db, platform)
            if connector is None:
                continue
            try:
                fetched = connector.fetch_comments()
            except PlatformError as e:
                log_event("comment_sync_fail", level="warning", platform=platform, error=e.message)
                results[platform] = None
                continue

            added = 0
            for item in fetched:
                exists = self.db.query(Comment).filter(
                    Comment.platform == platform,
                    Comment.platform_comment_id == item["platform_comment_id"],
                ).first()
                if exists:
                    continue
                c = Comment(
                    platform=platform,
                    platform_comment_id=item["platform_comment_id"],
                    platform_post_id=item.get("platform_post_id"),
                    author_name=item.get("author_name"),
                    content=item.get("content") or "",
                    sentiment=classify_sentiment(item.get("content") or ""),
                )
                if item.get("created_at"):
                    c.created_at = item["created_at"]
                self.db.add(c)
                added += 1
            self.db.commit()
            results[platform] = added
            log_event("comments_synced", platform=platform, added=added)
        return results

    def update_sentiment(self, comment_ids: list[int], sentiment: str) -> int:
        if sentiment not in SENTIMENTS:
            raise ValidationError("Valid comment IDs and sentiment are required")
        if not comment_ids:
            return 0
        updated = (
            self.db.query(Comment)
            .filter(Comment.id.in_(comment_ids))
            .update({Comment.sentiment: sentiment, Comment.updated_at: utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def get_user_comment_scores(self, user_id: int) -> dict:
        replied = self.db.query(Comment).filter(Comment.replied_by == user_id).all()
        week_ago = utcnow() - timedelta(days=7)

        response_minutes = [
            (as_utc(c.replied_at) - as_utc(c.created_at)).total_seconds() / 60
            for c in replied
            if c.replied_at and c.created_at
        ]
        total_comments = self.db.query(Comment).count()
        sentiment = {s: 0 for s in SENTIMENTS}
        for c in replied:
            sentiment[c.sentiment if c.sentiment in sentiment else "neutral"] += 1

        return {
            "user_id": user_id,
            "total_replies": len(replied),
            "replies_last_7_days": sum(1 for c in replied if c.replied_at and as_utc(c.replied_at) >= week_ago),
            "average_response_minutes": round(sum(response_minutes) / len(response_minutes), 1) if response_minutes else 0,
            "response_rate": round(len(replied) / total_comments * 100, 1) if total_comments else 0,
            "sentiment_breakdown": sentiment,
        }
