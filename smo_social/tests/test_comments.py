from datetime import timedelta
from unittest.mock import patch
import pytest

from conftest import FakeConnector, auth_headers, connector_factory
from smo_social.errors import NotFoundError, PlatformError, ValidationError
from smo_social.models import Comment
from smo_social.services.comments import CommentManager, classify_sentiment, sanitize_text
from smo_social.services.dates import utcnow
from smo_social.services.options import OptionStore
from smo_social.services.platforms import CREDENTIALS_OPTION, GraphAPIConnector


def add_comment(db, platform="instagram", remote_id="c1", content="Nice post", sentiment="neutral", **kw):
    c = Comment(platform=platform, platform_comment_id=remote_id, content=content, sentiment=sentiment, **kw)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def test_classify_sentiment():
    assert classify_sentiment("I love this, amazing work!") == "positive"
    assert classify_sentiment("This is terrible and awful") == "negative"
    assert classify_sentiment("Posted on Tuesday") == "neutral"


def test_sanitize_strips_html():
    assert sanitize_text("<b>Thanks</b> <script>x</script>for the feedback").startswith("Thanks")
    assert "<" not in sanitize_text("<p>hi</p>")


def test_reply_marks_comment_replied(db, admin):
    c = add_comment(db)
    fake = FakeConnector("instagram")
    result = CommentManager(db, connector_factory({"instagram": fake})).reply_to_comment(c.id, "<i>Thank you!</i>", admin)

    db.refresh(c)
    assert result["ok"] is True
    assert fake.replies == [("c1", "Thank you!")]
    assert c.status == "replied"
    assert c.reply_content == "Thank you!"
    assert c.replied_by == admin.id


def test_reply_errors(db, admin):
    c = add_comment(db)
    manager = CommentManager(db, connector_factory({}))
    with pytest.raises(ValidationError):
        manager.reply_to_comment(c.id, "<br>", admin)
    with pytest.raises(NotFoundError):
        manager.reply_to_comment(999, "hello", admin)
    with pytest.raises(PlatformError):
        manager.reply_to_comment(c.id, "hello", admin)


def test_sync_adds_new_comments_once(db):
    fetched = [
        {"platform_comment_id": "a", "platform_post_id": "p", "author_name": "sam", "content": "Love it"},
        {"platform_comment_id": "b", "platform_post_id": "p", "author_name": "kim", "content": "Worst ever"},
    ]
    manager = CommentManager(db, connector_factory({"facebook": FakeConnector("facebook", comments=fetched)}))
    assert manager.sync_all_comments() == {"facebook": 2}
    assert manager.sync_all_comments() == {"facebook": 0}
    sentiments = {c.platform_comment_id: c.sentiment for c in db.query(Comment).all()}
    assert sentiments == {"a": "positive", "b": "negative"}


def test_update_sentiment_counts_matched_rows(db):
    a = add_comment(db, remote_id="a", sentiment="neutral")
    b = add_comment(db, remote_id="b", sentiment="positive")
    manager = CommentManager(db)
    assert manager.update_sentiment([a.id, b.id, 999], "positive") == 2
    db.expire_all()
    assert {c.sentiment for c in db.query(Comment).all()} == {"positive"}
    with pytest.raises(ValidationError):
        manager.update_sentiment([a.id], "angry")


def test_filters_and_pagination(db):
    for i in range(5):
        add_comment(db, remote_id=f"c{i}", content=f"comment {i}", sentiment="negative" if i % 2 else "positive")
    manager = CommentManager(db)
    assert manager.count_comments({"sentiment": "negative"}) == 2
    assert len(manager.get_comments({}, limit=2, offset=4)) == 1
    assert manager.get_comments({"search": "comment 3"})[0]["platform_comment_id"] == "c3"


def test_user_comment_scores(db, admin):
    now = utcnow()
    add_comment(db, remote_id="a", sentiment="positive", status="replied", replied_by=admin.id,
                created_at=now - timedelta(minutes=30), replied_at=now)
    add_comment(db, remote_id="b")
    scores = CommentManager(db).get_user_comment_scores(admin.id)
    assert scores["total_replies"] == 1
    assert scores["replies_last_7_days"] == 1
    assert scores["average_response_minutes"] == 30.0
    assert scores["response_rate"] == 50.0
    assert scores["sentiment_breakdown"]["positive"] == 1


def test_ajax_comment_pagination(client, editor, db):
    for i in range(3):
        add_comment(db, remote_id=f"c{i}")
    r = client.post("/ajax/smo_get_comment_management_data", data={"page": "2", "limit": "2"}, headers=auth_headers(editor))
    data = r.json()["data"]
    assert data["pagination"] == {"current_page": 2, "total_pages": 2, "total_items": 3}
    assert data["total_count"] == 3
    assert len(data["comments"]) == 1


def test_ajax_bulk_reply_requires_ids_and_content(client, editor):
    r = client.post("/ajax/smo_bulk_reply_comments", data={"reply_content": "hi"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "Comment IDs and reply content are required"}


def test_ajax_bulk_reply_skips_failures(client, editor, db):
    a = add_comment(db, remote_id="a")
    b = add_comment(db, platform="twitter", remote_id="b")
    OptionStore(db).update_option(CREDENTIALS_OPTION, {"instagram": {"account_id": "1", "access_token": "tok"}})

    with patch.object(GraphAPIConnector, "reply_to_comment", return_value={"ok": True, "remote_id": "r"}):
        r = client.post(
            "/ajax/smo_bulk_reply_comments",
            data={"comment_ids": [str(a.id), str(b.id)], "reply_content": "Thanks!"},
            headers=auth_headers(editor),
        )
    assert r.json()["data"] == {"success_count": 1, "message": "Replies sent to 1 comments"}


def test_ajax_batch_sentiment(client, editor, db):
    a = add_comment(db, remote_id="a")
    b = add_comment(db, remote_id="b")
    r = client.post(
        "/ajax/smo_update_comment_batch_sentiment",
        data={"comment_ids": f"{a.id},{b.id}", "sentiment": "negative"},
        headers=auth_headers(editor),
    )
    assert r.json()["data"] == {"success_count": 2, "message": "Sentiment updated for 2 comments"}

    r = client.post("/ajax/smo_update_comment_batch_sentiment", data={"comment_ids": str(a.id), "sentiment": "meh"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "Valid comment IDs and sentiment are required"}


def test_ajax_single_sentiment(client, editor, db):
    a = add_comment(db, sentiment="neutral")
    r = client.post("/ajax/smo_update_comment_sentiment", data={"comment_id": str(a.id), "sentiment": "positive"}, headers=auth_headers(editor))
    assert r.json() == {"success": True, "data": "Sentiment updated"}
    r = client.post("/ajax/smo_update_comment_sentiment", data={"comment_id": str(a.id), "sentiment": "positive"}, headers=auth_headers(editor))
    # same value again still matches the row
    assert r.json() == {"success": True, "data": "Sentiment updated"}
    r = client.post("/ajax/smo_update_comment_sentiment", data={"comment_id": "999", "sentiment": "positive"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "Failed to update sentiment"}


def test_ajax_reply_requires_fields(client, editor):
    r = client.post("/ajax/smo_reply_to_comment", data={"comment_id": "1"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "Comment ID and reply content are required"}


def test_ajax_non_integer_field_returns_envelope(client, editor):
    r = client.post("/ajax/smo_get_comment_management_data", data={"page": "abc"}, headers=auth_headers(editor))
    assert r.status_code == 400
    assert r.json() == {"success": False, "data": "Invalid value for page"}


def test_ajax_sync_comments(client, editor):
    r = client.post("/ajax/smo_sync_comments", headers=auth_headers(editor))
    assert r.json() == {"success": True, "data": {"message": "Comments synchronized successfully"}}
