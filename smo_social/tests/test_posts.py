import json
from datetime import timedelta
from unittest.mock import MagicMock, patch
import pytest
import requests

from conftest import auth_headers, make_user
from smo_social.config import settings
from smo_social.errors import AIProviderError, NotFoundError, ValidationError
from smo_social.services.dates import utcnow
from smo_social.services.llm import generate_hashtags, optimize_content
from smo_social.services.posts import (
    PostComposer,
    extract_hashtags,
    extract_mentions,
    get_link_preview,
    preview_post,
    validate_post,
)

PAGE = """
<html><head>
<title>Fallback title</title>
<meta property="og:description" content="A short summary">
<meta property="og:image" content="https://example.com/cover.png">
</head><body></body></html>
"""


def fake_completion(payload: dict):
    client = MagicMock()
    message = MagicMock()
    message.content = json.dumps(payload)
    client.chat.completions.create.return_value.choices = [MagicMock(message=message)]
    return client


def test_extractors():
    text = "Big news #launch with @team, mail me@example.com #v2"
    assert extract_hashtags(text) == ["#launch", "#v2"]
    assert extract_mentions(text) == ["@team"]


def test_validate_post_collects_errors():
    result = validate_post("short", [], "carousel")
    assert result["valid"] is False
    assert "Post content must be at least 10 characters" in result["errors"]
    assert "Please select at least one platform" in result["errors"]
    assert "Invalid post type: carousel" in result["errors"]


def test_validate_post_media_and_links():
    result = validate_post("Check out our new gallery", ["facebook"], "image")
    assert result["errors"] == ["Please attach media for this post type"]

    result = validate_post("Read the launch post", ["linkedin"], "link", links=["ftp://nope"])
    assert result["errors"] == ["Invalid links: ftp://nope"]


def test_validate_post_warns_over_limit():
    result = validate_post("x" * 300, ["twitter", "facebook"])
    assert result["valid"] is True
    assert result["warnings"] == ["twitter: 300/280 characters"]
    assert result["character_count"] == 300


def test_preview_truncates_per_platform():
    content = "y" * 600 + " #tag"
    preview = preview_post(content, ["twitter", "pinterest", "unknown"])
    assert set(preview["previews"]) == {"twitter", "pinterest"}
    assert len(preview["previews"]["twitter"]["content"]) == 280
    assert preview["previews"]["pinterest"]["over_limit"] is True
    assert preview["hashtags"] == ["#tag"]


def test_link_preview_reads_open_graph():
    response = MagicMock(text=PAGE)
    with patch("smo_social.services.posts.requests.get", return_value=response) as get:
        data = get_link_preview("https://example.com/post")
    assert get.call_args.kwargs["timeout"] == 10
    assert data == {
        "title": "Fallback title",
        "description": "A short summary",
        "image": "https://example.com/cover.png",
        "domain": "example.com",
        "url": "https://example.com/post",
    }


def test_link_preview_errors():
    with pytest.raises(ValidationError):
        get_link_preview("not a url")
    with patch("smo_social.services.posts.requests.get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(ValidationError) as exc:
            get_link_preview("https://example.com")
    assert exc.value.message.startswith("Could not fetch URL")


def test_drafts_and_schedule(db, editor):
    composer = PostComposer(db, editor)
    draft = composer.save_draft({"content": "Hello from the team #news", "platforms": ["twitter"]})
    assert draft.status == "draft"
    assert draft.hashtags == ["#news"]

    when = (utcnow() + timedelta(days=1)).isoformat()
    post = composer.schedule_post({"content": "Tomorrow we launch", "platforms": ["facebook"], "scheduled_time": when})
    assert post.status == "scheduled"

    with pytest.raises(ValidationError) as exc:
        composer.schedule_post({"content": "Too late for this", "platforms": ["facebook"],
                                "scheduled_time": (utcnow() - timedelta(hours=1)).isoformat()})
    assert exc.value.message == "Scheduled time must be in the future"

    with pytest.raises(ValidationError):
        composer.save_draft({"content": "", "platforms": ["twitter"]})


def test_templates(db, editor):
    composer = PostComposer(db, editor)
    t = composer.save_template({"name": "Weekly recap", "content": "This week #recap", "platforms": ["linkedin"]})
    assert composer.load_template(t.id)["hashtags"] == ["#recap"]
    assert [x["name"] for x in composer.get_templates()] == ["Weekly recap"]

    other = make_user(db, "editor", email="second@example.com")
    with pytest.raises(NotFoundError):
        PostComposer(db, other).load_template(t.id)

    composer.delete_template(t.id)
    assert composer.get_templates() == []
    with pytest.raises(ValidationError):
        composer.save_template({"name": " "})


def test_ai_requires_key(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    with pytest.raises(AIProviderError):
        generate_hashtags("anything")


def test_generate_hashtags_normalizes(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    client = fake_completion({"hashtags": ["coffee", "#Morning", "coffee", "good vibes", ""]})
    with patch("smo_social.services.llm.OpenAI", return_value=client):
        assert generate_hashtags("Coffee time", 3) == ["#coffee", "#Morning", "#goodvibes"]


def test_optimize_content_enforces_limits(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    client = fake_completion({"optimized": {"twitter": "z" * 400, "linkedin": "fine"}, "suggestions": ["Add a CTA"]})
    with patch("smo_social.services.llm.OpenAI", return_value=client):
        result = optimize_content("Original text", ["twitter", "linkedin"])
    assert len(result["optimized"]["twitter"]) == 280
    assert result["optimized"]["linkedin"] == "fine"
    assert result["suggestions"] == ["Add a CTA"]


def test_optimize_content_bad_json(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    client = MagicMock()
    client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content="not json"))]
    with patch("smo_social.services.llm.OpenAI", return_value=client):
        with pytest.raises(AIProviderError) as exc:
            optimize_content("text", ["twitter"])
    assert exc.value.message == "AI provider returned an invalid response"


def test_ajax_save_draft(client, editor):
    r = client.post(
        "/ajax/smo_save_draft",
        data={"content": "Hello world from SMO #launch", "platforms": "twitter,facebook"},
        headers=auth_headers(editor),
    )
    data = r.json()["data"]
    assert data["status"] == "draft"
    assert data["platforms"] == ["twitter", "facebook"]
    assert data["hashtags"] == ["#launch"]


def test_ajax_validate_post(client, editor):
    r = client.post("/ajax/smo_validate_post", data={"content": "tiny"}, headers=auth_headers(editor))
    assert r.json()["data"]["valid"] is False


def test_ajax_schedule_needs_schedule_permission(client, db):
    writer = make_user(db, "contributor")
    writer.revoked_permissions = ["schedule_posts"]
    db.commit()
    r = client.post(
        "/ajax/smo_schedule_post",
        data={"content": "Scheduled announcement", "platforms": ["twitter"], "scheduled_time": "2099-01-01T10:00:00Z"},
        headers=auth_headers(writer),
    )
    assert r.status_code == 403
    assert "schedule_posts" in r.json()["data"]


def test_ajax_ai_optimize_requires_platforms(client, editor):
    r = client.post("/ajax/smo_ai_optimize_content", data={"content": "Some text"}, headers=auth_headers(editor))
    assert r.json() == {"success": False, "data": "Content and at least one platform are required"}


def test_ajax_ai_hashtags_without_key(client, editor, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    r = client.post("/ajax/smo_ai_generate_hashtags", data={"content": "Some text"}, headers=auth_headers(editor))
    assert r.status_code == 502
    assert r.json() == {"success": False, "data": "AI provider is not configured"}
