import pytest

from conftest import auth_headers, make_user
from smo_social.errors import NotFoundError, ValidationError
from smo_social.models import ContentIdea, Post
from smo_social.services.content_organizer import (
    ContentCategoriesManager,
    ContentIdeasManager,
    get_organizer_stats,
    split_list,
)


def add_post(db, user, content="Launch day is here"):
    p = Post(user_id=user.id, content=content, platforms=["twitter"])
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def test_split_list():
    assert split_list("a, b,,c ") == ["a", "b", "c"]
    assert split_list(["x", " ", "y"]) == ["x", "y"]
    assert split_list(None) == []


def test_category_defaults_and_bad_color(db, editor):
    c = ContentCategoriesManager(db, editor.id).save_category({"name": " News ", "color": "blue"})
    assert c.name == "News"
    assert c.color_code == "#007cba"
    assert c.icon == "dashicons-category"

    c = ContentCategoriesManager(db, editor.id).save_category({"id": c.id, "name": "News", "color": "#FFF"})
    assert c.color_code == "#FFF"


def test_category_name_required(db, editor):
    with pytest.raises(ValidationError) as exc:
        ContentCategoriesManager(db, editor.id).save_category({"name": "  "})
    assert exc.value.message == "Category name is required"


def test_categories_are_per_user(db, editor):
    other = make_user(db, "editor", email="other@example.com")
    c = ContentCategoriesManager(db, editor.id).save_category({"name": "Mine"})
    with pytest.raises(NotFoundError):
        ContentCategoriesManager(db, other.id).get_category(c.id)
    assert ContentCategoriesManager(db, other.id).get_categories() == []


def test_assign_post_once(db, editor):
    manager = ContentCategoriesManager(db, editor.id)
    c = manager.save_category({"name": "Promo"})
    p = add_post(db, editor)

    assert manager.assign_post(p.id, c.id) is True
    assert manager.assign_post(p.id, c.id) is False
    assert manager.get_category(c.id)["post_count"] == 1
    assert [x["id"] for x in manager.get_posts_by_category(c.id)] == [p.id]
    assert manager.get_category_analytics(c.id)["by_status"] == {"draft": 1}

    assert manager.remove_post(p.id, c.id) is True
    assert manager.remove_post(p.id, c.id) is False


def test_delete_category_detaches_children(db, editor):
    manager = ContentCategoriesManager(db, editor.id)
    parent = manager.save_category({"name": "Parent"})
    child = manager.save_category({"name": "Child", "parent_id": parent.id})
    manager.delete_category(parent.id)
    assert manager.get_category(child.id)["parent_id"] is None


def test_ideas_grouped_by_status(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    a = ideas.add_idea({"title": "Behind the scenes", "tags": "team, office"})
    b = ideas.save_quick_idea("Customer story", priority="high")
    ideas.update_status(b.id, "draft")

    board = ideas.get_ideas()
    assert list(board.keys()) == ["idea", "draft", "scheduled", "published"]
    assert [i["id"] for i in board["idea"]] == [a.id]
    assert board["draft"][0]["priority"] == "high"
    assert ideas.get_ideas({"search": "customer"})["draft"][0]["id"] == b.id


def test_idea_validation(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    with pytest.raises(ValidationError):
        ideas.add_idea({"title": ""})
    with pytest.raises(ValidationError):
        ideas.add_idea({"title": "x", "priority": "whenever"})
    idea = ideas.add_idea({"title": "x"})
    with pytest.raises(ValidationError) as exc:
        ideas.update_status(idea.id, "archived")
    assert exc.value.message == "Invalid parameters"


def test_idea_to_post(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    idea = ideas.add_idea({
        "title": "Spring sale",
        "description": "Twenty percent off everything",
        "target_platforms": ["twitter", "facebook"],
        "tags": ["sale", "#spring"],
    })

    draft = ideas.idea_to_post(idea.id)
    assert draft.status == "draft"
    assert draft.content == "Twenty percent off everything"
    assert draft.hashtags == ["#sale", "#spring"]
    assert draft.content_idea_id == idea.id

    scheduled = ideas.idea_to_post(idea.id, "2030-01-01T09:00:00Z")
    assert scheduled.status == "scheduled"
    assert ideas.get_idea(idea.id)["status"] == "scheduled"


def test_delete_idea_unlinks_posts(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    idea = ideas.add_idea({"title": "Recap"})
    post = ideas.idea_to_post(idea.id)
    ideas.delete_idea(idea.id)
    db.refresh(post)
    assert post.content_idea_id is None
    assert db.query(ContentIdea).count() == 0


def test_duplicate_idea(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    idea = ideas.add_idea({"title": "Poll", "tags": "vote"})
    ideas.update_status(idea.id, "published")
    copy = ideas.duplicate_idea(idea.id)
    assert copy.title == "Poll (Copy)"
    assert copy.status == "idea"
    assert copy.tags == ["vote"]


def test_statistics_and_popular_tags(db, editor):
    ideas = ContentIdeasManager(db, editor.id)
    ideas.add_idea({"title": "a", "tags": "video, tips"})
    ideas.add_idea({"title": "b", "tags": "tips"})
    stats = ideas.get_idea_statistics()
    assert stats["total"] == 2
    assert stats["recent"] == 2
    assert stats["by_status"] == {"idea": 2}
    assert ideas.get_popular_tags() == [{"tag": "tips", "count": 2}, {"tag": "video", "count": 1}]


def test_organizer_stats(db, editor):
    ContentCategoriesManager(db, editor.id).save_category({"name": "News"})
    ideas = ContentIdeasManager(db, editor.id)
    idea = ideas.add_idea({"title": "a"})
    ideas.update_status(idea.id, "draft")
    assert get_organizer_stats(db, editor.id) == {
        "total_categories": 1, "total_ideas": 1, "total_drafts": 1, "total_scheduled": 0,
    }


def test_ajax_assign_requires_ids(client, editor):
    r = client.post("/ajax/smo_assign_post_to_category", data={"post_id": "1"}, headers=auth_headers(editor))
    assert r.status_code == 400
    assert r.json() == {"success": False, "data": "Post ID and category ID are required"}


def test_ajax_save_idea_and_board(client, editor):
    r = client.post(
        "/ajax/smo_save_idea",
        data={"title": "Webinar", "target_platforms": ["linkedin", "twitter"], "tags": "live,qa", "priority": "urgent"},
        headers=auth_headers(editor),
    )
    idea = r.json()["data"]
    assert idea["target_platforms"] == ["linkedin", "twitter"]
    assert idea["tags"] == ["live", "qa"]

    r = client.post("/ajax/smo_get_ideas", data={"priority": "urgent"}, headers=auth_headers(editor))
    assert [i["id"] for i in r.json()["data"]["idea"]] == [idea["id"]]


def test_ajax_missing_idea_is_404(client, editor):
    r = client.post("/ajax/smo_get_idea", data={"idea_id": "42"}, headers=auth_headers(editor))
    assert r.status_code == 404
    assert r.json() == {"success": False, "data": "Idea not found"}


def test_ajax_delete_category(client, editor, db):
    c = ContentCategoriesManager(db, editor.id).save_category({"name": "Old"})
    r = client.post("/ajax/smo_delete_category", data={"category_id": str(c.id)}, headers=auth_headers(editor))
    assert r.json() == {"success": True, "data": "Category deleted successfully"}
