"""
Dashboard page payloads.

Each page returns the localized JS config object the front-end expects
(`smoAnalytics`, `smoContentOrganizer`, ...) and the data behind its stat
cards. Nothing here renders HTML.
"""
from sqlalchemy import func
from sqlalchemy.orm import Session

from smo_social.config import settings
from smo_social.errors import NotFoundError
from smo_social.models import AnalyticsMetric, Post, User
from smo_social.services.content_organizer import get_organizer_stats
from smo_social.services.media import DEFAULT_PER_PAGE, MediaLibraryManager
from smo_social.services.memory import MemoryMonitor
from smo_social.services.permissions import RoleManager
from smo_social.services.platforms import get_active_platforms, character_limits
from smo_social.services.posts import MAX_GALLERY_IMAGES, MAX_LINKS, POST_TYPES
from smo_social.services.team import TeamManager
from smo_social.views.memory import MemoryDashboardView

def ajax_url() -> str:
    return f"{settings.public_base_url.rstrip('/')}/ajax"

def analytics_page(db: Session, user: User) -> dict:
    posts, reach = db.query(
        func.count(func.distinct(AnalyticsMetric.post_ref)),
        func.coalesce(func.sum(AnalyticsMetric.metric_value), 0),
    ).filter(AnalyticsMetric.metric_name == "reach").one()
    return {
        "title": "Analytics Dashboard",
        "subtitle": "Track performance across your social platforms",
        "config": {"smoAnalytics": {"ajaxurl": ajax_url(), "platforms": get_active_platforms()}},
        "stats": {"tracked_posts": posts, "total_reach": float(reach)},
    }

def content_organizer_page(db: Session, user: User) -> dict:
    return {
        "title": "Content Organizer",
        "subtitle": "Plan ideas and group posts into categories",
        "config": {
            "smoContentOrganizer": {
                "ajaxUrl": ajax_url(),
                "strings": {
                    "confirmDelete": "Are you sure you want to delete this item?",
                    "saving": "Saving...",
                    "saved": "Saved",
                    "error": "An error occurred. Please try again.",
                },
            }
        },
        "stats": get_organizer_stats(db, user.id),
    }

def create_post_page(db: Session, user: User) -> dict:
    counts = dict(
        db.query(Post.status, func.count(Post.id)).filter(Post.user_id == user.id).group_by(Post.status).all()
    )
    return {
        "title": "Create Post",
        "subtitle": "Compose, preview and schedule content",
        "config": {
            "smoCreatePost": {
                "ajaxurl": ajax_url(),
                "userId": user.id,
                "platforms": get_active_platforms(),
                "platformLimits": character_limits(),
                "postTypes": list(POST_TYPES),
                "maxGalleryImages": MAX_GALLERY_IMAGES,
                "maxLinks": MAX_LINKS,
            }
        },
        "stats": {
            "drafts": counts.get("draft", 0),
            "scheduled": counts.get("scheduled", 0),
            "published": counts.get("published", 0),
        },
    }

def media_library_page(db: Session, user: User) -> dict:
    return {
        "title": "Media Library",
        "subtitle": "Upload images and share them to your platforms",
        "config": {
            "smoMediaLibrary": {
                "ajax_url": ajax_url(),
                "per_page": DEFAULT_PER_PAGE,
                "platforms": get_active_platforms(),
                "strings": {
                    "selectImages": "Please select at least one image",
                    "selectPlatforms": "Please select at least one platform",
                    "shareSuccess": "Images shared successfully",
                    "uploadError": "Upload failed",
                },
            }
        },
        "stats": MediaLibraryManager(db, user).get_stats(),
    }

def memory_monitoring_page(db: Session, user: User) -> dict:
    return {
        "title": "Memory Monitoring",
        "subtitle": "Process memory usage, alerts and recommendations",
        "config": {"smoMemoryMonitor": {"ajaxurl": ajax_url(), "refreshInterval": MemoryMonitor(db).config.get("monitoring_interval")}},
        "stats": MemoryDashboardView(MemoryMonitor(db)).get_dashboard_data(),
    }

def team_management_page(db: Session, user: User) -> dict:
    team = TeamManager(db)
    members = team.get_team_members()
    calendar = team.get_team_calendar_data()
    return {
        "title": "Team Management",
        "subtitle": "Members, network assignments and the shared calendar",
        "config": {"smoTeamManagement": {"ajaxurl": ajax_url(), "platforms": get_active_platforms()}},
        "stats": {
            "total_members": len(members),
            "total_scheduled": calendar["total_scheduled"],
            "published_today": calendar["published_today"],
            "network_assignments": len(team.get_user_network_assignments()),
            "network_groups": len(team.get_network_groups()),
        },
    }

def permissions_page(db: Session, user: User) -> dict:
    roles = RoleManager(db)
    counts = dict(db.query(User.role, func.count(User.id)).filter(User.is_active == True).group_by(User.role).all())
    return {
        "title": "User Permissions",
        "subtitle": "Roles and per-user permission overrides",
        "config": {"smoPermissions": {"ajaxurl": ajax_url(), "roles": roles.get_all_roles()}},
        "stats": {"users_by_role": {role: counts.get(role, 0) for role in roles.get_all_roles()}},
    }

PAGES = {
    "analytics": (analytics_page, "edit_posts"),
    "content-organizer": (content_organizer_page, "edit_posts"),
    "create-post": (create_post_page, "edit_posts"),
    "media-library": (media_library_page, "upload_files"),
    "memory-monitoring": (memory_monitoring_page, "manage_options"),
    "team-management": (team_management_page, "list_users"),
    "permissions": (permissions_page, "manage_options"),
}

def page_capability(page: str) -> str:
    if page not in PAGES:
        raise NotFoundError("Page", page)
    return PAGES[page][1]

def get_page(db: Session, user: User, page: str) -> dict:
    page_capability(page)
    builder = PAGES[page][0]
    return {"page": page, **builder(db, user)}
