"""Role, permission and capability tables shared by the team and permissions screens."""

ROLES = ["admin", "manager", "editor", "contributor", "viewer"]

ROLE_LABELS = {
    "admin": "Administrator",
    "manager": "Manager",
    "editor": "Editor",
    "contributor": "Contributor",
    "viewer": "Viewer",
}

PERMISSION_CATEGORIES = {
    "content": ["create_posts", "edit_posts", "delete_posts", "publish_posts", "schedule_posts", "approve_content"],
    "platforms": ["manage_platforms", "view_platform_analytics"],
    "analytics": ["view_analytics", "export_reports", "create_custom_reports"],
    "team": ["manage_users", "manage_permissions", "view_team_activity"],
    "settings": ["manage_settings", "manage_integrations", "manage_workflows", "view_logs"],
}

ALL_PERMISSIONS = [p for perms in PERMISSION_CATEGORIES.values() for p in perms]

ROLE_PERMISSIONS = {
    "admin": list(ALL_PERMISSIONS),
    "manager": [
        "create_posts", "edit_posts", "delete_posts", "publish_posts", "schedule_posts", "approve_content",
        "manage_platforms", "view_platform_analytics",
        "view_analytics", "export_reports", "create_custom_reports",
        "manage_users", "view_team_activity", "manage_workflows",
    ],
    "editor": [
        "create_posts", "edit_posts", "delete_posts", "publish_posts", "schedule_posts", "approve_content",
        "view_platform_analytics", "view_analytics", "export_reports",
    ],
    "contributor": ["create_posts", "edit_posts", "schedule_posts", "view_analytics"],
    "viewer": ["view_analytics"],
}

# Coarse capabilities checked by every AJAX handler before it touches a manager
ROLE_CAPABILITIES = {
    "admin": {"manage_options", "list_users", "edit_posts", "upload_files", "read"},
    "manager": {"list_users", "edit_posts", "upload_files", "read"},
    "editor": {"edit_posts", "upload_files", "read"},
    "contributor": {"edit_posts", "read"},
    "viewer": {"read"},
}

def is_valid_role(role: str | None) -> bool:
    return role in ROLE_PERMISSIONS

def role_capabilities(role: str | None) -> set[str]:
    return set(ROLE_CAPABILITIES.get(role or "", set()))
