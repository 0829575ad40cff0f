# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import PermissionLog, Post, User
from smo_social.security.roles import ALL_PERMISSIONS, PERMISSION_CATEGORIES, ROLE_LABELS, ROLE_PERMISSIONS, is_valid_role
from smo_social.services.dates import utcnow, as_utc

CONTENT_ACTIONS = {
    "view": "edit_posts",
    "edit": "edit_posts",
    "delete": "delete_posts",
    "publish": "publish_posts",
}

SCHEDULING_PERMISSIONS = {
    "post": "schedule_posts",
    "story": "schedule_posts",
    "reel": "schedule_posts",
}

def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "role_label": ROLE_LABELS.get(u.role, u.role),
        "is_active": u.is_active,
        "is_superadmin": u.is_superadmin,
        "created_at": as_utc(u.created_at),
    }


class RoleManager:
    def __init__(self, db: Session):
        self.db = db

    def _user(self, user_id: int) -> User:
        u = self.db.query(User).filter(User.id == user_id).first()
        if not u:
            raise NotFoundError("User", user_id)
        return u

    def get_all_roles(self) -> dict:
        return {
            role: {"label": ROLE_LABELS[role], "permissions": list(perms)}
            for role, perms in ROLE_PERMISSIONS.items()
        }

    def get_role_permissions(self, role: str) -> list[str]:
        return list(ROLE_PERMISSIONS.get(role, []))

    def effective_permissions(self, user: User) -> list[str]:
        if user.is_superadmin:
            return list(ALL_PERMISSIONS)
        perms = set(self.get_role_permissions(user.role))
        perms |= set(user.granted_permissions or [])
        perms -= set(user.revoked_permissions or [])
        return [p for p in ALL_PERMISSIONS if p in perms]

    def get_user_permissions(self, user_id: int) -> list[str]:
        return self.effective_permissions(self._user(user_id))

    def user_has_permission(self, user_id: int, permission: str) -> bool:
        u = self.db.query(User).filter(User.id == user_id).first()
        if not u or not u.is_active:
            return False
        return permission in self.effective_permissions(u)

    def set_user_role(self, user_id: int, role: str) -> User:
        if not is_valid_role(role):
            raise ValidationError(f"Invalid role: {role}")
        u = self._user(user_id)
        u.role = role
        self.db.commit()
        log_event("user_role_changed", user_id=user_id, role=role)
        return u

    def set_user_permissions(self, user_id: int, permissions: list[str]) -> User:
        """Stores the difference from the role defaults as explicit grants/revocations."""
        return self.update_user_access(user_id, None, permissions)

    def update_user_access(self, user_id: int, role: str | None, permissions: list[str]) -> User:
        """Validates the role and permission list before writing either; one commit for both."""
        if role and not is_valid_role(role):
            raise ValidationError(f"Invalid role: {role}")
        unknown = [p for p in permissions if p not in ALL_PERMISSIONS]
        if unknown:
            raise ValidationError(f"Unknown permissions: {', '.join(unknown)}")
        u = self._user(user_id)
        if role:
            u.role = role
        wanted = set(permissions)
        defaults = set(self.get_role_permissions(u.role))
        u.granted_permissions = sorted(wanted - defaults)
        u.revoked_permissions = sorted(defaults - wanted)
        self.db.commit()
        if role:
            log_event("user_role_changed", user_id=user_id, role=role)
        log_event("user_permissions_changed", user_id=user_id, granted=u.granted_permissions, revoked=u.revoked_permissions)
        return u

    def get_users_with_role(self, role: str) -> list[dict]:
        if not is_valid_role(role):
            raise ValidationError(f"Invalid role: {role}")
        rows = self.db.query(User).filter(User.role == role).order_by(User.name.asc(), User.email.asc()).all()
        return [user_to_dict(u) for u in rows]

    def get_permission_matrix(self) -> dict:
        return {
            "categories": PERMISSION_CATEGORIES,
            "roles": {role: {p: p in perms for p in ALL_PERMISSIONS} for role, perms in ROLE_PERMISSIONS.items()},
        }


class PermissionValidator:
    def __init__(self, db: Session, role_manager: RoleManager | None = None):
        self.db = db
        self.role_manager = role_manager or RoleManager(db)
        self._cache: dict[tuple[int, str], dict] = {}

    def validate_user_permission(self, user_id: int, permission: str, context: dict | None = None) -> dict:
        key = (user_id, permission)
        if key in self._cache:
            return self._cache[key]
        result = {
            "has_permission": self.role_manager.user_has_permission(user_id, permission),
            "user_id": user_id,
            "permission": permission,
            "context": context or {},
            "timestamp": utcnow().isoformat(),
        }
        self._cache[key] = result
        return result

    def validate_bulk_permissions(self, user_id: int, permissions: list[str]) -> dict:
        return {p: self.validate_user_permission(user_id, p) for p in permissions}

    def require_permission(self, user_id: int, permission: str, error_message: str = "", context: dict | None = None) -> dict:
        validation = self.validate_user_permission(user_id, permission, context)
        self.log_permission_check(user_id, permission, validation["has_permission"], context)
        if not validation["has_permission"]:
            return {
                "success": False,
                "error": error_message or f"Access denied: User {user_id} does not have permission '{permission}'",
                "code": "PERMISSION_DENIED",
            }
        return {"success": True}

    def check_content_access(self, user_id: int, content_id: int, action: str = "view") -> dict:
        permission = CONTENT_ACTIONS.get(action)
        if not permission:
            return {"success": False, "error": "Invalid content action"}
        post = self.db.query(Post).filter(Post.id == content_id).first()
        if not post:
            return {"success": False, "error": "Content not found"}
        # authors may always view and edit their own posts
        if post.user_id == user_id and action in ("view", "edit"):
            return {"success": True}
        return self.require_permission(user_id, permission, context={"content_id": content_id, "action": action})

    def check_platform_access(self, user_id: int, platform_slug: str) -> dict:
        if not self.validate_user_permission(user_id, "manage_platforms")["has_permission"]:
            return {"success": False, "error": "User does not have access to manage platforms"}
        return {"success": True}

    def check_scheduling_permission(self, user_id: int, content_type: str = "post") -> dict:
        permission = SCHEDULING_PERMISSIONS.get(content_type)
        if not permission:
            return {"success": False, "error": "Invalid content type for scheduling"}
        return self.require_permission(user_id, permission, context={"content_type": content_type})

    def check_analytics_access(self, user_id: int, platform_slug: str = "") -> dict:
        if not self.validate_user_permission(user_id, "view_analytics")["has_permission"]:
            return {"success": False, "error": "User does not have access to view analytics"}
        return {"success": True}

    def get_user_capabilities(self, user_id: int) -> dict:
        perms = self.role_manager.get_user_permissions(user_id)
        return {
            "user_id": user_id,
            "permissions": perms,
            "can_manage_platforms": "manage_platforms" in perms,
            "can_manage_users": "manage_users" in perms,
            "can_view_analytics": "view_analytics" in perms,
            "can_manage_settings": "manage_settings" in perms,
            "can_create_content": "create_posts" in perms,
            "can_schedule_posts": "schedule_posts" in perms,
            "can_publish_posts": "publish_posts" in perms,
        }

    def clear_user_cache(self, user_id: int | None = None) -> dict:
        if user_id is None:
            self._cache.clear()
        else:
            for key in [k for k in self._cache if k[0] == user_id]:
                del self._cache[key]
        return {"success": True}

    def log_permission_check(self, user_id: int, permission: str, result: bool, context: dict | None = None) -> dict:
        self.db.add(PermissionLog(
            user_id=user_id,
            permission=permission,
            result="granted" if result else "denied",
            context=context or {},
        ))
        self.db.commit()
        return {"success": True}

    def get_permission_logs(self, user_id: int | None = None, limit: int = 100) -> list[dict]:
        q = self.db.query(PermissionLog)
        if user_id:
            q = q.filter(PermissionLog.user_id == user_id)
        rows = q.order_by(PermissionLog.created_at.desc(), PermissionLog.id.desc()).limit(max(1, min(int(limit), 1000))).all()
        return [
            {
                "id": r.id,
                "user_id": r.user_id,
                "permission": r.permission,
                "result": r.result,
                "context": r.context or {},
                "created_at": as_utc(r.created_at),
            }
            for r in rows
        ]
