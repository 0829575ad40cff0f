import re
import secrets
from datetime import datetime, time, timezone
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import NetworkGroup, Post, TeamAssignment, User
from smo_social.security.auth import get_password_hash
from smo_social.security.roles import is_valid_role
from smo_social.services.content_organizer import HEX_COLOR, split_list
from smo_social.services.dates import utcnow, as_utc
from smo_social.services.permissions import RoleManager, user_to_dict
from smo_social.services.platforms import PLATFORMS, platform_name

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DEFAULT_GROUP_COLOR = "#3b82f6"


class TeamManager:
    def __init__(self, db: Session):
        self.db = db

    def _member(self, user_id: int) -> User:
        u = self.db.query(User).filter(User.id == user_id).first()
        if not u:
            raise NotFoundError("Team member", user_id)
        return u

    def _post_counts(self, status: str) -> dict[int, int]:
        return dict(
            self.db.query(Post.user_id, func.count(Post.id))
            .filter(Post.status == status)
            .group_by(Post.user_id)
            .all()
        )

    def get_team_members(self) -> list[dict]:
        scheduled = self._post_counts("scheduled")
        published = self._post_counts("published")
        members = []
        for u in self.db.query(User).filter(User.is_active == True).order_by(User.created_at.desc(), User.id.desc()).all():
            m = user_to_dict(u)
            m["platforms"] = sorted(a.platform for a in u.assignments)
            m["scheduled_posts"] = scheduled.get(u.id, 0)
            m["published_posts"] = published.get(u.id, 0)
            members.append(m)
        return members

    def add_team_member(self, name: str, email: str, role: str) -> User:
        email = (email or "").strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("A valid email address is required")
        if not is_valid_role(role):
            raise ValidationError(f"Invalid role: {role}")
        existing = self.db.query(User).filter(User.email == email).first()
        if existing and existing.is_active:
            raise ValidationError("A user with this email already exists")
        if existing:
            # removed members come back with the new role and a clean slate of overrides
            existing.is_active = True
            existing.role = role
            existing.name = (name or "").strip() or existing.name
            existing.granted_permissions = []
            existing.revoked_permissions = []
            self.db.commit()
            self.db.refresh(existing)
            log_event("team_member_reactivated", user_id=existing.id, role=role)
            return existing

        # members sign in after a password reset; nobody knows this one
        user = User(
            email=email,
            name=(name or "").strip() or email.split("@")[0],
            role=role,
            password_hash=get_password_hash(secrets.token_urlsafe(24)),
            granted_permissions=[],
            revoked_permissions=[],
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        log_event("team_member_added", user_id=user.id, role=role)
        return user

    def remove_team_member(self, user_id: int, acting_user: User) -> None:
        u = self._member(user_id)
        if u.id == acting_user.id:
            raise ValidationError("You cannot remove yourself from the team")
        if u.is_superadmin:
            raise ValidationError("The super administrator cannot be removed")
        u.is_active = False
        self.db.query(TeamAssignment).filter(TeamAssignment.user_id == u.id).delete()
        self.db.commit()
        log_event("team_member_removed", user_id=user_id, removed_by=acting_user.id)

    def get_user_network_assignments(self) -> list[dict]:
        rows = (
            self.db.query(TeamAssignment, User)
            .join(User, User.id == TeamAssignment.user_id)
            .filter(User.is_active == True)
            .order_by(User.name.asc(), TeamAssignment.platform.asc())
            .all()
        )
        return [
            {
                "id": a.id,
                "user_id": u.id,
                "user_name": u.name,
                "platform": a.platform,
                "platform_name": platform_name(a.platform),
                "assigned_by": a.assigned_by,
                "created_at": as_utc(a.created_at),
            }
            for a, u in rows
        ]

    def assign_network(self, user_id: int, platform: str, acting_user: User) -> TeamAssignment:
        if platform not in PLATFORMS:
            raise ValidationError("Invalid platform specified.")
        u = self._member(user_id)
        assignment = TeamAssignment(user_id=u.id, platform=platform, assigned_by=acting_user.id)
        self.db.add(assignment)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError(f"{u.name} is already assigned to {platform_name(platform)}")
        self.db.refresh(assignment)
        log_event("network_assigned", user_id=u.id, platform=platform)
        return assignment

    def unassign_network(self, user_id: int, platform: str) -> None:
        deleted = self.db.query(TeamAssignment).filter(
            TeamAssignment.user_id == user_id,
            TeamAssignment.platform == platform,
        ).delete()
        self.db.commit()
        if not deleted:
            raise NotFoundError("Assignment", {"user_id": user_id, "platform": platform})

    def get_team_permissions(self) -> dict:
        return RoleManager(self.db).get_permission_matrix()

    def get_team_calendar_data(self, member_id: int | None = None) -> dict:
        q = self.db.query(Post, User).outerjoin(User, User.id == Post.user_id).filter(Post.status == "scheduled")
        if member_id:
            q = q.filter(Post.user_id == member_id)
        rows = q.order_by(Post.scheduled_time.asc()).limit(100).all()

        today = utcnow().date()
        start = datetime.combine(today, time.min, tzinfo=timezone.utc)
        end = datetime.combine(today, time.max, tzinfo=timezone.utc)
        published = self.db.query(Post).filter(Post.status == "published")
        if member_id:
            published = published.filter(Post.user_id == member_id)
        published_today = published.filter(
            func.coalesce(Post.published_time, Post.created_at) >= start,
            func.coalesce(Post.published_time, Post.created_at) <= end,
        ).count()

        scheduled = self.db.query(Post).filter(Post.status == "scheduled")
        if member_id:
            scheduled = scheduled.filter(Post.user_id == member_id)

        return {
            "posts": [
                {
                    "id": p.id,
                    "title": p.title,
                    "content": p.content,
                    "platforms": p.platforms or [],
                    "scheduled_time": as_utc(p.scheduled_time),
                    "user_id": p.user_id,
                    "author_name": u.name if u else None,
                }
                for p, u in rows
            ],
            "total_scheduled": scheduled.count(),
            "published_today": published_today,
        }

    def get_network_groups(self) -> list[dict]:
        groups = self.db.query(NetworkGroup).order_by(NetworkGroup.created_at.desc(), NetworkGroup.id.desc()).all()
        member_ids = {m for g in groups for m in (g.member_ids or [])}
        users = {}
        if member_ids:
            users = {u.id: u for u in self.db.query(User).filter(User.id.in_(member_ids), User.is_active == True).all()}
        return [
            {
                "id": g.id,
                "name": g.name,
                "description": g.description or "",
                "platforms": g.platforms or [],
                "members": [
                    {"user_id": users[m].id, "name": users[m].name, "email": users[m].email}
                    for m in (g.member_ids or []) if m in users
                ],
                "settings": g.settings or {},
                "color": g.color,
                "icon": g.icon,
                "created_by": g.created_by,
                "created_at": as_utc(g.created_at),
            }
            for g in groups
        ]

    def create_network_group(self, data: dict, acting_user: User) -> NetworkGroup:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Group name is required")

        platforms = [p.lower() for p in split_list(data.get("platforms"))]
        invalid = [p for p in platforms if p not in PLATFORMS]
        if invalid:
            raise ValidationError(f"Invalid platform: {', '.join(invalid)}")

        try:
            member_ids = list(dict.fromkeys(int(m) for m in split_list(data.get("members"))))
        except ValueError:
            raise ValidationError("Invalid member IDs")
        found = {uid for (uid,) in self.db.query(User.id).filter(User.id.in_(member_ids), User.is_active == True).all()} if member_ids else set()
        missing = [str(m) for m in member_ids if m not in found]
        if missing:
            raise ValidationError(f"Unknown team members: {', '.join(missing)}")

        color = (data.get("color") or "").strip()
        group = NetworkGroup(
            name=name,
            description=(data.get("description") or "").strip() or None,
            platforms=list(dict.fromkeys(platforms)),
            member_ids=member_ids,
            settings=data.get("settings") or {},
            color=color if HEX_COLOR.match(color) else DEFAULT_GROUP_COLOR,
            icon=(data.get("icon") or "").strip() or "users",
            created_by=acting_user.id,
        )
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        log_event("network_group_created", group_id=group.id, platforms=group.platforms, member_count=len(member_ids))
        return group
