from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.permissions import user_to_dict
from ..services.team import TeamManager
from .forms import form_list

router = APIRouter(prefix="/ajax", tags=["team-management"])

@router.post("/smo_add_team_member")
def add_team_member(
    name: str = Form(""),
    email: str = Form(""),
    role: str = Form("contributor"),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("list_users")),
):
    try:
        member = TeamManager(db).add_team_member(name, email, role)
        return json_success({"member": user_to_dict(member), "message": "Team member added successfully"})
    except Exception as e:
        return error_response("smo_add_team_member", e)

@router.post("/smo_remove_team_member")
def remove_team_member(
    user_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("list_users")),
):
    try:
        if not user_id:
            raise ValidationError("User ID is required")
        TeamManager(db).remove_team_member(user_id, user)
        return json_success("Team member removed successfully")
    except Exception as e:
        return error_response("smo_remove_team_member", e)

@router.post("/smo_assign_network")
def assign_network(
    user_id: int = Form(0),
    platform: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("list_users")),
):
    try:
        if not user_id or not platform:
            raise ValidationError("User ID and platform are required")
        TeamManager(db).assign_network(user_id, platform.strip().lower(), user)
        return json_success("Network assigned successfully")
    except Exception as e:
        return error_response("smo_assign_network", e)

@router.post("/smo_unassign_network")
def unassign_network(
    user_id: int = Form(0),
    platform: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("list_users")),
):
    try:
        TeamManager(db).unassign_network(user_id, platform.strip().lower())
        return json_success("Network unassigned successfully")
    except Exception as e:
        return error_response("smo_unassign_network", e)

@router.post("/smo_refresh_team_calendar")
def refresh_team_calendar(
    member_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(TeamManager(db).get_team_calendar_data(member_id or None))
    except Exception as e:
        return error_response("smo_refresh_team_calendar", e)

@router.post("/smo_get_team_data")
def get_team_data(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        team = TeamManager(db)
        return json_success({
            "members": team.get_team_members(),
            "assignments": team.get_user_network_assignments(),
            "permissions": team.get_team_permissions(),
            "calendar": team.get_team_calendar_data(),
            "groups": team.get_network_groups(),
        })
    except Exception as e:
        return error_response("smo_get_team_data", e)

@router.post("/smo_create_network_group")
def create_network_group(
    name: str = Form(""),
    description: str = Form(""),
    platforms: list[str] = Form([]),
    members: list[str] = Form([]),
    color: str = Form(""),
    icon: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("list_users")),
):
    try:
        team = TeamManager(db)
        group = team.create_network_group({
            "name": name,
            "description": description,
            "platforms": form_list(platforms),
            "members": form_list(members),
            "color": color,
            "icon": icon,
        }, user)
        return json_success({"group_id": group.id, "message": "Network group created successfully"})
    except Exception as e:
        return error_response("smo_create_network_group", e)

@router.post("/smo_get_network_groups")
def get_network_groups(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(TeamManager(db).get_network_groups())
    except Exception as e:
        return error_response("smo_get_network_groups", e)
