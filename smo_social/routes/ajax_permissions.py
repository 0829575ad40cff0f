from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import PermissionDeniedError, ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.permissions import PermissionValidator, RoleManager
from .forms import form_list

router = APIRouter(prefix="/ajax", tags=["permissions"])

@router.post("/smo_get_user_permissions")
def get_user_permissions(
    user_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        if not user_id:
            raise ValidationError("User ID is required")
        roles = RoleManager(db)
        target = roles.get_user_permissions(user_id)
        return json_success({
            "user_id": user_id,
            "permissions": target,
            "capabilities": PermissionValidator(db, roles).get_user_capabilities(user_id),
            "roles": roles.get_all_roles(),
        })
    except Exception as e:
        return error_response("smo_get_user_permissions", e)

@router.post("/smo_save_user_permissions")
def save_user_permissions(
    user_id: int = Form(0),
    role: str = Form(""),
    permissions: list[str] = Form([]),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        if not user_id:
            raise ValidationError("User ID is required")
        roles = RoleManager(db)
        check = PermissionValidator(db, roles).require_permission(user.id, "manage_permissions", context={"target_user_id": user_id})
        if not check["success"]:
            raise PermissionDeniedError(check["error"])
        roles.update_user_access(user_id, role.strip() or None, form_list(permissions))
        return json_success({
            "permissions": roles.get_user_permissions(user_id),
            "message": "Permissions saved successfully",
        })
    except Exception as e:
        return error_response("smo_save_user_permissions", e)

@router.post("/smo_get_role_users")
def get_role_users(
    role: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(RoleManager(db).get_users_with_role(role))
    except Exception as e:
        return error_response("smo_get_role_users", e)

@router.post("/smo_get_permission_logs")
def get_permission_logs(
    user_id: int = Form(0),
    limit: int = Form(100),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(PermissionValidator(db).get_permission_logs(user_id or None, limit))
    except Exception as e:
        return error_response("smo_get_permission_logs", e)
