from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AuthenticationError, PermissionDeniedError
from ..models import User
from ..responses import json_success
from ..security.auth import get_current_user
from ..security.capabilities import user_can
from ..views.pages import get_page, page_capability

router = APIRouter(prefix="/admin/pages", tags=["pages"])

@router.get("/{page}")
def admin_page(
    page: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
):
    if not user:
        raise AuthenticationError()
    if not user_can(user, page_capability(page)):
        raise PermissionDeniedError()
    return json_success(get_page(db, user, page))
