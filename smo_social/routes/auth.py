from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..logging_setup import log_event
from ..models import User
from ..schemas import MeOut, TokenOut
from ..security.auth import verify_password, create_access_token, require_user
from ..security.roles import ROLE_CAPABILITIES
from ..services.permissions import RoleManager

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenOut)
def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(func.lower(User.email) == func.lower(form_data.username.strip())).first()
    if not user or not user.is_active or not verify_password(form_data.password, user.password_hash):
        log_event("login_failed", level="warning", email=form_data.username.strip())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": str(user.id)})

    # HttpOnly cookie for the dashboard's AJAX calls
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        samesite="lax",
        secure=True,
        max_age=7 * 24 * 60 * 60
    )
    log_event("login", user_id=user.id)
    return {"access_token": access_token, "token_type": "bearer"}

@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    response.delete_cookie(key="access_token", httponly=True, samesite="lax", secure=True)
    return {"message": "Logged out successfully"}

@router.get("/me", response_model=MeOut)
def me(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_db)
):
    if current_user.is_superadmin:
        capabilities = sorted(set().union(*ROLE_CAPABILITIES.values()))
    else:
        capabilities = sorted(ROLE_CAPABILITIES.get(current_user.role, set()))
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "is_superadmin": current_user.is_superadmin,
        "created_at": current_user.created_at,
        "capabilities": capabilities,
        "permissions": RoleManager(db).effective_permissions(current_user),
    }
