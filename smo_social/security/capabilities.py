from fastapi import Depends

from smo_social.errors import AuthenticationError, PermissionDeniedError
from smo_social.models import User
from smo_social.security.auth import get_current_user
from smo_social.security.roles import role_capabilities

def user_can(user: User | None, capability: str) -> bool:
    if not user or not user.is_active:
        return False
    if user.is_superadmin:
        return True
    return capability in role_capabilities(user.role)

def require_capability(capability: str):
    """
    Dependency factory used by every AJAX route.
    Raises domain errors so the response keeps the `{success, data}` envelope.
    """
    def checker(user: User | None = Depends(get_current_user)) -> User:
        if not user:
            raise AuthenticationError()
        if not user_can(user, capability):
            raise PermissionDeniedError()
        return user
    return checker
