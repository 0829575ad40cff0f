from pydantic import BaseModel
from datetime import datetime

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: str
    is_superadmin: bool
    created_at: datetime | None = None
    class Config:
        from_attributes = True

class MeOut(UserOut):
    capabilities: list[str] = []
    permissions: list[str] = []
