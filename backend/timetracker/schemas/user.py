from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from timetracker.schemas.store import RowId


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class PublicUser(BaseModel):
    id: RowId
    username: str
    name: Optional[str] = None
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None


class User(PublicUser):
    password_hash: Optional[str] = None

    def to_public(self) -> PublicUser:
        return PublicUser(**self.model_dump(exclude={"password_hash"}))


class SignInRequest(BaseModel):
    username: str
    password: str


class UserCreate(BaseModel):
    username: str
    password: str
    name: str = "New User"
    role: UserRole = UserRole.USER


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: PublicUser
