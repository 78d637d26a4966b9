from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    firebase_uid: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    display_name: str
    photo_url: str = Field(default="")
    phone: Optional[str] = None
    role: str = Field(default=ROLE_USER)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
