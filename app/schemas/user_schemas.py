from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from app.models.user import User


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="displayName", max_length=100)
    photo_url: Optional[str] = Field(None, alias="photoURL")


class RoleUpdate(BaseModel):
    role: Optional[str] = None


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "firebaseUid": user.firebase_uid,
        "email": user.email,
        "displayName": user.display_name,
        "photoURL": user.photo_url,
        "role": user.role,
        "createdAt": user.created_at,
    }
