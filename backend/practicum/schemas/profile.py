"""Profile request schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    major: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    room: Optional[str] = None

    class Config:
        populate_by_name = True


class PasswordChange(BaseModel):
    current_password: str = Field("", alias="currentPassword")
    new_password: str = Field("", alias="newPassword")

    class Config:
        populate_by_name = True
