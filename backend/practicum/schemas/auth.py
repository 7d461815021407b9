"""Auth request schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    student_id: str = Field("", alias="studentId")
    password: str = ""

    class Config:
        populate_by_name = True


class LoginRequest(BaseModel):
    # Student id, staff id or username
    username: str = Field("", alias="studentId")
    password: str = ""
    remember_me: bool = Field(False, alias="rememberMe")

    class Config:
        populate_by_name = True


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    token: str = ""
    new_password: str = Field("", alias="newPassword")

    class Config:
        populate_by_name = True


class SessionUserResponse(BaseModel):
    id: str
    username: str
    role: Optional[str] = None
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    avatar_url: str = Field("", alias="avatarUrl")
    remember_me: bool = Field(False, alias="rememberMe")

    class Config:
        populate_by_name = True
