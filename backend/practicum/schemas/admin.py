"""Admin user-management schemas."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    role: Optional[str] = None
    year_level: Optional[Union[int, str]] = Field(None, alias="yearLevel")
    password: Optional[str] = None

    class Config:
        populate_by_name = True


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    major: Optional[str] = None
    room: Optional[str] = None
    year_level: Optional[int] = Field(None, alias="yearLevel")
    status: Optional[str] = None
    password: Optional[str] = None

    class Config:
        populate_by_name = True
