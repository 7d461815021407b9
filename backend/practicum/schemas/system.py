"""System panel schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class StatusUpdate(BaseModel):
    status: str = ""


class ResetRequest(BaseModel):
    verification_code: Optional[str] = Field(None, alias="verificationCode")
    confirmed: bool = False
    timestamp: Optional[str] = None

    class Config:
        populate_by_name = True
