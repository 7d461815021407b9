"""Evaluation submission schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SaveWeekRequest(BaseModel):
    observation_id: Optional[str] = Field(None, alias="observationId")
    # Kept loose so range errors come back with the domain message
    week: Any = None
    evaluation_num: Any = Field(None, alias="evaluationNum")
    answers: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True


class VideoSubmitRequest(BaseModel):
    observation_id: Optional[str] = Field(None, alias="observationId")
    video_url: Optional[str] = Field(None, alias="videoUrl")

    class Config:
        populate_by_name = True


class VideoValidateRequest(BaseModel):
    video_url: Optional[str] = Field(None, alias="videoUrl")

    class Config:
        populate_by_name = True
