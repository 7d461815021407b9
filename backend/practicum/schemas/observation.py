"""Observation period schemas."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class ObservationCreate(BaseModel):
    name: Optional[str] = None
    academic_year: Optional[Union[str, int]] = Field(None, alias="academicYear")
    year_level: Optional[Union[int, str]] = Field(None, alias="yearLevel")
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    description: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list, alias="studentIds")

    class Config:
        populate_by_name = True


class ObservationUpdate(BaseModel):
    status: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class EnrollmentUpdate(BaseModel):
    status: Optional[str] = None
    evaluations_completed: Optional[int] = Field(None, alias="evaluationsCompleted")
    lesson_plan_submitted: Optional[bool] = Field(None, alias="lessonPlanSubmitted")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True
