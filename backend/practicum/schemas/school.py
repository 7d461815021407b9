"""School info and mentor info request schemas."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class SchoolData(BaseModel):
    name: Optional[str] = None
    affiliation: Optional[str] = None
    address: Optional[str] = None
    district_area: Optional[str] = Field(None, alias="districtArea")
    subdistrict: Optional[str] = None
    amphoe: Optional[str] = None
    province: Optional[str] = None
    postcode: Optional[str] = None
    grade_levels: list[str] = Field(default_factory=list, alias="gradeLevels")
    principal: Optional[str] = None
    student_count: Optional[Union[int, str]] = Field(None, alias="studentCount")
    teacher_count: Optional[Union[int, str]] = Field(None, alias="teacherCount")
    staff_count: Optional[Union[int, str]] = Field(None, alias="staffCount")
    phone: Optional[str] = None
    email: Optional[str] = None

    class Config:
        populate_by_name = True


class SchoolSaveRequest(SchoolData):
    confirm_change: bool = Field(False, alias="confirmChange")
    delete_evaluations: bool = Field(False, alias="deleteEvaluations")


class MentorSaveRequest(BaseModel):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    position: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    education: list[str] = Field(default_factory=list)
    experience: Optional[Union[int, str]] = None
    department: Optional[str] = None
    teaching_subjects: list[str] = Field(default_factory=list, alias="teachingSubjects")

    class Config:
        populate_by_name = True
