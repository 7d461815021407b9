"""Tests for school and mentor information: sharing, change rules and mentor exclusivity."""

import pytest

from conftest import answers, make_period, make_user, school_form
from practicum.errors import (
    ChangeWindowExpiredError,
    ConfirmationRequiredError,
    MentorOccupiedError,
    NotEligibleError,
    ValidationError,
)
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt
from practicum.models.mentor import Mentor
from practicum.models.school import School, SchoolStudent
from practicum.services import evaluation_service, mentor_service, school_service

STUDENT = "65123456789"
OTHER = "65123456790"


def mentor_form(first="Suda", last="Rakdee", **overrides):
    data = {
        "firstName": first,
        "lastName": last,
        "position": "Senior teacher",
        "phone": "0812345678",
        "email": "suda@bannong.ac.th",
        "education": ["B.Ed."],
        "experience": 12,
        "department": "Thai",
        "teachingSubjects": ["Thai"],
    }
    data.update(overrides)
    return data


class TestSaveSchool:
    """Saving, sharing and reading back school information."""

    def test_save_and_read_back(self, db):
        make_user(db, STUDENT)
        period = make_period(db, [STUDENT], started_days_ago=2)
        result = school_service.save_school(db, STUDENT, school_form())
        assert result["isNewSchool"] is True
        assert result["studentCount"] == 1

        mine = school_service.get_my_school(db, STUDENT)
        assert mine["observationId"] == period.id
        assert mine["data"]["name"] == "Ban Nong School"
        assert mine["data"]["province"] == "Nakhon Sawan"
        assert mine["data"]["gradeLevels"] == ["P1", "P2", "P3"]
        form = school_form()
        for key in ("affiliation", "address", "principal", "studentCount", "teacherCount", "staffCount"):
            assert mine["data"][key] == form[key]
        assert mine["data"]["isOwner"] is True

    def test_missing_required_fields(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        with pytest.raises(ValidationError):
            school_service.save_school(db, STUDENT, school_form(postcode=""))
        with pytest.raises(ValidationError):
            school_service.save_school(db, STUDENT, school_form(gradeLevels=[]))

    def test_not_eligible(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=20)
        with pytest.raises(NotEligibleError):
            school_service.save_school(db, STUDENT, school_form())
        assert db.query(School).count() == 0

    def test_same_name_is_shared(self, db):
        """A second student naming the same school links to the existing row."""
        make_user(db, STUDENT)
        make_user(db, OTHER)
        make_period(db, [STUDENT, OTHER], started_days_ago=2)
        first = school_service.save_school(db, STUDENT, school_form())
        second = school_service.save_school(db, OTHER, school_form(principal="Someone Else"))

        assert second["isNewSchool"] is False
        assert second["schoolId"] == first["schoolId"]
        assert second["studentCount"] == 2
        assert first["fieldsUpdated"] is True
        assert second["fieldsUpdated"] is False
        assert "only the student who created it" in second["message"]
        db.expire_all()
        school = db.query(School).one()
        # Only the creator may edit the shared fields
        assert school.principal == "Somchai Jaidee"
        assert school_service.get_my_school(db, OTHER)["data"]["isOwner"] is False

    def test_owner_updates_fields(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        result = school_service.save_school(db, STUDENT, school_form(teacherCount=25))
        assert result["isNewSchool"] is False
        assert result["fieldsUpdated"] is True
        assert result["message"] == "School information updated"
        db.expire_all()
        assert db.query(School).one().teacher_count == 25
        assert db.query(SchoolStudent).count() == 1

    def test_search_by_prefix(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        assert school_service.search_schools(db, "B") == []
        results = school_service.search_schools(db, "Ban")
        assert [r["name"] for r in results] == ["Ban Nong School"]
        assert results[0]["submittedByCount"] == 1
        assert school_service.search_schools(db, "Nong") == []


class TestChangeSchool:
    """Switching to a different school within the period."""

    def test_change_without_work(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        result = school_service.save_school(db, STUDENT, school_form(name="Wat Tai School"))
        assert result["isNewSchool"] is True
        assert school_service.get_my_school(db, STUDENT)["data"]["name"] == "Wat Tai School"
        assert db.query(SchoolStudent).count() == 1

    def test_change_window_closed(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=10)
        school_service.save_school(db, STUDENT, school_form())
        with pytest.raises(ChangeWindowExpiredError) as exc:
            school_service.save_school(db, STUDENT, school_form(name="Wat Tai School"))
        assert exc.value.flags["cannotChange"] is True
        assert exc.value.flags["daysPassed"] == 10

    def test_requires_confirmation_then_cascades(self, db):
        """Changing school with recorded work needs both flags and then wipes that work."""
        student = make_user(db, STUDENT, year=1)
        period = make_period(db, [STUDENT], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        mentor_service.save_mentor(db, STUDENT, mentor_form())
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers())
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 2, answers())

        with pytest.raises(ConfirmationRequiredError) as exc:
            school_service.save_school(db, STUDENT, school_form(name="Wat Tai School"), confirm_change=True)
        flags = exc.value.flags
        assert flags["requiresConfirmation"] is True
        assert flags["evaluationCount"] == 2
        assert flags["hasMentor"] is True
        assert flags["oldSchoolName"] == "Ban Nong School"
        assert flags["newSchoolName"] == "Wat Tai School"

        db.expire_all()
        assert db.query(EvaluationAttempt).count() == 2

        school_service.save_school(
            db, STUDENT, school_form(name="Wat Tai School"), confirm_change=True, delete_evaluations=True
        )
        db.expire_all()
        assert db.query(EvaluationAggregate).count() == 0
        assert db.query(EvaluationAttempt).count() == 0
        assert db.query(Mentor).count() == 0
        assert school_service.get_my_school(db, STUDENT)["data"]["name"] == "Wat Tai School"


class TestSaveMentor:
    """Mentor records: school prerequisite and one student per mentor."""

    def test_requires_school_first(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        with pytest.raises(NotEligibleError) as exc:
            mentor_service.save_mentor(db, STUDENT, mentor_form())
        assert exc.value.flags["eligible"] is False
        assert exc.value.flags["needSchoolInfo"] is True
        assert db.query(Mentor).count() == 0

    def test_save_and_update(self, db):
        make_user(db, STUDENT)
        make_period(db, [STUDENT], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        first = mentor_service.save_mentor(db, STUDENT, mentor_form())
        second = mentor_service.save_mentor(db, STUDENT, mentor_form(experience=13))
        assert first["isNewMentor"] is True
        assert second["isNewMentor"] is False
        assert second["mentorId"] == first["mentorId"]
        mine = mentor_service.get_my_mentor(db, STUDENT)
        assert mine["experience"] == 13
        assert mine["teachingSubjects"] == ["Thai"]

    def test_missing_name(self, db):
        with pytest.raises(ValidationError):
            mentor_service.save_mentor(db, STUDENT, mentor_form(lastName=" "))

    def test_mentor_occupied(self, db):
        """The same mentor cannot be claimed by a second student of the period."""
        make_user(db, STUDENT)
        make_user(db, OTHER)
        make_period(db, [STUDENT, OTHER], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        school_service.save_school(db, OTHER, school_form())
        mentor_service.save_mentor(db, STUDENT, mentor_form())

        with pytest.raises(MentorOccupiedError) as exc:
            mentor_service.save_mentor(db, OTHER, mentor_form())
        assert exc.value.flags["mentorOccupied"] is True
        assert exc.value.flags["occupiedBy"] == STUDENT
        db.expire_all()
        assert [m.student_id for m in db.query(Mentor).all()] == [STUDENT]

    def test_search_at_own_school(self, db):
        make_user(db, STUDENT)
        make_user(db, OTHER)
        make_period(db, [STUDENT, OTHER], started_days_ago=2)
        school_service.save_school(db, STUDENT, school_form())
        school_service.save_school(db, OTHER, school_form())
        mentor_service.save_mentor(db, STUDENT, mentor_form())

        results = mentor_service.search_mentors(db, OTHER, "rak")
        assert [(r["firstName"], r["lastName"]) for r in results] == [("Suda", "Rakdee")]
        assert mentor_service.search_mentors(db, OTHER, "x") == []
