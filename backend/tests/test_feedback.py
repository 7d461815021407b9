"""Tests for the one-time website feedback survey."""

from datetime import timedelta

import pytest

from conftest import make_user
from practicum.clock import utcnow
from practicum.errors import AlreadySubmittedError, ForbiddenError, NotFoundError, ValidationError
from practicum.models.feedback import WebsiteFeedback
from practicum.services import feedback_service

STUDENT = "65123456789"
SURVEY = {"ease": 5, "speed": 4}


class TestCheckStatus:
    def test_eligible(self, db):
        make_user(db, STUDENT, created_at=utcnow() - timedelta(days=10))
        assert feedback_service.check_status(db, STUDENT) == {"eligible": True}

    def test_too_new(self, db):
        make_user(db, STUDENT, created_at=utcnow() - timedelta(days=2, hours=1))
        status = feedback_service.check_status(db, STUDENT)
        assert status == {"eligible": False, "reason": feedback_service.TOO_NEW, "days": 3}

    def test_profile_incomplete(self, db):
        make_user(db, STUDENT, first_name="", created_at=utcnow() - timedelta(days=10))
        assert feedback_service.check_status(db, STUDENT)["reason"] == feedback_service.PROFILE_INCOMPLETE

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            feedback_service.check_status(db, "65000000000")


class TestSubmit:
    def test_once_per_user(self, db):
        make_user(db, STUDENT, created_at=utcnow() - timedelta(days=10))
        feedback_service.submit(db, STUDENT, "student", SURVEY, "More charts please")
        assert feedback_service.check_status(db, STUDENT)["reason"] == feedback_service.ALREADY_SUBMITTED
        with pytest.raises(AlreadySubmittedError):
            feedback_service.submit(db, STUDENT, "student", SURVEY)

    def test_answers_required(self, db):
        with pytest.raises(ValidationError):
            feedback_service.submit(db, STUDENT, "student", {})

    def test_new_account_refused(self, db):
        make_user(db, STUDENT, created_at=utcnow() - timedelta(days=1))
        with pytest.raises(ForbiddenError) as exc:
            feedback_service.submit(db, STUDENT, "student", SURVEY)
        assert exc.value.flags["reason"] == feedback_service.TOO_NEW
        assert db.get(WebsiteFeedback, STUDENT) is None

    def test_incomplete_profile_refused(self, db):
        make_user(db, STUDENT, last_name="", created_at=utcnow() - timedelta(days=10))
        with pytest.raises(ForbiddenError) as exc:
            feedback_service.submit(db, STUDENT, "student", SURVEY)
        assert exc.value.flags["reason"] == feedback_service.PROFILE_INCOMPLETE
        assert db.get(WebsiteFeedback, STUDENT) is None
