"""Tests for the submission gatekeeper: attempts, lesson plan and video link."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import PASSWORD, answers, make_period, make_user
from practicum.clock import utcnow
from practicum.errors import AlreadySubmittedError, ForbiddenError, ValidationError
from practicum.models.evaluation import EvaluationAttempt
from practicum.models.observation import StudentEnrollment
from practicum.services import evaluation_service, evaluation_store, user_service

STUDENT = "65123456789"
PDF = "application/pdf"


@pytest.fixture
def enrolled(db):
    def _make(year=1):
        student = make_user(db, STUDENT, year=year)
        period = make_period(db, [STUDENT], started_days_ago=2, year_level=year)
        return student, period
    return _make


class TestSaveEvaluationWeek:
    """Write-once evaluation attempts."""

    def test_first_submission(self, db, enrolled):
        student, period = enrolled()
        result = evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers(4))
        assert result == {"evaluationNum": 1, "week": 1, "evaluationsCompleted": 1}
        aggregate = evaluation_store.get_aggregate(db, STUDENT, period.id)
        assert aggregate.attempts[0].answers["q1"] == 4

    def test_second_submission_rejected_and_unchanged(self, db, enrolled):
        """Resubmitting the same attempt fails and keeps the original answers."""
        student, period = enrolled()
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers(4))
        with pytest.raises(AlreadySubmittedError) as exc:
            evaluation_service.save_evaluation_week(db, student, period.id, 2, 1, answers(1))
        assert exc.value.flags["alreadySubmitted"] is True

        db.expire_all()
        rows = db.query(EvaluationAttempt).all()
        assert len(rows) == 1
        assert rows[0].answers == answers(4)
        assert rows[0].week == 1

    def test_unique_key_is_the_final_check(self, db, enrolled):
        """Even when the fast-path read misses, the insert itself refuses a duplicate."""
        student, period = enrolled()
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 3, answers(4))
        aggregate = evaluation_store.get_aggregate(db, STUDENT, period.id)
        # Simulate a stale read by hiding the existing attempt from the session
        db.expunge_all()
        db.add(EvaluationAttempt(
            aggregate_id=aggregate.id, evaluation_num=3, week=1, date="x", answers=answers(2),
        ))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    @pytest.mark.parametrize("week,num", [(0, 1), (4, 1), (1, 0), (1, 10), ("x", 1)])
    def test_range_checks(self, db, enrolled, week, num):
        student, period = enrolled()
        with pytest.raises(ValidationError):
            evaluation_service.save_evaluation_week(db, student, period.id, week, num, answers(3))

    def test_incomplete_answers(self, db, enrolled):
        student, period = enrolled()
        partial = answers(3)
        del partial["q10"]
        with pytest.raises(ValidationError):
            evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, partial)

    def test_superscript_digit_is_a_validation_error(self, db, enrolled):
        student, period = enrolled()
        with pytest.raises(ValidationError):
            evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers(3, q1="\u00b2"))
        assert evaluation_store.get_aggregate(db, STUDENT, period.id) is None

    def test_not_enrolled(self, db):
        student = make_user(db, STUDENT)
        period = make_period(db, [], started_days_ago=1)
        with pytest.raises(ForbiddenError):
            evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers())

    def test_counters_and_week_status(self, db, enrolled):
        student, period = enrolled()
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 1, answers())
        evaluation_service.save_evaluation_week(db, student, period.id, 1, 2, answers())
        evaluation_service.save_evaluation_week(db, student, period.id, 2, 4, answers())

        db.expire_all()
        enrollment = db.query(StudentEnrollment).filter_by(student_id=STUDENT).one()
        assert enrollment.evaluations_completed == 3

        data = evaluation_service.get_my_evaluation_data(db, STUDENT, period.id)
        assert sorted(data["evaluations"]) == ["1", "2", "4"]
        assert data["weekStatus"]["1"]["count"] == 2
        assert data["weekStatus"]["2"]["count"] == 1

    def test_my_data_without_aggregate(self, db, enrolled):
        _, period = enrolled()
        assert evaluation_service.get_my_evaluation_data(db, STUDENT, period.id) is None


class TestLessonPlan:
    """Lesson plan upload for year 2 and 3 students."""

    def test_year_one_forbidden(self, db, storage, enrolled):
        student, period = enrolled(year=1)
        with pytest.raises(ForbiddenError):
            evaluation_service.submit_lesson_plan(db, storage, student, period.id, "plan.pdf", PDF, b"%PDF")

    def test_upload_and_object_name(self, db, storage, enrolled):
        student, period = enrolled(year=2)
        now = datetime(2025, 6, 3, 9, 15, 30, tzinfo=timezone.utc)
        data = evaluation_service.submit_lesson_plan(
            db, storage, student, period.id, "My Plan.PDF", PDF, b"%PDF-1.7", now=now
        )
        assert data["storagePath"] == f"lesson_plans/lesson_plan_{STUDENT}_20250603_091530.pdf"
        assert data["fileUrl"] == f"/files/{data['storagePath']}"
        assert storage.exists(data["storagePath"])

        db.expire_all()
        enrollment = db.query(StudentEnrollment).filter_by(student_id=STUDENT).one()
        assert enrollment.lesson_plan_submitted is True

    def test_second_upload_rejected(self, db, storage, enrolled):
        """The first file stays; the second is refused before anything is stored."""
        student, period = enrolled(year=3)
        first = evaluation_service.submit_lesson_plan(db, storage, student, period.id, "a.pdf", PDF, b"one")
        with pytest.raises(AlreadySubmittedError):
            evaluation_service.submit_lesson_plan(db, storage, student, period.id, "b.pdf", PDF, b"two")
        db.expire_all()
        aggregate = evaluation_store.get_aggregate(db, STUDENT, period.id)
        assert aggregate.lesson_plan_file_url == first["fileUrl"]
        assert aggregate.lesson_plan_file_name == "a.pdf"

    def test_wrong_mime_type(self, db, storage, enrolled):
        student, period = enrolled(year=2)
        with pytest.raises(ValidationError):
            evaluation_service.submit_lesson_plan(db, storage, student, period.id, "a.exe", "application/x-msdownload", b"MZ")
        assert not (storage.root / "lesson_plans").exists()

    def test_too_large(self, db, storage, enrolled, monkeypatch):
        from practicum.config import settings

        monkeypatch.setattr(settings, "LESSON_PLAN_MAX_BYTES", 10)
        student, period = enrolled(year=2)
        with pytest.raises(ValidationError):
            evaluation_service.submit_lesson_plan(db, storage, student, period.id, "a.pdf", PDF, b"x" * 11)
        assert evaluation_store.get_aggregate(db, STUDENT, period.id) is None

    def test_lost_race_removes_object(self, db, storage, enrolled, monkeypatch):
        """When the conditional write loses, the freshly stored object is deleted."""
        student, period = enrolled(year=2)
        evaluation_service.submit_lesson_plan(db, storage, student, period.id, "a.pdf", PDF, b"one")
        aggregate = evaluation_store.get_aggregate(db, STUDENT, period.id)

        # The fast path sees an empty slot; the database does not
        db.expunge(aggregate)
        aggregate.lesson_plan_uploaded = False
        monkeypatch.setattr(evaluation_store, "get_aggregate", lambda *args, **kwargs: aggregate)
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(AlreadySubmittedError):
            evaluation_service.submit_lesson_plan(db, storage, student, period.id, "b.pdf", PDF, b"two", now=later)
        assert not storage.exists(f"lesson_plans/lesson_plan_{STUDENT}_20300101_000000.pdf")


class TestYearAfterRegistration:
    def test_registered_two_years_ago_submits_year_three_work(self, db, storage):
        """A student registered as year 1 can submit once enrolled in a year-3 period."""
        registered = utcnow() - timedelta(days=730)
        student_id = f"{(registered.year + 543) % 100:02d}123456780"
        student = user_service.register_student(db, student_id, PASSWORD, now=registered)
        assert student.year == 1
        period = make_period(db, [student_id], started_days_ago=2, year_level=3)

        data = evaluation_service.submit_lesson_plan(db, storage, student, period.id, "plan.pdf", PDF, b"%PDF")
        assert storage.exists(data["storagePath"])
        evaluation_service.submit_video_link(db, student, period.id, "https://youtu.be/dQw4w9WgXcQ")
        db.expire_all()
        assert evaluation_store.get_aggregate(db, student_id, period.id).video_url == "https://youtu.be/dQw4w9WgXcQ"


class TestVideoLink:
    URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

    def test_year_three_only(self, db, enrolled):
        student, period = enrolled(year=2)
        with pytest.raises(ForbiddenError):
            evaluation_service.submit_video_link(db, student, period.id, self.URL)

    def test_submit_once(self, db, enrolled):
        student, period = enrolled(year=3)
        evaluation_service.submit_video_link(db, student, period.id, self.URL)
        with pytest.raises(AlreadySubmittedError):
            evaluation_service.submit_video_link(db, student, period.id, "https://youtu.be/other")
        db.expire_all()
        assert evaluation_store.get_aggregate(db, STUDENT, period.id).video_url == self.URL

    def test_invalid_url(self, db, enrolled):
        student, period = enrolled(year=3)
        with pytest.raises(ValidationError):
            evaluation_service.submit_video_link(db, student, period.id, "https://vimeo.com/123")


class TestValidateVideoUrl:
    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "youtube.com/embed/dQw4w9WgXcQ",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
    ])
    def test_accepted_forms(self, url):
        result = evaluation_service.validate_video_url(url)
        assert result["valid"] is True
        assert result["videoId"] == "dQw4w9WgXcQ"
        assert result["embedUrl"] == "https://www.youtube.com/embed/dQw4w9WgXcQ"

    def test_rejected(self):
        assert evaluation_service.validate_video_url("https://example.com/v")["valid"] is False

    def test_missing(self):
        with pytest.raises(ValidationError):
            evaluation_service.validate_video_url("")
