"""Student dashboard — current period, practicum history and progress counters."""

from sqlalchemy.orm import Session

from practicum.clock import isoformat
from practicum.models.mentor import Mentor
from practicum.models.observation import StudentEnrollment
from practicum.models.user import User
from practicum.services import evaluation_store
from practicum.services.eligibility import find_student_school, student_year
from practicum.services.evaluation_service import LESSON_PLAN_YEARS


def _observation_info(enrollment: StudentEnrollment) -> dict:
    period = enrollment.observation
    return {
        "id": period.id,
        "name": period.name,
        "academicYear": period.academic_year,
        "yearLevel": period.year_level,
        "startDate": isoformat(period.start_date),
        "endDate": isoformat(period.end_date),
        "status": period.status,
        "description": period.description or "",
        "studentStatus": enrollment.status,
        "evaluationsCompleted": enrollment.evaluations_completed or 0,
        "lessonPlanSubmitted": bool(enrollment.lesson_plan_submitted),
        "notes": enrollment.notes or "",
    }


def dashboard(db: Session, student: User) -> dict:
    enrollments = (
        db.query(StudentEnrollment)
        .filter(StudentEnrollment.student_id == student.id)
        .order_by(StudentEnrollment.enrolled_at.asc())
        .all()
    )
    active = None
    history = []
    for enrollment in enrollments:
        info = _observation_info(enrollment)
        if enrollment.observation.status == "active" and enrollment.status == "active":
            active = info
        else:
            history.append(info)

    school_info = None
    mentor_info = None
    if active:
        school = find_student_school(db, student.id, active["id"])
        if school:
            school_info = {
                "id": school.id,
                "name": school.name,
                "province": school.province,
                "amphoe": school.amphoe,
                "affiliation": school.affiliation,
                "observationId": school.observation_id,
            }
        mentor = (
            db.query(Mentor)
            .filter(Mentor.student_id == student.id, Mentor.observation_id == active["id"])
            .first()
        )
        if mentor:
            mentor_info = {
                "id": mentor.id,
                "name": f"{mentor.first_name} {mentor.last_name}".strip(),
                "firstName": mentor.first_name,
                "lastName": mentor.last_name,
                "position": mentor.position or "",
                "department": mentor.department or "",
                "phone": mentor.phone or "",
                "email": mentor.email or "",
                "teachingSubjects": list(mentor.teaching_subjects or []),
                "observationId": mentor.observation_id,
            }

    aggregates = evaluation_store.list_aggregates(db, student_id=student.id)
    evaluations = [evaluation_store.aggregate_to_dict(a) for a in aggregates]
    lesson_plans = [evaluation_store.lesson_plan_to_dict(a) for a in aggregates if a.lesson_plan_uploaded]
    current = next((a for a in aggregates if active and a.observation_id == active["id"]), None)
    year = (active and active.get("yearLevel")) or student_year(student) or 1

    return {
        "user": {
            "studentId": student.id,
            "firstName": student.first_name or "",
            "lastName": student.last_name or "",
            "year": year,
            "email": student.email or "",
        },
        "activeObservation": active,
        "practiceHistory": history,
        "schoolInfo": school_info,
        "mentorInfo": mentor_info,
        "evaluationData": evaluations,
        "lessonPlans": lesson_plans,
        "stats": {
            "totalObservations": len(enrollments),
            "completedObservations": len(history),
            "totalEvaluations": sum(len(evaluation_store.submitted_attempts(a)) for a in aggregates),
            "completedEvaluations": len(evaluation_store.submitted_attempts(current)) if current else 0,
            "totalLessonPlans": len(lesson_plans),
        },
        "canUploadLessonPlan": year in LESSON_PLAN_YEARS,
    }
