"""Report aggregator — chart-ready summaries over evaluation aggregates.

Everything is recomputed from the attempt rows on each call; nothing is cached.

Summary algorithm (``build_summary``):
  1. candidate aggregates, filtered by period (and that period's roster)
  2. per aggregate the submitted attempts, or only attempt ``evaluation_num``
  3. per student and category: mean of every numeric answer pooled together
  4. per category: mean of the student averages that are > 0
  5. grand average: mean of the category averages that are > 0
  6. stats over every per-student category score > 0
"""

from typing import Optional

from sqlalchemy.orm import Session

from practicum import rubric
from practicum.clock import isoformat
from practicum.config import settings
from practicum.errors import ValidationError
from practicum.models.evaluation import EvaluationAggregate
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.user import User
from practicum.services import evaluation_store

ALL_OBSERVATIONS = "__all__"
UNNAMED = "Untitled"


def normalize_observation_filter(value) -> Optional[str]:
    value = (str(value).strip() if value is not None else "")
    if not value or value == ALL_OBSERVATIONS:
        return None
    return value


def parse_evaluation_num(value) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        num = int(str(value).strip())
    except ValueError:
        num = None
    if num is None or not 1 <= num <= settings.MAX_EVALUATIONS:
        raise ValidationError(f"evaluationNum must be between 1 and {settings.MAX_EVALUATIONS}")
    return num


def _observation_names(db: Session, ids) -> dict:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    rows = db.query(ObservationPeriod.id, ObservationPeriod.name).filter(ObservationPeriod.id.in_(ids)).all()
    return {row.id: row.name or UNNAMED for row in rows}


def list_report_observations(db: Session) -> list[dict]:
    periods = db.query(ObservationPeriod).order_by(ObservationPeriod.created_at.desc()).all()
    return [
        {
            "id": p.id,
            "name": p.name or UNNAMED,
            "academicYear": p.academic_year or "",
            "yearLevel": p.year_level,
            "status": p.status or "",
            "createdAt": isoformat(p.created_at),
        }
        for p in periods
    ]


def _included_attempts(aggregate: EvaluationAggregate, evaluation_num: Optional[int]):
    attempts = evaluation_store.submitted_attempts(aggregate)
    if evaluation_num is None:
        return attempts
    return [a for a in attempts if a.evaluation_num == evaluation_num]


def build_summary(
    db: Session,
    observation_id=None,
    year_level=None,
    student_id: Optional[str] = None,
    evaluation_num=None,
) -> dict:
    observation_filter = normalize_observation_filter(observation_id)
    evaluation_num = parse_evaluation_num(evaluation_num)
    year_filter = str(year_level).strip() if year_level not in (None, "") else None
    student_filter = student_id.strip() if student_id else None

    observations = [
        {
            "id": o["id"],
            "name": o["name"],
            "academicYear": o["academicYear"],
            "yearLevel": o["yearLevel"],
            "status": o["status"],
        }
        for o in list_report_observations(db)
    ]

    roster = None
    if observation_filter:
        roster = {
            row.student_id
            for row in db.query(StudentEnrollment.student_id)
            .filter(StudentEnrollment.observation_id == observation_filter)
            .all()
        }

    by_student: dict = {}
    for aggregate in evaluation_store.list_aggregates(db, observation_id=observation_filter):
        sid = (aggregate.student_id or "").strip()
        if not sid:
            continue
        # An empty roster means the period predates enrollments; keep everything
        if roster and sid not in roster:
            continue
        by_student.setdefault(sid, []).append(aggregate)

    users = {}
    if by_student:
        users = {u.id: u for u in db.query(User).filter(User.id.in_(list(by_student))).all()}

    students = []
    for sid in sorted(by_student):
        aggregates = by_student[sid]
        user = users.get(sid)
        year = user.year if user and user.year else None
        if year is None:
            year = next((a.year for a in aggregates if a.year), None)

        if year_filter is not None and str(year) != year_filter:
            continue
        if student_filter and sid != student_filter:
            continue

        total_submitted = 0
        answer_sets = []
        for aggregate in aggregates:
            total_submitted += len(evaluation_store.submitted_attempts(aggregate))
            answer_sets.extend(a.answers for a in _included_attempts(aggregate, evaluation_num))

        students.append({
            "id": sid,
            "firstName": user.first_name if user else "",
            "lastName": user.last_name if user else "",
            "year": int(year) if year is not None else None,
            "evaluationData": rubric.group_averages(answer_sets),
            "evaluationCount": len(answer_sets),
            "evaluationCountTotal": total_submitted,
        })

    category_averages = {
        key: rubric.fmt2(rubric.mean_of_positive(s["evaluationData"][key] for s in students))
        for key in rubric.CATEGORY_QUESTIONS
    }
    grand_average = rubric.fmt2(rubric.mean_of_positive(float(v) for v in category_averages.values()))

    all_scores = [v for s in students for v in s["evaluationData"].values() if v > 0]
    stats = {
        "totalStudents": len(students),
        "totalEvaluations": sum(s["evaluationCount"] for s in students),
        "grandAverage": grand_average,
        "minScore": rubric.fmt2(min(all_scores)) if all_scores else "0.00",
        "maxScore": rubric.fmt2(max(all_scores)) if all_scores else "0.00",
        "excellentCount": sum(1 for v in all_scores if v >= rubric.EXCELLENT_THRESHOLD),
        "needImprovementCount": sum(1 for v in all_scores if v < rubric.NEEDS_IMPROVEMENT_THRESHOLD),
    }

    year_distribution = {str(y): sum(1 for s in students if s["year"] == y) for y in range(1, 5)}

    return {
        "observations": observations,
        "students": students,
        "categoriesLabel": dict(rubric.CATEGORY_LABELS),
        "categoryAverages": category_averages,
        "grandAverage": grand_average,
        "stats": stats,
        "yearDistribution": year_distribution,
        "filters": {
            "observationId": observation_filter,
            "yearLevel": year_filter,
            "studentId": student_filter,
            "evaluationNum": evaluation_num,
        },
    }


def student_evaluation_detail(
    db: Session,
    student_id: Optional[str],
    observation_id: Optional[str] = None,
    evaluation_num=None,
) -> dict:
    """Question-level report for one student, grouped by observation period."""
    student_id = (student_id or "").strip()
    if not student_id:
        raise ValidationError("studentId is required")
    evaluation_num = parse_evaluation_num(evaluation_num)
    observation_id = normalize_observation_filter(observation_id)

    user = db.query(User).filter(User.id == student_id).first()
    aggregates = evaluation_store.list_aggregates(db, observation_id=observation_id, student_id=student_id)
    names = _observation_names(db, [a.observation_id for a in aggregates])

    records = []
    for aggregate in aggregates:
        attempts = []
        for attempt in _included_attempts(aggregate, evaluation_num):
            scores = rubric.attempt_scores(attempt.answers)
            attempts.append({
                "evaluationNum": attempt.evaluation_num,
                "week": attempt.week,
                "date": attempt.date,
                "submittedAt": isoformat(attempt.submitted_at),
                "answers": attempt.answers or {},
                "categoryScores": scores["categoryScores"],
                "overallAverage": scores["overallAverage"],
            })

        category_averages = {
            key: round(rubric.mean_of_positive(a["categoryScores"][key] for a in attempts), 2)
            for key in rubric.CATEGORY_QUESTIONS
        }
        records.append({
            "observationId": aggregate.observation_id,
            "observationName": names.get(aggregate.observation_id, UNNAMED),
            "year": aggregate.year,
            "attempts": attempts,
            "totals": {
                "attemptsSubmitted": len(attempts),
                "categoryAverages": category_averages,
                "overallAverage": round(rubric.mean_of_positive(category_averages.values()), 2),
            },
        })
    records.sort(key=lambda r: r["observationName"] or "")

    year = user.year if user and user.year else next((r["year"] for r in records if r["year"]), None)
    return {
        "student": {
            "id": student_id,
            "firstName": user.first_name if user else "",
            "lastName": user.last_name if user else "",
            "year": year,
            "email": (user.email or "") if user else "",
        },
        "filters": {"observationId": observation_id, "evaluationNum": evaluation_num},
        "categoriesLabel": dict(rubric.CATEGORY_LABELS),
        "groupQuestions": {k: list(v) for k, v in rubric.CATEGORY_QUESTIONS.items()},
        "records": records,
    }


def student_summary(db: Session, student_id: str, observation_id: Optional[str] = None) -> dict:
    """Chart data for a student's own evaluations.

    Attempts are renumbered 1, 2, 3... in submission-number order, so a
    student who submitted attempts 1, 4 and 7 sees topics 1, 2 and 3.
    """
    aggregates = evaluation_store.list_aggregates(
        db, observation_id=normalize_observation_filter(observation_id), student_id=student_id
    )
    names = _observation_names(db, [a.observation_id for a in aggregates])

    by_topic = []
    distribution = {"excellent": 0, "good": 0, "fair": 0, "needsImprovement": 0}
    weekly = {"week1": 0, "week2": 0, "week3": 0}
    observation_summary = []
    total_score = 0.0
    total_count = 0

    for aggregate in aggregates:
        name = names.get(aggregate.observation_id, UNNAMED)
        obs_total = 0.0
        obs_count = 0
        obs_weekly = {"week1": 0, "week2": 0, "week3": 0}

        sequence = 0
        for attempt in evaluation_store.submitted_attempts(aggregate):
            score = rubric.answers_mean(attempt.answers)
            if score <= 0:
                continue
            sequence += 1
            by_topic.append({
                "topic": f"Evaluation {sequence}",
                "topicNumber": sequence,
                "originalNumber": attempt.evaluation_num,
                "score": round(score, 2),
                "week": attempt.week or 1,
                "observationName": name,
                "submittedAt": isoformat(attempt.submitted_at) or attempt.date,
                "totalQuestions": sum(
                    1 for v in (attempt.answers or {}).values()
                    if rubric.to_number(v) is not None and 1 <= rubric.to_number(v) <= 5
                ),
            })
            total_score += score
            total_count += 1
            obs_total += score
            obs_count += 1
            distribution[rubric.distribution_bucket(score)] += 1
            week_key = f"week{attempt.week}"
            if week_key in obs_weekly:
                obs_weekly[week_key] += 1

        observation_summary.append({
            "observationId": aggregate.observation_id,
            "observationName": name,
            "totalEvaluations": obs_count,
            "averageScore": round(obs_total / obs_count, 2) if obs_count else 0,
            "weeklyProgress": obs_weekly,
            "year": aggregate.year,
        })
        for key in weekly:
            weekly[key] += obs_weekly[key]

    average = round(total_score / total_count, 2) if total_count else 0
    by_topic.sort(key=lambda t: t["topicNumber"])
    scores = [t["score"] for t in by_topic]
    return {
        "hasData": total_count > 0,
        "summary": {
            "totalEvaluations": settings.MAX_EVALUATIONS,
            "completedEvaluations": total_count,
            "averageScore": average,
            "evaluationsByTopic": by_topic,
            "scoreDistribution": distribution,
            "weeklyProgress": weekly,
            "observationSummary": observation_summary,
            "gradeText": rubric.grade_text(average),
            "completionRate": round(total_count / settings.MAX_EVALUATIONS * 100),
            "highestScore": max(scores) if scores else 0,
            "lowestScore": min(scores) if scores else 0,
        },
    }


def lesson_plan_stats(db: Session, student_id: str, year: Optional[int]) -> dict:
    aggregates = evaluation_store.list_aggregates(db, student_id=student_id)
    names = _observation_names(db, [a.observation_id for a in aggregates])
    if year is None:
        year = next((a.year for a in reversed(aggregates) if a.year), None)

    by_observation = []
    for aggregate in aggregates:
        plan = evaluation_store.lesson_plan_to_dict(aggregate) or {}
        by_observation.append({
            "observationId": aggregate.observation_id,
            "observationName": names.get(aggregate.observation_id, UNNAMED),
            "year": aggregate.year or year,
            "submitted": bool(aggregate.lesson_plan_uploaded),
            "fileName": plan.get("fileName"),
            "fileUrl": plan.get("fileUrl"),
            "submittedDate": plan.get("submittedDate"),
        })

    # Latest submissions first, then the pending ones
    by_observation.sort(key=lambda r: r["submittedDate"] or "", reverse=True)
    by_observation.sort(key=lambda r: not r["submitted"])

    total = len(by_observation)
    submitted = sum(1 for r in by_observation if r["submitted"])
    return {
        "needLessonPlan": year in (2, 3),
        "stats": {
            "total": total,
            "submitted": submitted,
            "pending": total - submitted,
            "submissionRate": round(submitted / total * 100) if total else 0,
            "byObservation": by_observation,
        },
    }
