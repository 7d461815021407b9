"""Classroom-observation rubric — 26 questions rated 1-5 in 5 fixed groups.

Pure functions only; the report and student-summary services build on these.
"""

from typing import Iterable, Mapping, Optional

QUESTION_KEYS = [f"q{i}" for i in range(1, 27)]
MIN_SCORE = 1
MAX_SCORE = 5

CATEGORY_QUESTIONS = {
    "teacherVerbal": ["q1", "q2", "q3", "q4"],
    "teacherNonVerbal": ["q5", "q6", "q7", "q8", "q9"],
    "studentAcademic": ["q10", "q11", "q12", "q13", "q14", "q15"],
    "studentWork": ["q16", "q17", "q18"],
    "environment": ["q19", "q20", "q21", "q22", "q23", "q24", "q25", "q26"],
}

CATEGORY_LABELS = {
    "teacherVerbal": "Teacher - Verbal Behaviors",
    "teacherNonVerbal": "Teacher - Non-Verbal Behavior",
    "studentAcademic": "Students - Academic Behavior",
    "studentWork": "Students - Work Behavior",
    "environment": "Learning Environment - Classroom Physical Conditions",
}

EXCELLENT_THRESHOLD = 4.5
NEEDS_IMPROVEMENT_THRESHOLD = 3.5


def to_number(raw) -> Optional[float]:
    """Numeric value of a stored answer, or None for blanks and junk."""
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def group_averages(answer_sets: Iterable[Mapping]) -> dict:
    """Per-category mean over every numeric answer in every given answer set.

    This is the mean of all matching values pooled together, not a mean of
    per-attempt means. A category with no numeric answers averages 0.
    """
    sums = {key: 0.0 for key in CATEGORY_QUESTIONS}
    counts = {key: 0 for key in CATEGORY_QUESTIONS}
    for answers in answer_sets:
        answers = answers or {}
        for key, questions in CATEGORY_QUESTIONS.items():
            for q in questions:
                value = to_number(answers.get(q))
                if value is None:
                    continue
                sums[key] += value
                counts[key] += 1
    return {key: (sums[key] / counts[key] if counts[key] else 0.0) for key in CATEGORY_QUESTIONS}


def mean_of_positive(values: Iterable[float]) -> float:
    """Mean of the values greater than zero; zero when there are none."""
    valid = [v for v in values if v is not None and v > 0]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


def fmt2(value: float) -> str:
    return f"{value:.2f}"


def attempt_scores(answers: Mapping) -> dict:
    """Category scores and overall average for a single attempt, rounded to 2 places."""
    category_scores = {k: round(v, 2) for k, v in group_averages([answers]).items()}
    return {
        "categoryScores": category_scores,
        "overallAverage": round(mean_of_positive(category_scores.values()), 2),
    }


def answers_mean(answers: Mapping) -> float:
    """Mean of the answers that fall inside the 1..5 scale."""
    values = []
    for raw in (answers or {}).values():
        value = to_number(raw)
        if value is not None and MIN_SCORE <= value <= MAX_SCORE:
            values.append(value)
    if not values:
        return 0.0
    return sum(values) / len(values)


def grade_text(score: float) -> str:
    if score >= 4.5:
        return "excellent"
    if score >= 3.5:
        return "good"
    if score >= 2.5:
        return "fair"
    if score >= 1.5:
        return "needs improvement"
    return "needs significant improvement"


def distribution_bucket(score: float) -> str:
    if score >= 4.5:
        return "excellent"
    if score >= 3.5:
        return "good"
    if score >= 2.5:
        return "fair"
    return "needsImprovement"


def validate_answers(answers) -> Optional[str]:
    """Return an error message when ``answers`` is not a q1..q26 map of 1..5 integers."""
    if not isinstance(answers, Mapping) or not answers:
        return "Evaluation answers are required"
    unknown = [k for k in answers if k not in QUESTION_KEYS]
    if unknown:
        return f"Unknown question keys: {', '.join(sorted(unknown))}"
    missing = [k for k in QUESTION_KEYS if k not in answers]
    if missing:
        return f"Missing answers for: {', '.join(missing)}"
    for key in QUESTION_KEYS:
        value = answers[key]
        if isinstance(value, bool):
            return f"Answer {key} must be an integer between {MIN_SCORE} and {MAX_SCORE}"
        if isinstance(value, str):
            text = value.strip()
            if not (text.isascii() and text.isdigit()):
                return f"Answer {key} must be an integer between {MIN_SCORE} and {MAX_SCORE}"
            value = int(text)
        if not isinstance(value, int) or not MIN_SCORE <= value <= MAX_SCORE:
            return f"Answer {key} must be an integer between {MIN_SCORE} and {MAX_SCORE}"
    return None


def normalize_answers(answers: Mapping) -> dict:
    """Coerce validated answers to ``{q1: int, ..., q26: int}``."""
    return {key: int(answers[key]) for key in QUESTION_KEYS}
