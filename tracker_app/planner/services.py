"""
Study-plan heuristic: hours needed to close a score gap in a number of weeks.

Deterministic given its inputs; it is not a pedagogical model.
"""
import math
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import InvalidInputError, NonImprovingGoalError, NonPositiveTimeframeError

EASY = "easy"
MEDIUM = "medium"
HARD = "hard"

HOURS_PER_POINT = 2

SUBJECT_TACTICS = {
    "korean": [
        "Read for at least 30 minutes every day",
        "Practice analysing literary works",
        "Keep a vocabulary notebook",
        "Solve past exam papers and keep an error log",
    ],
    "mathematics": [
        "Summarise concepts and memorise key formulas",
        "Practice problems step by step, easy to hard",
        "Keep an error log and review it weekly",
        "Do timed mock exams to build speed",
    ],
    "english": [
        "Memorise 50 new words every day",
        "Practice reading comprehension passages",
        "Prepare for listening tests with daily drills",
        "Write short compositions and get them corrected",
    ],
}
SUBJECT_ALIASES = {
    "math": "mathematics",
    "maths": "mathematics",
    "korean language": "korean",
    "국어": "korean",
    "수학": "mathematics",
    "영어": "english",
}
GENERIC_TACTICS = [
    "Review the core concepts",
    "Practice with problem sets",
    "Keep an error log",
    "Take mock exams",
]
HARD_EXTRA_TACTICS = [
    "Consider private tutoring or an academy class",
    "Join a study group",
]


@dataclass
class StudyPlanEstimate:
    subject: str
    current_score: float
    target_score: float
    weeks: int
    score_delta: float
    difficulty: str
    total_hours: int
    weekly_hours: int
    weekly_improvement: float
    daily_hours: int
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "subject": self.subject,
            "current_score": self.current_score,
            "target_score": self.target_score,
            "time_frame_weeks": self.weeks,
            "score_delta": self.score_delta,
            "difficulty": self.difficulty,
            "total_study_hours": self.total_hours,
            "weekly_hours": self.weekly_hours,
            "daily_hours": self.daily_hours,
            "weekly_improvement": round(self.weekly_improvement, 1),
            "recommendations": list(self.recommendations),
        }


def difficulty_for(score_delta: float) -> str:
    if score_delta > 15:
        return HARD
    if score_delta > 8:
        return MEDIUM
    return EASY


def recommendations_for(subject: str, difficulty: str) -> List[str]:
    key = (subject or "").strip().casefold()
    key = SUBJECT_ALIASES.get(key, key)
    tactics = list(SUBJECT_TACTICS.get(key, GENERIC_TACTICS))
    if difficulty == HARD:
        tactics.extend(HARD_EXTRA_TACTICS)
    return tactics


def estimate(subject: str, current_score: float, target_score: float, weeks: int) -> StudyPlanEstimate:
    for name, value in (("current_score", current_score), ("target_score", target_score), ("weeks", weeks)):
        if not math.isfinite(value):
            raise InvalidInputError(f"'{name}' must be a finite number.")
    if target_score <= current_score:
        raise NonImprovingGoalError(current_score, target_score)
    if weeks <= 0:
        raise NonPositiveTimeframeError(weeks)

    score_delta = target_score - current_score
    difficulty = difficulty_for(score_delta)
    total_hours = math.ceil(score_delta * HOURS_PER_POINT)
    weekly_hours = math.ceil(total_hours / weeks)

    return StudyPlanEstimate(
        subject=subject,
        current_score=current_score,
        target_score=target_score,
        weeks=weeks,
        score_delta=score_delta,
        difficulty=difficulty,
        total_hours=total_hours,
        weekly_hours=weekly_hours,
        weekly_improvement=score_delta / weeks,
        daily_hours=math.ceil(weekly_hours / 7),
        recommendations=recommendations_for(subject, difficulty),
    )


def current_score_for(grades) -> Optional[float]:
    """Latest final score among the given snapshots, None when there are none."""
    latest = None
    for g in grades:
        if latest is None or (g.created_at, g.grade_id) > (latest.created_at, latest.grade_id):
            latest = g
    return latest.final_score if latest is not None else None
