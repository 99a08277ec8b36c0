import json
from datetime import datetime, timezone
from . import db

def utc_now():
    return datetime.now(timezone.utc)

from flask_login import UserMixin

ALL_COHORTS = "all"
CATEGORY_KINDS = ("written", "performance")
DEFAULT_MAX_SCORE = 100.0


def _iso(value):
    return value.isoformat() if value is not None else None


# ==========================================
# ACCOUNTS
# ==========================================

class User(UserMixin, db.Model):
    __tablename__ = "users"
    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(128), unique=True, nullable=False)
    name = db.Column(db.String(128))
    email = db.Column(db.String(128))
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(32), default="student")  # admin, student
    # Cohort tag for students, e.g. "Grade 1". Schedules target a cohort or "all".
    grade = db.Column(db.String(32))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    def get_id(self):
        return str(self.user_id)

    @property
    def is_admin(self):
        return (self.role or "").strip().lower() == "admin"

    def to_dict(self):
        return {
            "id": self.user_id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "grade": self.grade,
        }


# ==========================================
# GRADING CONFIGURATION
# ==========================================

class Subject(db.Model):
    __tablename__ = "subjects"
    subject_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), unique=True, nullable=False)
    description = db.Column(db.Text)
    # Soft delete only: categories and grade records keep pointing here.
    is_active = db.Column(db.Boolean, default=True)
    created_by_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    categories = db.relationship("EvaluationCategory", backref="subject", lazy=True)

    @property
    def active_categories(self):
        return sorted(
            (c for c in self.categories if c.is_active),
            key=lambda c: (-(c.weight or 0), c.category_id or 0),
        )

    def to_dict(self):
        return {
            "id": self.subject_id,
            "name": self.name,
            "description": self.description,
            "is_active": bool(self.is_active),
        }


class EvaluationCategory(db.Model):
    __tablename__ = "evaluation_categories"
    category_id = db.Column(db.Integer, primary_key=True)
    subject_id_fk = db.Column(db.Integer, db.ForeignKey("subjects.subject_id"), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default="written")  # written, performance
    weight = db.Column(db.Float, nullable=False, default=0.0)  # percentage points
    max_score = db.Column(db.Float)  # NULL means 100
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)
    created_by_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    @property
    def effective_max_score(self):
        if self.max_score is None or self.max_score <= 0:
            return DEFAULT_MAX_SCORE
        return float(self.max_score)

    def to_dict(self):
        return {
            "id": self.category_id,
            "subject_id": self.subject_id_fk,
            "name": self.name,
            "kind": self.kind,
            "weight": self.weight,
            "max_score": self.effective_max_score,
            "description": self.description,
            "is_active": bool(self.is_active),
        }


# ==========================================
# STUDENT RECORDS
# ==========================================

class ScoreEntry(db.Model):
    __tablename__ = "score_entries"
    entry_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    subject_id_fk = db.Column(db.Integer, db.ForeignKey("subjects.subject_id"), nullable=False)
    category_id_fk = db.Column(db.Integer, db.ForeignKey("evaluation_categories.category_id"), nullable=False)
    score = db.Column(db.Float, nullable=False)
    exam_date = db.Column(db.Date)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "subject_id_fk", "category_id_fk", name="uq_score_entry_student_subject_category"),
    )

    def to_dict(self):
        return {
            "id": self.entry_id,
            "student_id": self.student_id_fk,
            "subject_id": self.subject_id_fk,
            "category_id": self.category_id_fk,
            "score": self.score,
            "exam_date": _iso(self.exam_date),
            "notes": self.notes,
        }


class ComputedGrade(db.Model):
    """Append-only snapshot of a computed final score."""
    __tablename__ = "computed_grades"
    grade_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    subject_id_fk = db.Column(db.Integer, db.ForeignKey("subjects.subject_id"), nullable=False)
    exam_type = db.Column(db.String(64), nullable=False)
    final_score = db.Column(db.Float, nullable=False)
    written_score = db.Column(db.Float)
    performance_score = db.Column(db.Float)
    component_scores_json = db.Column(db.Text)
    exam_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=utc_now)

    subject = db.relationship("Subject", lazy=True)

    @property
    def component_scores(self):
        if not self.component_scores_json:
            return []
        return json.loads(self.component_scores_json)

    def to_dict(self):
        return {
            "id": self.grade_id,
            "student_id": self.student_id_fk,
            "subject_id": self.subject_id_fk,
            "subject": self.subject.name if self.subject else None,
            "exam_type": self.exam_type,
            "final_score": round(self.final_score, 2),
            "written_score": round(self.written_score, 2) if self.written_score is not None else None,
            "performance_score": round(self.performance_score, 2) if self.performance_score is not None else None,
            "component_scores": self.component_scores,
            "exam_date": _iso(self.exam_date),
            "created_at": _iso(self.created_at),
        }


class StudyPlan(db.Model):
    __tablename__ = "study_plans"
    plan_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    subject = db.Column(db.String(128), nullable=False)
    current_score = db.Column(db.Float, nullable=False)
    target_score = db.Column(db.Float, nullable=False)
    time_frame_weeks = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(db.String(16), nullable=False)
    total_study_hours = db.Column(db.Integer, nullable=False)
    weekly_hours = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {
            "id": self.plan_id,
            "student_id": self.student_id_fk,
            "subject": self.subject,
            "current_score": self.current_score,
            "target_score": self.target_score,
            "time_frame_weeks": self.time_frame_weeks,
            "difficulty": self.difficulty,
            "total_study_hours": self.total_study_hours,
            "weekly_hours": self.weekly_hours,
            "created_at": _iso(self.created_at),
        }


# ==========================================
# CALENDARS
# ==========================================

class ExamSchedule(db.Model):
    __tablename__ = "exam_schedules"
    exam_id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(128), nullable=False)
    exam_type = db.Column(db.String(64), nullable=False)  # midterm, final, mock ...
    exam_date = db.Column(db.Date, nullable=False)
    grade = db.Column(db.String(32), nullable=False, default=ALL_COHORTS)
    description = db.Column(db.Text)
    created_by_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    @property
    def target_date(self):
        return self.exam_date

    def to_dict(self):
        return {
            "id": self.exam_id,
            "subject": self.subject,
            "type": self.exam_type,
            "date": _iso(self.exam_date),
            "grade": self.grade,
            "description": self.description,
        }


class AssignmentSchedule(db.Model):
    __tablename__ = "assignment_schedules"
    assignment_id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(128), nullable=False)
    assignment_name = db.Column(db.String(128), nullable=False)
    assignment_type = db.Column(db.String(64), nullable=False)  # report, presentation ...
    due_date = db.Column(db.Date, nullable=False)
    grade = db.Column(db.String(32), nullable=False, default=ALL_COHORTS)
    description = db.Column(db.Text)
    max_score = db.Column(db.Float, default=DEFAULT_MAX_SCORE)
    created_by_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    @property
    def target_date(self):
        return self.due_date

    def to_dict(self):
        return {
            "id": self.assignment_id,
            "subject": self.subject,
            "name": self.assignment_name,
            "type": self.assignment_type,
            "date": _iso(self.due_date),
            "grade": self.grade,
            "description": self.description,
            "max_score": self.max_score,
        }
