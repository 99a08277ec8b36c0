from flask import current_app
from flask_login import login_required, current_user
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import planner_bp
from .services import estimate, current_score_for
from .. import db, csrf_required
from ..api_utils import api_success, api_error, request_payload, parse_float, parse_int, parse_text
from ..decorators import role_required
from ..errors import InvalidInputError
from ..models import ComputedGrade, ExamSchedule, StudyPlan, Subject
from ..schedule.services import EXAM, annotate, sort_by_date, utc_today, visible_to_cohort

UPCOMING_EXAM_LIMIT = 5


def _latest_score(subject_name):
    grades = db.session.execute(
        select(ComputedGrade)
        .join(Subject, Subject.subject_id == ComputedGrade.subject_id_fk)
        .filter(ComputedGrade.student_id_fk == current_user.user_id, Subject.name == subject_name)
    ).scalars().all()
    return current_score_for(grades)


def _estimate_from_request():
    payload = request_payload()
    subject = parse_text(payload, "subject")
    current_score = parse_float(payload, "current_score", required=False)
    if current_score is None:
        current_score = _latest_score(subject)
        if current_score is None:
            raise InvalidInputError(f"No saved grade for {subject}; 'current_score' is required.")
    target_score = parse_float(payload, "target_score")
    weeks = parse_int(payload, "weeks")
    return estimate(subject, current_score, target_score, weeks)


@planner_bp.route("/estimate", methods=["POST"])
@login_required
@role_required("student")
@csrf_required
def preview():
    return api_success(_estimate_from_request().to_dict())


@planner_bp.route("/plans", methods=["POST"])
@login_required
@role_required("student")
@csrf_required
def create_plan():
    result = _estimate_from_request()
    plan = StudyPlan(
        student_id_fk=current_user.user_id,
        subject=result.subject,
        current_score=result.current_score,
        target_score=result.target_score,
        time_frame_weeks=result.weeks,
        difficulty=result.difficulty,
        total_study_hours=result.total_hours,
        weekly_hours=result.weekly_hours,
    )
    db.session.add(plan)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to save study plan for user %s", current_user.user_id)
        return api_error("storage_error", "Could not save the study plan.", 500)

    data = plan.to_dict()
    data["estimate"] = result.to_dict()
    return api_success(data, status=201)


@planner_bp.route("/plans", methods=["GET"])
@login_required
@role_required("student")
def list_plans():
    plans = db.session.execute(
        select(StudyPlan)
        .filter_by(student_id_fk=current_user.user_id)
        .order_by(StudyPlan.created_at.desc(), StudyPlan.plan_id.desc())
    ).scalars().all()
    return api_success([p.to_dict() for p in plans])


@planner_bp.route("/upcoming-exams", methods=["GET"])
@login_required
def upcoming_exams():
    today = utc_today()
    exams = db.session.execute(
        select(ExamSchedule).filter(ExamSchedule.exam_date >= today)
    ).scalars().all()
    if not current_user.is_admin:
        exams = visible_to_cohort(exams, current_user.grade)
    exams = sort_by_date(exams)[:UPCOMING_EXAM_LIMIT]
    return api_success([annotate(e, EXAM, today) for e in exams])
