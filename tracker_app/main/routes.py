from flask import Blueprint, current_app, session
from flask_login import login_required, login_user, logout_user, current_user
from sqlalchemy import select
from werkzeug.security import check_password_hash

from .. import db, limiter, csrf_required, issue_csrf_token
from ..api_utils import api_success, api_error, request_payload, parse_text
from ..models import User, ComputedGrade, ExamSchedule, AssignmentSchedule
from ..grading.services import format_score
from ..schedule.services import (
    EXAM, annotate, sort_by_date, urgent_items, utc_today, visible_to_cohort,
)

main_bp = Blueprint("main", __name__)


def _login_limit():
    return current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute")


@main_bp.route("/", methods=["GET"])
def index():
    return api_success({"service": "studytracker", "status": "ok"})


@main_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return api_success({"csrf_token": issue_csrf_token()})


@main_bp.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
@csrf_required
def login():
    payload = request_payload()
    username = parse_text(payload, "username")
    password = payload.get("password") or ""

    user = db.session.execute(select(User).filter_by(username=username)).scalars().first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
        current_app.logger.info("Failed login for %s", username)
        return api_error("invalid_credentials", "Invalid username or password.", 401)
    if not user.is_active:
        return api_error("inactive", "This account is disabled.", 403)

    login_user(user)
    session.permanent = True
    return api_success({"user": user.to_dict(), "csrf_token": issue_csrf_token()})


@main_bp.route("/logout", methods=["POST"])
@login_required
@csrf_required
def logout():
    logout_user()
    session.pop("csrf_token", None)
    session.pop("csrf_token_issued_at", None)
    return api_success()


@main_bp.route("/me", methods=["GET"])
@login_required
def me():
    return api_success({"user": current_user.to_dict()})


@main_bp.route("/dashboard", methods=["GET"])
@login_required
def dashboard():
    if current_user.is_admin:
        from ..admin.routes import collect_stats
        return api_success({"role": "admin", "stats": collect_stats()})

    today = utc_today()
    recent = db.session.execute(
        select(ComputedGrade)
        .filter_by(student_id_fk=current_user.user_id)
        .order_by(ComputedGrade.created_at.desc(), ComputedGrade.grade_id.desc())
        .limit(3)
    ).scalars().all()

    all_scores = db.session.execute(
        select(ComputedGrade.final_score).filter_by(student_id_fk=current_user.user_id)
    ).scalars().all()
    average = format_score(sum(all_scores) / len(all_scores)) if all_scores else None

    exams = db.session.execute(
        select(ExamSchedule).filter(ExamSchedule.exam_date >= today)
    ).scalars().all()
    assignments = db.session.execute(
        select(AssignmentSchedule).filter(AssignmentSchedule.due_date >= today)
    ).scalars().all()
    exams = sort_by_date(visible_to_cohort(exams, current_user.grade))
    assignments = visible_to_cohort(assignments, current_user.grade)

    upcoming = [annotate(e, EXAM, today) for e in exams[:3]]
    return api_success({
        "role": "student",
        "average_score": average,
        "recent_grades": [g.to_dict() for g in recent],
        "upcoming_exams": upcoming,
        "next_exam": upcoming[0] if upcoming else None,
        "alerts": urgent_items(exams, assignments, today),
    })
