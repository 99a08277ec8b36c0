from flask import current_app
from flask_login import login_required, current_user
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import schedule_bp
from .services import (
    EXAM, ASSIGNMENT, annotate, sort_by_date, to_calendar_date, urgent_items,
    utc_today, visible_to_cohort,
)
from .. import db, csrf_required
from ..api_utils import api_success, api_error, request_payload, parse_float, parse_text
from ..decorators import role_required
from ..errors import InvalidInputError
from ..models import ExamSchedule, AssignmentSchedule, ALL_COHORTS, DEFAULT_MAX_SCORE


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        return api_error("storage_error", f"Could not {action}.", 500)
    from ..admin.routes import invalidate_stats
    invalidate_stats()
    return None


def _visible_items(model, date_column):
    """Admins see the whole calendar; students see upcoming items for their cohort."""
    q = select(model)
    if current_user.is_admin:
        return db.session.execute(q).scalars().all()
    q = q.filter(date_column >= utc_today())
    items = db.session.execute(q).scalars().all()
    return visible_to_cohort(items, current_user.grade)


def _apply_exam_fields(exam, payload):
    exam.subject = parse_text(payload, "subject")
    exam.exam_type = parse_text(payload, "exam_type")
    exam.exam_date = to_calendar_date(parse_text(payload, "exam_date"))
    exam.grade = parse_text(payload, "grade", required=False) or ALL_COHORTS
    exam.description = parse_text(payload, "description", required=False)


def _apply_assignment_fields(assignment, payload):
    max_score = parse_float(payload, "max_score", required=False, default=DEFAULT_MAX_SCORE)
    if max_score <= 0:
        raise InvalidInputError("'max_score' must be greater than 0.")
    assignment.subject = parse_text(payload, "subject")
    assignment.assignment_name = parse_text(payload, "assignment_name")
    assignment.assignment_type = parse_text(payload, "assignment_type")
    assignment.due_date = to_calendar_date(parse_text(payload, "due_date"))
    assignment.grade = parse_text(payload, "grade", required=False) or ALL_COHORTS
    assignment.description = parse_text(payload, "description", required=False)
    assignment.max_score = max_score


# --- EXAMS ---

@schedule_bp.route("/exams", methods=["GET"])
@login_required
def list_exams():
    today = utc_today()
    exams = sort_by_date(_visible_items(ExamSchedule, ExamSchedule.exam_date))
    return api_success([annotate(e, EXAM, today) for e in exams])


@schedule_bp.route("/exams", methods=["POST"])
@login_required
@role_required("admin")
@csrf_required
def create_exam():
    exam = ExamSchedule(created_by_fk=current_user.user_id)
    _apply_exam_fields(exam, request_payload())
    db.session.add(exam)
    failed = _commit("add exam schedule")
    if failed:
        return failed
    current_app.logger.info("Exam %s %s scheduled for %s", exam.subject, exam.exam_type, exam.exam_date)
    return api_success(annotate(exam, EXAM, utc_today()), status=201)


@schedule_bp.route("/exams/<int:exam_id>", methods=["PUT"])
@login_required
@role_required("admin")
@csrf_required
def update_exam(exam_id):
    exam = db.session.get(ExamSchedule, exam_id)
    if not exam:
        return api_error("not_found", "Exam schedule not found.", 404)
    _apply_exam_fields(exam, request_payload())
    failed = _commit("update exam schedule")
    if failed:
        return failed
    current_app.logger.info("Exam schedule %s updated by %s", exam.exam_id, current_user.username)
    return api_success(annotate(exam, EXAM, utc_today()))


@schedule_bp.route("/exams/<int:exam_id>", methods=["DELETE"])
@login_required
@role_required("admin")
@csrf_required
def delete_exam(exam_id):
    exam = db.session.get(ExamSchedule, exam_id)
    if not exam:
        return api_error("not_found", "Exam schedule not found.", 404)
    db.session.delete(exam)
    failed = _commit("delete exam schedule")
    if failed:
        return failed
    current_app.logger.info("Exam schedule %s deleted by %s", exam_id, current_user.username)
    return api_success({"id": exam_id})


# --- ASSIGNMENTS ---

@schedule_bp.route("/assignments", methods=["GET"])
@login_required
def list_assignments():
    today = utc_today()
    assignments = sort_by_date(_visible_items(AssignmentSchedule, AssignmentSchedule.due_date))
    return api_success([annotate(a, ASSIGNMENT, today) for a in assignments])


@schedule_bp.route("/assignments", methods=["POST"])
@login_required
@role_required("admin")
@csrf_required
def create_assignment():
    assignment = AssignmentSchedule(created_by_fk=current_user.user_id)
    _apply_assignment_fields(assignment, request_payload())
    db.session.add(assignment)
    failed = _commit("add assignment schedule")
    if failed:
        return failed
    current_app.logger.info(
        "Assignment %s (%s) due %s", assignment.assignment_name, assignment.subject, assignment.due_date
    )
    return api_success(annotate(assignment, ASSIGNMENT, utc_today()), status=201)


@schedule_bp.route("/assignments/<int:assignment_id>", methods=["PUT"])
@login_required
@role_required("admin")
@csrf_required
def update_assignment(assignment_id):
    assignment = db.session.get(AssignmentSchedule, assignment_id)
    if not assignment:
        return api_error("not_found", "Assignment schedule not found.", 404)
    _apply_assignment_fields(assignment, request_payload())
    failed = _commit("update assignment schedule")
    if failed:
        return failed
    current_app.logger.info("Assignment schedule %s updated by %s", assignment.assignment_id, current_user.username)
    return api_success(annotate(assignment, ASSIGNMENT, utc_today()))


@schedule_bp.route("/assignments/<int:assignment_id>", methods=["DELETE"])
@login_required
@role_required("admin")
@csrf_required
def delete_assignment(assignment_id):
    assignment = db.session.get(AssignmentSchedule, assignment_id)
    if not assignment:
        return api_error("not_found", "Assignment schedule not found.", 404)
    db.session.delete(assignment)
    failed = _commit("delete assignment schedule")
    if failed:
        return failed
    current_app.logger.info("Assignment schedule %s deleted by %s", assignment_id, current_user.username)
    return api_success({"id": assignment_id})


# --- ALERTS ---

@schedule_bp.route("/alerts", methods=["GET"])
@login_required
def alerts():
    """Urgent exams and assignments, soonest first."""
    today = utc_today()
    exams = _visible_items(ExamSchedule, ExamSchedule.exam_date)
    assignments = _visible_items(AssignmentSchedule, AssignmentSchedule.due_date)
    if current_user.is_admin:
        exams = [e for e in exams if e.exam_date >= today]
        assignments = [a for a in assignments if a.due_date >= today]
    return api_success(urgent_items(exams, assignments, today))
