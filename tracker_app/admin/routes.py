from flask import current_app
from flask_login import login_required, current_user
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import admin_bp
from .. import db, cache, csrf_required
from ..api_utils import api_success, api_error, request_payload, parse_float, parse_text
from ..decorators import role_required
from ..errors import InvalidInputError
from ..models import (
    Subject, EvaluationCategory, ExamSchedule, AssignmentSchedule,
    CATEGORY_KINDS, DEFAULT_MAX_SCORE,
)
from ..grading.services import weight_total, weight_warning
from ..schedule.services import utc_today

STATS_CACHE_KEY = "admin_stats"


def collect_stats():
    """Counts shown on the admin dashboard, cached until the next admin write."""
    stats = cache.get(STATS_CACHE_KEY)
    if stats is not None:
        return stats
    today = utc_today()

    def _count(stmt):
        return db.session.execute(stmt).scalar() or 0

    stats = {
        "total_exams": _count(select(func.count(ExamSchedule.exam_id))),
        "total_assignments": _count(select(func.count(AssignmentSchedule.assignment_id))),
        "upcoming_exams": _count(
            select(func.count(ExamSchedule.exam_id)).filter(ExamSchedule.exam_date >= today)
        ),
        "upcoming_assignments": _count(
            select(func.count(AssignmentSchedule.assignment_id)).filter(AssignmentSchedule.due_date >= today)
        ),
        "total_subjects": _count(
            select(func.count(Subject.subject_id)).filter(Subject.is_active == True)  # noqa: E712
        ),
        "total_categories": _count(
            select(func.count(EvaluationCategory.category_id)).filter(EvaluationCategory.is_active == True)  # noqa: E712
        ),
    }
    cache.set(STATS_CACHE_KEY, stats)
    return stats


def invalidate_stats():
    cache.delete(STATS_CACHE_KEY)


def _commit(action):
    """Commit the session; on failure roll back and return an error response."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return api_error("duplicate", "A record with the same name already exists.", 409)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        return api_error("storage_error", f"Could not {action}.", 500)
    invalidate_stats()
    return None


def _subject_summary(subject):
    active = subject.active_categories
    data = subject.to_dict()
    data["weight_total"] = weight_total(active)
    data["weight_warning"] = weight_warning(active)
    return data


# --- SUBJECTS ---

@admin_bp.route("/stats", methods=["GET"])
@login_required
@role_required("admin")
def stats():
    return api_success(collect_stats())


@admin_bp.route("/subjects", methods=["GET"])
@login_required
@role_required("admin")
def list_subjects():
    subjects = db.session.execute(select(Subject).order_by(Subject.name)).scalars().all()
    return api_success([_subject_summary(s) for s in subjects])


@admin_bp.route("/subjects", methods=["POST"])
@login_required
@role_required("admin")
@csrf_required
def create_subject():
    payload = request_payload()
    subject = Subject(
        name=parse_text(payload, "name"),
        description=parse_text(payload, "description", required=False),
        created_by_fk=current_user.user_id,
    )
    db.session.add(subject)
    failed = _commit("add subject")
    if failed:
        return failed
    current_app.logger.info("Subject %s created by %s", subject.name, current_user.username)
    return api_success(_subject_summary(subject), status=201)


@admin_bp.route("/subjects/<int:subject_id>", methods=["PUT"])
@login_required
@role_required("admin")
@csrf_required
def update_subject(subject_id):
    subject = db.session.get(Subject, subject_id)
    if not subject:
        return api_error("not_found", "Subject not found.", 404)

    payload = request_payload()
    subject.name = parse_text(payload, "name")
    subject.description = parse_text(payload, "description", required=False)
    failed = _commit("update subject")
    if failed:
        return failed
    current_app.logger.info("Subject %s updated by %s", subject.subject_id, current_user.username)
    return api_success(_subject_summary(subject))


@admin_bp.route("/subjects/<int:subject_id>", methods=["DELETE"])
@login_required
@role_required("admin")
@csrf_required
def delete_subject(subject_id):
    """Soft delete; categories and grade history keep their references."""
    subject = db.session.get(Subject, subject_id)
    if not subject:
        return api_error("not_found", "Subject not found.", 404)

    subject.is_active = False
    failed = _commit("delete subject")
    if failed:
        return failed
    current_app.logger.info("Subject %s deactivated by %s", subject.subject_id, current_user.username)
    return api_success(subject.to_dict())


# --- EVALUATION CATEGORIES ---

def _apply_category_fields(category, payload):
    kind = parse_text(payload, "kind", required=False) or "written"
    if kind not in CATEGORY_KINDS:
        raise InvalidInputError(f"'kind' must be one of: {', '.join(CATEGORY_KINDS)}.")
    weight = parse_float(payload, "weight")
    if not (0 <= weight <= 100):
        raise InvalidInputError("'weight' must be between 0 and 100.")
    max_score = parse_float(payload, "max_score", required=False, default=DEFAULT_MAX_SCORE)
    if max_score <= 0:
        raise InvalidInputError("'max_score' must be greater than 0.")

    category.name = parse_text(payload, "name")
    category.kind = kind
    category.weight = weight
    category.max_score = max_score
    category.description = parse_text(payload, "description", required=False)


@admin_bp.route("/subjects/<int:subject_id>/categories", methods=["GET"])
@login_required
@role_required("admin")
def list_categories(subject_id):
    subject = db.session.get(Subject, subject_id)
    if not subject:
        return api_error("not_found", "Subject not found.", 404)

    categories = sorted(subject.categories, key=lambda c: (not c.is_active, -(c.weight or 0), c.category_id))
    summary = _subject_summary(subject)
    return api_success(
        [c.to_dict() for c in categories],
        meta={"weight_total": summary["weight_total"], "weight_warning": summary["weight_warning"]},
    )


@admin_bp.route("/categories", methods=["POST"])
@login_required
@role_required("admin")
@csrf_required
def create_category():
    payload = request_payload()
    subject_id = payload.get("subject_id")
    subject = db.session.get(Subject, int(subject_id)) if str(subject_id or "").isdigit() else None
    if not subject or not subject.is_active:
        return api_error("not_found", "Subject not found.", 404)

    category = EvaluationCategory(subject_id_fk=subject.subject_id, created_by_fk=current_user.user_id)
    _apply_category_fields(category, payload)
    db.session.add(category)
    failed = _commit("add evaluation category")
    if failed:
        return failed

    warning = weight_warning(subject.active_categories)
    current_app.logger.info(
        "Category %s added to subject %s by %s", category.name, subject.subject_id, current_user.username
    )
    return api_success(category.to_dict(), meta={"weight_warning": warning}, status=201)


@admin_bp.route("/categories/<int:category_id>", methods=["PUT"])
@login_required
@role_required("admin")
@csrf_required
def update_category(category_id):
    category = db.session.get(EvaluationCategory, category_id)
    if not category:
        return api_error("not_found", "Evaluation category not found.", 404)

    _apply_category_fields(category, request_payload())
    failed = _commit("update evaluation category")
    if failed:
        return failed

    warning = weight_warning(category.subject.active_categories)
    current_app.logger.info("Category %s updated by %s", category.category_id, current_user.username)
    return api_success(category.to_dict(), meta={"weight_warning": warning})


@admin_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@login_required
@role_required("admin")
@csrf_required
def delete_category(category_id):
    category = db.session.get(EvaluationCategory, category_id)
    if not category:
        return api_error("not_found", "Evaluation category not found.", 404)

    category.is_active = False
    failed = _commit("delete evaluation category")
    if failed:
        return failed

    warning = weight_warning(category.subject.active_categories)
    current_app.logger.info("Category %s deactivated by %s", category.category_id, current_user.username)
    return api_success(category.to_dict(), meta={"weight_warning": warning})
