import json
from io import BytesIO

from flask import Response, current_app, request
from flask_login import login_required, current_user
from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import grading_bp
from .services import attach_trends, compute_final_score, subject_averages, weight_warning
from .. import db, csrf_required
from ..api_utils import api_success, api_error, request_payload, parse_text
from ..decorators import role_required
from ..errors import InvalidInputError
from ..models import Subject, ScoreEntry, ComputedGrade, utc_now
from ..schedule.services import to_calendar_date


def _active_subject(subject_id):
    try:
        subject_id = int(subject_id)
    except (TypeError, ValueError):
        raise InvalidInputError("'subject_id' must be an integer.")
    subject = db.session.get(Subject, subject_id)
    if not subject or not subject.is_active:
        return None
    return subject


def _parse_scores(payload):
    """Category id -> raw score. Blank values count as not entered."""
    raw = payload.get("scores")
    if raw is None:
        # Form posts send one field per category: score_<category_id>
        raw = {k[len("score_"):]: v for k, v in payload.items() if k.startswith("score_")}
    if not isinstance(raw, dict):
        raise InvalidInputError("'scores' must map category ids to scores.")

    scores = {}
    for key, value in raw.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        try:
            category_id = int(key)
        except (TypeError, ValueError):
            raise InvalidInputError(f"'{key}' is not a category id.")
        if isinstance(value, bool):
            raise InvalidInputError(f"Score for category {category_id} must be a number.")
        try:
            scores[category_id] = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Score for category {category_id} must be a number.")
    return scores


def _compute_for_subject(subject, scores):
    categories = subject.active_categories
    warning = weight_warning(categories)
    if warning:
        current_app.logger.warning("Subject %s: %s", subject.subject_id, warning)
    return compute_final_score(categories, scores), warning


@grading_bp.route("/subjects", methods=["GET"])
@login_required
def list_subjects():
    subjects = db.session.execute(
        select(Subject).filter(Subject.is_active == True).order_by(Subject.name)  # noqa: E712
    ).scalars().all()
    return api_success([s.to_dict() for s in subjects])


@grading_bp.route("/subjects/<int:subject_id>/categories", methods=["GET"])
@login_required
def list_categories(subject_id):
    subject = _active_subject(subject_id)
    if not subject:
        return api_error("not_found", "Subject not found.", 404)
    categories = subject.active_categories
    return api_success(
        [c.to_dict() for c in categories],
        meta={"weight_warning": weight_warning(categories)},
    )


@grading_bp.route("/scores", methods=["GET"])
@login_required
@role_required("student")
def my_scores():
    """Current per-category entries, used to prefill the score form."""
    q = select(ScoreEntry).filter_by(student_id_fk=current_user.user_id)
    subject_id = request.args.get("subject_id", type=int)
    if subject_id:
        q = q.filter_by(subject_id_fk=subject_id)
    entries = db.session.execute(q.order_by(ScoreEntry.subject_id_fk, ScoreEntry.category_id_fk)).scalars().all()
    return api_success([e.to_dict() for e in entries])


@grading_bp.route("/compute", methods=["POST"])
@login_required
@csrf_required
def compute():
    """Preview a final score. Nothing is written."""
    payload = request_payload()
    subject = _active_subject(payload.get("subject_id"))
    if not subject:
        return api_error("not_found", "Subject not found.", 404)

    result, warning = _compute_for_subject(subject, _parse_scores(payload))
    return api_success(result.to_dict(), meta={"weight_warning": warning})


@grading_bp.route("/save", methods=["POST"])
@login_required
@role_required("student")
@csrf_required
def save():
    """
    Save the student's category scores and append a computed grade snapshot.
    Saving is only allowed once every weighted category has a score.
    """
    payload = request_payload()
    subject = _active_subject(payload.get("subject_id"))
    if not subject:
        return api_error("not_found", "Subject not found.", 404)

    exam_type = parse_text(payload, "exam_type")
    exam_date_raw = payload.get("exam_date")
    exam_date = to_calendar_date(exam_date_raw) if exam_date_raw else None
    notes = parse_text(payload, "notes", required=False)

    scores = _parse_scores(payload)
    result, warning = _compute_for_subject(subject, scores)
    if not result.complete:
        body = result.to_dict()
        return api_error(
            "incomplete",
            f"Scores missing for categories: {', '.join(str(i) for i in body['missing_category_ids'])}",
            409,
        )

    inserts = 0
    updates = 0
    try:
        for category_id, score in scores.items():
            entry = db.session.execute(
                select(ScoreEntry).filter_by(
                    student_id_fk=current_user.user_id,
                    subject_id_fk=subject.subject_id,
                    category_id_fk=category_id,
                )
            ).scalars().first()

            if not entry:
                entry = ScoreEntry(
                    student_id_fk=current_user.user_id,
                    subject_id_fk=subject.subject_id,
                    category_id_fk=category_id,
                )
                db.session.add(entry)
                inserts += 1
            else:
                updates += 1

            entry.score = score
            entry.exam_date = exam_date
            entry.notes = notes
            entry.updated_at = utc_now()

        grade = ComputedGrade(
            student_id_fk=current_user.user_id,
            subject_id_fk=subject.subject_id,
            exam_type=exam_type,
            final_score=result.value,
            written_score=result.subtotal("written"),
            performance_score=result.subtotal("performance"),
            component_scores_json=json.dumps([c.to_dict() for c in result.components]),
            exam_date=exam_date,
        )
        db.session.add(grade)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to save grades for user %s", current_user.user_id)
        return api_error("storage_error", "Could not save grades.", 500)

    current_app.logger.info(
        "Saved %s grade for user %s subject %s (%d new, %d updated entries)",
        exam_type, current_user.user_id, subject.subject_id, inserts, updates,
    )
    return api_success(grade.to_dict(), meta={"weight_warning": warning}, status=201)


def _history_query():
    q = select(ComputedGrade).filter_by(student_id_fk=current_user.user_id)
    subject_id = request.args.get("subject_id", type=int)
    if subject_id:
        q = q.filter_by(subject_id_fk=subject_id)
    return q.order_by(ComputedGrade.created_at, ComputedGrade.grade_id)


@grading_bp.route("/history", methods=["GET"])
@login_required
@role_required("student")
def history():
    grades = db.session.execute(_history_query()).scalars().all()
    items = []
    for grade, trend in attach_trends(grades):
        data = grade.to_dict()
        data["trend"] = trend
        items.append(data)
    items.reverse()  # newest first
    return api_success(items, meta={"averages": subject_averages(grades)})


@grading_bp.route("/history/export", methods=["GET"])
@login_required
@role_required("student")
def export_history():
    grades = db.session.execute(_history_query()).scalars().all()

    wb = Workbook()
    ws = wb.active
    ws.title = "Grades"
    ws.append(["Subject", "Exam Type", "Final Score", "Written", "Performance", "Exam Date", "Saved At", "Trend"])
    for grade, trend in attach_trends(grades):
        data = grade.to_dict()
        ws.append([
            data["subject"],
            data["exam_type"],
            data["final_score"],
            data["written_score"],
            data["performance_score"],
            data["exam_date"],
            data["created_at"],
            trend or "",
        ])

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    filename = f"grades_{current_user.username}.xlsx"
    return Response(bio.read(), mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", headers={
        "Content-Disposition": f"attachment; filename={filename}"
    })
