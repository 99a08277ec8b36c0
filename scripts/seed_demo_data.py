import sys
import os
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.getcwd())

from tracker_app import create_app, db
from tracker_app.models import (
    User, Subject, EvaluationCategory, ExamSchedule, AssignmentSchedule, ALL_COHORTS
)
from tracker_app.schedule.services import utc_today
from werkzeug.security import generate_password_hash

SUBJECTS = {
    "Korean": [
        ("Midterm exam", "written", 30, 100),
        ("Final exam", "written", 30, 100),
        ("Book report", "performance", 20, 50),
        ("Presentation", "performance", 20, 20),
    ],
    "Mathematics": [
        ("Written exam", "written", 60, 100),
        ("Problem sets", "performance", 40, 100),
    ],
    "English": [
        ("Written exam", "written", 70, 100),
        ("Speaking test", "performance", 30, 30),
    ],
}


def _ensure_user(username, password, role, name, grade=None):
    user = User.query.filter_by(username=username).first()
    if user:
        print(f"User {username} already exists")
        return user
    user = User(
        username=username,
        password_hash=generate_password_hash(password),
        role=role,
        name=name,
        grade=grade,
    )
    db.session.add(user)
    db.session.flush()
    print(f"Created {role} {username}")
    return user


def seed_demo_data():
    app = create_app()
    with app.app_context():
        print("--- Seeding demo data ---")
        admin = _ensure_user("admin", "admin", "admin", "Administrator")
        _ensure_user("student", "student", "student", "Demo Student", grade="Grade 1")

        for subject_name, categories in SUBJECTS.items():
            subject = Subject.query.filter_by(name=subject_name).first()
            if subject:
                print(f"Subject {subject_name} already exists, skipping")
                continue
            subject = Subject(name=subject_name, created_by_fk=admin.user_id)
            db.session.add(subject)
            db.session.flush()
            for name, kind, weight, max_score in categories:
                db.session.add(EvaluationCategory(
                    subject_id_fk=subject.subject_id,
                    name=name,
                    kind=kind,
                    weight=weight,
                    max_score=max_score,
                    created_by_fk=admin.user_id,
                ))
            print(f"Created subject {subject_name} with {len(categories)} categories")

        if not ExamSchedule.query.first():
            today = utc_today()
            db.session.add_all([
                ExamSchedule(subject="Korean", exam_type="Final", exam_date=today + timedelta(days=5),
                             grade=ALL_COHORTS, created_by_fk=admin.user_id),
                ExamSchedule(subject="Mathematics", exam_type="Final", exam_date=today + timedelta(days=12),
                             grade="Grade 1", created_by_fk=admin.user_id),
                AssignmentSchedule(subject="English", assignment_name="Essay", assignment_type="Report",
                                   due_date=today + timedelta(days=2), grade=ALL_COHORTS,
                                   max_score=100, created_by_fk=admin.user_id),
            ])
            print("Created sample schedules")

        db.session.commit()
        print("Done.")


if __name__ == "__main__":
    seed_demo_data()
