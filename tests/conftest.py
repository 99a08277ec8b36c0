import pytest

from tracker_app import create_app, db
from tracker_app.models import User, Subject, EvaluationCategory
from werkzeug.security import generate_password_hash


@pytest.fixture()
def app(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("CSRF_ENABLED", "false")
    monkeypatch.setenv("RATELIMIT_ENABLED", "false")
    monkeypatch.delenv("REDIS_URL", raising=False)
    app = create_app()
    app.config["TESTING"] = True
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    def _make_user(username, role="student", grade=None, password="secret", is_active=True):
        with app.app_context():
            u = User(
                username=username,
                name=username.title(),
                password_hash=generate_password_hash(password),
                role=role,
                grade=grade,
                is_active=is_active,
            )
            db.session.add(u)
            db.session.commit()
            return u.user_id
    return _make_user


def login(client, username, password="secret"):
    return client.post("/login", json={"username": username, "password": password})


@pytest.fixture()
def admin_client(app, make_user):
    make_user("admin", role="admin")
    c = app.test_client()
    res = login(c, "admin")
    assert res.status_code == 200
    return c


@pytest.fixture()
def student_client(app, make_user):
    make_user("student", role="student", grade="Grade 1")
    c = app.test_client()
    res = login(c, "student")
    assert res.status_code == 200
    return c


@pytest.fixture()
def math_subject(app):
    """Mathematics with a 60% written exam and a 40% performance task, both out of 100."""
    with app.app_context():
        subject = Subject(name="Mathematics")
        db.session.add(subject)
        db.session.flush()
        written = EvaluationCategory(
            subject_id_fk=subject.subject_id, name="Written exam", kind="written", weight=60, max_score=100
        )
        performance = EvaluationCategory(
            subject_id_fk=subject.subject_id, name="Problem sets", kind="performance", weight=40, max_score=100
        )
        db.session.add_all([written, performance])
        db.session.commit()
        return {
            "subject_id": subject.subject_id,
            "written_id": written.category_id,
            "performance_id": performance.category_id,
        }
