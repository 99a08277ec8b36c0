from datetime import timedelta

from tracker_app import create_app
from tracker_app.schedule.services import utc_today


def test_index(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "ok"


def test_login_logout(client, make_user):
    make_user("minji", grade="Grade 2")
    assert client.get("/me").status_code == 401

    res = client.post("/login", json={"username": "minji", "password": "secret"})
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["user"]["grade"] == "Grade 2"
    assert data["csrf_token"]

    assert client.get("/me").get_json()["data"]["user"]["username"] == "minji"
    assert client.post("/logout").status_code == 200
    assert client.get("/me").status_code == 401


def test_login_rejects_bad_credentials(client, make_user):
    make_user("minji")
    res = client.post("/login", json={"username": "minji", "password": "wrong"})
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "invalid_credentials"

    res = client.post("/login", data={"username": "nobody", "password": "secret"})
    assert res.status_code == 401


def test_inactive_user_cannot_login(client, make_user):
    make_user("former", is_active=False)
    res = client.post("/login", json={"username": "former", "password": "secret"})
    assert res.status_code == 403


def test_csrf_token_required_when_enabled(app, client, make_user):
    app.config["CSRF_ENABLED"] = True
    make_user("minji")

    res = client.post("/login", json={"username": "minji", "password": "secret"})
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "csrf_expired"

    token = client.get("/csrf-token").get_json()["data"]["csrf_token"]

    res = client.post("/login", json={"username": "minji", "password": "secret"})
    assert res.get_json()["error"]["code"] == "csrf_missing"

    res = client.post(
        "/login", json={"username": "minji", "password": "secret"}, headers={"X-CSRF-Token": "forged"}
    )
    assert res.get_json()["error"]["code"] == "csrf_invalid"

    res = client.post(
        "/login", json={"username": "minji", "password": "secret"}, headers={"X-CSRF-Token": token}
    )
    assert res.status_code == 200


def test_login_rate_limit(app, monkeypatch):
    # limits are read when the app is created, so build one with them switched on
    monkeypatch.setenv("RATELIMIT_ENABLED", "true")
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "3 per minute")
    limited_app = create_app()
    c = limited_app.test_client()
    for _ in range(3):
        res = c.post("/login", json={"username": "wrong", "password": "wrong"})
        assert res.status_code == 401
    res = c.post("/login", json={"username": "wrong", "password": "wrong"})
    assert res.status_code == 429
    assert res.get_json()["error"]["code"] == "rate_limited"


def test_student_dashboard(admin_client, student_client, math_subject):
    student_client.post("/grades/save", json={
        "subject_id": math_subject["subject_id"],
        "exam_type": "Midterm",
        "scores": {str(math_subject["written_id"]): 80, str(math_subject["performance_id"]): 90},
    })
    for subject, offset in (("Korean", 12), ("Mathematics", 3)):
        admin_client.post("/schedule/exams", json={
            "subject": subject, "exam_type": "Final",
            "exam_date": (utc_today() + timedelta(days=offset)).isoformat(),
        })

    data = student_client.get("/dashboard").get_json()["data"]
    assert data["role"] == "student"
    assert data["average_score"] == 84.0
    assert len(data["recent_grades"]) == 1
    assert data["next_exam"]["subject"] == "Mathematics"
    assert [a["subject"] for a in data["alerts"]] == ["Mathematics"]


def test_admin_dashboard(admin_client):
    data = admin_client.get("/dashboard").get_json()["data"]
    assert data["role"] == "admin"
    assert data["stats"]["total_exams"] == 0
