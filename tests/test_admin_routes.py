from tracker_app import db
from tracker_app.models import Subject


def _create_subject(client, name="Korean"):
    res = client.post("/admin/subjects", json={"name": name, "description": "Language arts"})
    assert res.status_code == 201
    return res.get_json()["data"]


def test_subject_and_category_lifecycle(admin_client):
    subject = _create_subject(admin_client)
    assert subject["weight_total"] == 0
    assert subject["weight_warning"] is not None

    res = admin_client.post("/admin/categories", json={
        "subject_id": subject["id"], "name": "Midterm", "kind": "written", "weight": 60,
    })
    assert res.status_code == 201
    body = res.get_json()
    assert body["data"]["max_score"] == 100.0
    assert body["meta"]["weight_warning"] == "Category weights add up to 60%, not 100%."

    res = admin_client.post("/admin/categories", json={
        "subject_id": subject["id"], "name": "Presentation", "kind": "performance",
        "weight": 40, "max_score": 20,
    })
    assert res.status_code == 201
    assert res.get_json()["meta"]["weight_warning"] is None

    res = admin_client.get(f"/admin/subjects/{subject['id']}/categories")
    body = res.get_json()
    assert [c["name"] for c in body["data"]] == ["Midterm", "Presentation"]
    assert body["meta"]["weight_total"] == 100.0


def test_weight_drift_is_allowed_with_warning(admin_client):
    subject = _create_subject(admin_client)
    for name, weight in (("Midterm", 50), ("Final", 60)):
        res = admin_client.post("/admin/categories", json={
            "subject_id": subject["id"], "name": name, "kind": "written", "weight": weight,
        })
        assert res.status_code == 201
    assert res.get_json()["meta"]["weight_warning"] == "Category weights add up to 110%, not 100%."


def test_category_validation(admin_client):
    subject = _create_subject(admin_client)
    bad_payloads = [
        {"name": "Quiz", "kind": "oral", "weight": 10},
        {"name": "Quiz", "kind": "written", "weight": 120},
        {"name": "Quiz", "kind": "written", "weight": -5},
        {"name": "Quiz", "kind": "written", "weight": "ten"},
        {"name": "Quiz", "kind": "written", "weight": 10, "max_score": 0},
        {"name": "Quiz", "kind": "written", "weight": 100, "max_score": "inf"},
        {"name": "Quiz", "kind": "written", "weight": "nan"},
        {"kind": "written", "weight": 10},
    ]
    for payload in bad_payloads:
        payload["subject_id"] = subject["id"]
        res = admin_client.post("/admin/categories", json=payload)
        assert res.status_code == 400, payload
        assert res.get_json()["error"]["code"] == "invalid_input"


def test_category_for_unknown_subject(admin_client):
    res = admin_client.post("/admin/categories", json={
        "subject_id": 999, "name": "Quiz", "kind": "written", "weight": 10,
    })
    assert res.status_code == 404


def test_duplicate_subject_name(admin_client):
    _create_subject(admin_client, "English")
    res = admin_client.post("/admin/subjects", json={"name": "English"})
    assert res.status_code == 409
    assert res.get_json()["error"]["code"] == "duplicate"


def test_update_subject_and_category(admin_client):
    subject = _create_subject(admin_client)
    res = admin_client.put(f"/admin/subjects/{subject['id']}", json={"name": "Korean Language"})
    assert res.status_code == 200
    assert res.get_json()["data"]["name"] == "Korean Language"

    res = admin_client.post("/admin/categories", json={
        "subject_id": subject["id"], "name": "Midterm", "kind": "written", "weight": 100,
    })
    category_id = res.get_json()["data"]["id"]
    res = admin_client.put(f"/admin/categories/{category_id}", json={
        "name": "Midterm exam", "kind": "written", "weight": 70, "max_score": 50,
    })
    assert res.status_code == 200
    body = res.get_json()
    assert body["data"]["weight"] == 70
    assert body["data"]["max_score"] == 50
    assert body["meta"]["weight_warning"] is not None

    assert admin_client.put("/admin/categories/999", json={"name": "x", "weight": 1}).status_code == 404


def test_delete_is_soft(app, admin_client):
    subject = _create_subject(admin_client)
    res = admin_client.post("/admin/categories", json={
        "subject_id": subject["id"], "name": "Midterm", "kind": "written", "weight": 100,
    })
    category_id = res.get_json()["data"]["id"]

    res = admin_client.delete(f"/admin/categories/{category_id}")
    assert res.status_code == 200
    assert res.get_json()["data"]["is_active"] is False
    listed = admin_client.get(f"/admin/subjects/{subject['id']}/categories").get_json()["data"]
    assert listed[0]["is_active"] is False

    res = admin_client.delete(f"/admin/subjects/{subject['id']}")
    assert res.status_code == 200

    with app.app_context():
        stored = db.session.get(Subject, subject["id"])
        assert stored is not None
        assert stored.is_active is False

    # Admins still see it, the grade entry list does not
    names = [s["name"] for s in admin_client.get("/admin/subjects").get_json()["data"]]
    assert "Korean" in names
    assert admin_client.get("/grades/subjects").get_json()["data"] == []


def test_stats_are_invalidated_by_writes(admin_client):
    stats = admin_client.get("/admin/stats").get_json()["data"]
    assert stats["total_subjects"] == 0
    assert stats["total_exams"] == 0

    _create_subject(admin_client, "Science")
    admin_client.post("/schedule/exams", json={
        "subject": "Science", "exam_type": "Midterm", "exam_date": "2099-01-10",
    })

    stats = admin_client.get("/admin/stats").get_json()["data"]
    assert stats["total_subjects"] == 1
    assert stats["total_exams"] == 1
    assert stats["upcoming_exams"] == 1


def test_students_cannot_manage_subjects(student_client):
    res = student_client.post("/admin/subjects", json={"name": "Art"})
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "forbidden"
    assert student_client.get("/admin/stats").status_code == 403


def test_admin_requires_login(client):
    res = client.get("/admin/subjects")
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "unauthorized"
