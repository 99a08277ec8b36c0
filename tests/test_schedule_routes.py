from datetime import timedelta

from tracker_app.schedule.services import utc_today


def _day(offset):
    return (utc_today() + timedelta(days=offset)).isoformat()


def _add_exam(client, subject, offset, grade=None):
    payload = {"subject": subject, "exam_type": "Midterm", "exam_date": _day(offset)}
    if grade:
        payload["grade"] = grade
    res = client.post("/schedule/exams", json=payload)
    assert res.status_code == 201
    return res.get_json()["data"]


def _add_assignment(client, name, offset, grade=None):
    payload = {
        "subject": "English", "assignment_name": name, "assignment_type": "Report",
        "due_date": _day(offset),
    }
    if grade:
        payload["grade"] = grade
    res = client.post("/schedule/assignments", json=payload)
    assert res.status_code == 201
    return res.get_json()["data"]


def test_create_exam_is_annotated(admin_client):
    exam = _add_exam(admin_client, "Korean", 5)
    assert exam["grade"] == "all"
    assert exam["kind"] == "exam"
    assert exam["days_until"] == 5
    assert exam["urgency"] == "urgent"


def test_students_see_upcoming_items_for_their_cohort(admin_client, student_client):
    _add_exam(admin_client, "Korean", 10, grade="Grade 1")
    _add_exam(admin_client, "English", 2, grade="Grade 2")
    _add_exam(admin_client, "Mathematics", 4)
    _add_exam(admin_client, "Science", -1, grade="Grade 1")

    items = student_client.get("/schedule/exams").get_json()["data"]
    assert [(i["subject"], i["days_until"]) for i in items] == [("Mathematics", 4), ("Korean", 10)]
    assert [i["urgency"] for i in items] == ["urgent", "normal"]

    # admins get the whole calendar, past items included
    items = admin_client.get("/schedule/exams").get_json()["data"]
    assert [i["subject"] for i in items] == ["Science", "English", "Mathematics", "Korean"]


def test_alerts_merge_exams_and_assignments(admin_client, student_client):
    _add_exam(admin_client, "Korean", 7)
    _add_exam(admin_client, "Mathematics", 8)
    _add_assignment(admin_client, "Essay", 3)
    _add_assignment(admin_client, "Poster", 4)
    _add_assignment(admin_client, "Book report", 1, grade="Grade 2")
    _add_assignment(admin_client, "Reading log", -2)

    items = student_client.get("/schedule/alerts").get_json()["data"]
    assert [(i["kind"], i["days_until"]) for i in items] == [("assignment", 3), ("exam", 7)]

    items = admin_client.get("/schedule/alerts").get_json()["data"]
    assert [(i["kind"], i["days_until"]) for i in items] == [
        ("assignment", 1), ("assignment", 3), ("exam", 7),
    ]


def test_update_and_delete_exam(admin_client):
    exam = _add_exam(admin_client, "Korean", 20)
    res = admin_client.put(f"/schedule/exams/{exam['id']}", json={
        "subject": "Korean", "exam_type": "Final", "exam_date": _day(6), "grade": "Grade 3",
    })
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["type"] == "Final"
    assert data["grade"] == "Grade 3"
    assert data["urgency"] == "urgent"

    assert admin_client.delete(f"/schedule/exams/{exam['id']}").status_code == 200
    assert admin_client.get("/schedule/exams").get_json()["data"] == []
    assert admin_client.delete(f"/schedule/exams/{exam['id']}").status_code == 404


def test_update_and_delete_assignment(admin_client):
    assignment = _add_assignment(admin_client, "Essay", 10)
    assert assignment["max_score"] == 100
    res = admin_client.put(f"/schedule/assignments/{assignment['id']}", json={
        "subject": "English", "assignment_name": "Long essay", "assignment_type": "Report",
        "due_date": _day(2), "max_score": 50,
    })
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["name"] == "Long essay"
    assert data["max_score"] == 50
    assert data["urgency"] == "urgent"

    assert admin_client.delete(f"/schedule/assignments/{assignment['id']}").status_code == 200
    assert admin_client.get("/schedule/assignments").get_json()["data"] == []


def test_invalid_schedule_input(admin_client):
    res = admin_client.post("/schedule/exams", json={
        "subject": "Korean", "exam_type": "Final", "exam_date": "someday",
    })
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "invalid_input"

    res = admin_client.post("/schedule/assignments", json={
        "subject": "English", "assignment_name": "Essay", "assignment_type": "Report",
        "due_date": _day(3), "max_score": 0,
    })
    assert res.status_code == 400


def test_students_cannot_edit_calendar(student_client):
    res = student_client.post("/schedule/exams", json={
        "subject": "Korean", "exam_type": "Final", "exam_date": _day(3),
    })
    assert res.status_code == 403


def test_assignment_max_score_must_be_finite(admin_client):
    res = admin_client.post("/schedule/assignments", json={
        "subject": "English", "assignment_name": "Essay", "assignment_type": "Report",
        "due_date": _day(3), "max_score": "inf",
    })
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "invalid_input"
