# tests/test_teachers.py
import pytest

from errors import ConflictError
from repositories import CLASS_TEACHER_INDEX


def test_create_teacher(client, make_teacher):
    body = make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    assert body["role"] == "Class Teacher"
    assert body["classTeacherClass"] == "Grade 1"
    assert body["email"] == "alice@kingtech-school.org"
    assert len(client.get("/api/teachers").json()) == 1


def test_create_teacher_names_missing_fields(client):
    r = client.post("/api/teachers", json={"name": "Alice", "subject": "Maths"})
    assert r.status_code == 400
    assert r.json() == {"error": "role and email are required"}


def test_invalid_email_is_rejected(client):
    r = client.post("/api/teachers", json={"name": "A", "subject": "B", "role": "Teacher", "email": "nope"})
    assert r.status_code == 400
    assert "email" in r.json()["error"]


def test_second_class_teacher_for_same_class_conflicts(client, make_teacher):
    make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    r = client.post("/api/teachers", json={
        "name": "Bob", "subject": "Art", "role": "Class Teacher",
        "classTeacherClass": "Grade 1", "email": "bob@kingtech-school.org",
    })
    assert r.status_code == 400
    assert r.json() == {"error": 'Class "Grade 1" already has a class teacher (Alice).'}
    assert len(client.get("/api/teachers").json()) == 1


def test_class_teachers_for_different_classes(make_teacher):
    make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    assert make_teacher("Bob", role="Class Teacher", klass="Grade 2")["classTeacherClass"] == "Grade 2"


def test_class_teacher_without_class_skips_check(make_teacher):
    make_teacher("Alice", role="Class Teacher", klass="")
    body = make_teacher("Bob", role="Class Teacher", klass="")
    assert body["classTeacherClass"] == ""


def test_other_roles_never_keep_a_class(make_teacher):
    body = make_teacher("Carol", role="Teacher", klass="Grade 3")
    assert body["classTeacherClass"] == ""


def test_role_change_clears_class(client, make_teacher):
    alice = make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    r = client.patch(f"/api/teachers/{alice['_id']}", json={"role": "Teacher", "classTeacherClass": "Grade 1"})
    assert r.status_code == 200
    assert r.json()["role"] == "Teacher"
    assert r.json()["classTeacherClass"] == ""

    # Grade 1 is free again
    assert client.post("/api/teachers", json={
        "name": "Bob", "subject": "Art", "role": "Class Teacher",
        "classTeacherClass": "Grade 1", "email": "bob@kingtech-school.org",
    }).status_code == 201


def test_update_conflict_names_holder(client, make_teacher):
    make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    bob = make_teacher("Bob", role="Teacher")
    r = client.patch(f"/api/teachers/{bob['_id']}", json={"role": "Class Teacher", "classTeacherClass": "Grade 1"})
    assert r.status_code == 400
    assert r.json()["error"] == 'Class "Grade 1" already has a class teacher (Alice).'


def test_self_reassignment_is_allowed(client, make_teacher):
    alice = make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    r = client.patch(f"/api/teachers/{alice['_id']}", json={"role": "Class Teacher", "classTeacherClass": "Grade 1"})
    assert r.status_code == 200
    assert r.json()["classTeacherClass"] == "Grade 1"


def test_patch_without_role_keeps_class(client, make_teacher):
    alice = make_teacher("Alice", role="Class Teacher", klass="Grade 1")
    r = client.patch(f"/api/teachers/{alice['_id']}", json={"email": "alice.k@kingtech-school.org", "subject": 4})
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "alice.k@kingtech-school.org"
    assert body["subject"] == "Maths"
    assert body["classTeacherClass"] == "Grade 1"


def test_patch_unknown_teacher(client):
    r = client.patch("/api/teachers/64b7f0c2a1b2c3d4e5f60718", json={"name": "X"})
    assert r.status_code == 404
    assert r.json() == {"error": "Teacher not found"}


def test_delete_teacher(client, make_teacher):
    alice = make_teacher("Alice")
    assert client.delete(f"/api/teachers/{alice['_id']}").status_code == 204
    assert client.delete(f"/api/teachers/{alice['_id']}").status_code == 204
    assert client.get("/api/teachers").json() == []


def test_store_index_rejects_duplicate_class_teacher(app):
    """Two writers that both passed the application check still cannot both win."""
    teachers = app.state.teachers
    assert CLASS_TEACHER_INDEX in teachers.collection.index_information()

    doc = {"name": "Alice", "subject": "Maths", "role": "Class Teacher",
           "classTeacherClass": "Grade 4", "email": "alice@kingtech-school.org"}
    teachers.create(doc)
    with pytest.raises(ConflictError) as excinfo:
        teachers.create({**doc, "name": "Bob", "email": "bob@kingtech-school.org"})
    assert "(Alice)" in str(excinfo.value)

    # Plain teachers with empty classes are not constrained
    teachers.create({**doc, "name": "Carol", "role": "Teacher", "classTeacherClass": ""})
    teachers.create({**doc, "name": "Dan", "role": "Teacher", "classTeacherClass": ""})
