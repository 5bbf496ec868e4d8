# =============================================================================
# tests/test_universities.py - University and Department Tests
# =============================================================================

from tests import factories


class TestUniversityCrud:
    """Super admin management of universities."""

    def test_create_with_departments(self, client, super_admin_headers):
        response = client.post(
            "/api/universities",
            json={
                "name": "North Campus",
                "code": "NC",
                "city": "Pune",
                "departments": [{"name": "Computer Science", "code": "CSE"}, {"name": "Civil", "code": "CE"}],
            },
            headers=super_admin_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["code"] == "NC"
        assert data["is_active"] is True
        assert sorted(d["code"] for d in data["departments"]) == ["CE", "CSE"]
        assert data["total_students"] == 0

    def test_duplicate_code(self, client, super_admin_headers, university):
        response = client.post("/api/universities", json={"name": "Copy", "code": "tu"}, headers=super_admin_headers)
        assert response.status_code == 409

    def test_short_name_is_rejected(self, client, super_admin_headers):
        response = client.post("/api/universities", json={"name": "X", "code": "XX"}, headers=super_admin_headers)
        assert response.status_code == 400

    def test_university_admin_cannot_create(self, client, admin_headers):
        response = client.post("/api/universities", json={"name": "Mine", "code": "MN"}, headers=admin_headers)
        assert response.status_code == 403

    def test_super_admin_lists_all(self, client, super_admin_headers, university, other_university):
        response = client.get("/api/universities", headers=super_admin_headers)
        assert {u["code"] for u in response.json()} == {"TU", "OU"}

    def test_university_admin_lists_own(self, client, admin_headers, other_university):
        response = client.get("/api/universities", headers=admin_headers)
        assert [u["code"] for u in response.json()] == ["TU"]

    def test_search(self, client, super_admin_headers, university, other_university):
        response = client.get("/api/universities", params={"search": "other"}, headers=super_admin_headers)
        assert [u["code"] for u in response.json()] == ["OU"]

    def test_university_admin_cannot_read_other(self, client, admin_headers, other_university):
        response = client.get(f"/api/universities/{other_university['university_id']}", headers=admin_headers)
        assert response.status_code == 404

    def test_university_admin_updates_own(self, client, admin_headers, university):
        response = client.put(
            f"/api/universities/{university['university_id']}",
            json={"city": "Mysore"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["city"] == "Mysore"

    def test_only_super_admin_toggles_active(self, client, admin_headers, super_admin_headers, university):
        url = f"/api/universities/{university['university_id']}"
        assert client.put(url, json={"is_active": False}, headers=admin_headers).status_code == 403

        response = client.put(url, json={"is_active": False}, headers=super_admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_null_for_required_field(self, client, super_admin_headers, university):
        url = f"/api/universities/{university['university_id']}"
        for field in ("name", "code", "is_active"):
            response = client.put(url, json={field: None}, headers=super_admin_headers)
            assert response.status_code == 400, field
            assert response.json()["code"] == "VALIDATION_ERROR"

    def test_delete_cascades(self, client, super_admin_headers, university, job, student):
        response = client.delete(f"/api/universities/{university['university_id']}", headers=super_admin_headers)

        assert response.status_code == 200
        assert factories.count("universities") == 0
        assert factories.count("jobs") == 0
        assert factories.count("students") == 0


class TestUniversityAdmins:
    """POST /api/universities/{id}/admins"""

    def test_create_admin(self, client, super_admin_headers, university):
        response = client.post(
            f"/api/universities/{university['university_id']}/admins",
            json={"name": "Second Admin", "email": "second@tu.edu", "password": "password123"},
            headers=super_admin_headers
        )

        assert response.status_code == 201
        assert response.json()["role"] == "UNIVERSITY_ADMIN"
        assert response.json()["university_id"] == university["university_id"]

    def test_duplicate_email(self, client, super_admin_headers, university, admin):
        response = client.post(
            f"/api/universities/{university['university_id']}/admins",
            json={"name": "Again", "email": "admin@tu.edu", "password": "password123"},
            headers=super_admin_headers
        )
        assert response.status_code == 409


class TestDepartments:
    """Department endpoints."""

    def test_list(self, client, admin_headers, university):
        response = client.get(f"/api/universities/{university['university_id']}/departments", headers=admin_headers)
        assert {d["code"] for d in response.json()} == {"CSE", "ECE"}

    def test_student_reads_own_departments(self, client, student, university, other_university):
        ok = client.get(f"/api/universities/{university['university_id']}/departments", headers=student["headers"])
        other = client.get(f"/api/universities/{other_university['university_id']}/departments", headers=student["headers"])
        assert ok.status_code == 200
        assert other.status_code == 404

    def test_add_and_duplicate(self, client, admin_headers, university):
        url = f"/api/universities/{university['university_id']}/departments"
        created = client.post(url, json={"name": "Mechanical", "code": "ME"}, headers=admin_headers)
        duplicate = client.post(url, json={"name": "mechanical"}, headers=admin_headers)

        assert created.status_code == 201
        assert created.json()["code"] == "ME"
        assert duplicate.status_code == 409

    def test_cannot_delete_department_with_students(self, client, admin_headers, university, student):
        url = f"/api/universities/{university['university_id']}/departments/{university['departments']['CSE']}"
        assert client.delete(url, headers=admin_headers).status_code == 409

    def test_delete_empty_department(self, client, admin_headers, university):
        url = f"/api/universities/{university['university_id']}/departments/{university['departments']['ECE']}"
        assert client.delete(url, headers=admin_headers).status_code == 200
        assert factories.count("departments", "department_id = :d", {"d": university["departments"]["ECE"]}) == 0
