# =============================================================================
# tests/test_jobs.py - Job Tests
# =============================================================================
# Creation with rounds/departments/contacts, validation, updates with round
# actions, role scoping, cascade delete and the audit trail.
# =============================================================================

from datetime import date, timedelta

from tests import factories


def _job_payload(university, company, **overrides):
    payload = {
        "title": "Data Analyst",
        "company_id": company["company_id"],
        "job_type": "FULL_TIME",
        "location": "Hyderabad",
        "ctc_range_min": 8,
        "ctc_range_max": 12,
        "apply_by": (date.today() + timedelta(days=14)).isoformat(),
        "status": "OPEN",
        "min_cgpa": 7.5,
        "department_ids": [university["departments"]["CSE"]],
        "contact_person_ids": company["contact_ids"][:1],
        "interview_rounds": [
            {"name": "Online Test", "sequence": 1},
            {"name": "HR", "sequence": 2, "is_online": True, "meeting_link": "https://meet.example.com/hr"},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateJob:
    """POST /api/jobs"""

    def test_create_full_job(self, client, admin, admin_headers, university, company):
        response = client.post("/api/jobs", json=_job_payload(university, company), headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Data Analyst"
        assert data["company_name"] == "Acme Corp"
        assert data["university_id"] == university["university_id"]
        assert data["created_by"]["user_id"] == admin
        assert [r["name"] for r in data["interview_rounds"]] == ["Online Test", "HR"]
        assert data["interview_rounds"][0]["status"] == "SCHEDULED"
        assert data["interview_rounds"][1]["is_online"] is True
        assert [d["code"] for d in data["eligible_departments"]] == ["CSE"]
        assert [c["contact_id"] for c in data["contact_persons"]] == company["contact_ids"][:1]

    def test_max_ctc_below_min(self, client, admin_headers, university, company):
        payload = _job_payload(university, company, ctc_range_min=20, ctc_range_max=10)
        response = client.post("/api/jobs", json=payload, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert factories.count("jobs") == 0

    def test_duplicate_round_sequence(self, client, admin_headers, university, company):
        payload = _job_payload(university, company, interview_rounds=[
            {"name": "One", "sequence": 1}, {"name": "Two", "sequence": 1},
        ])
        assert client.post("/api/jobs", json=payload, headers=admin_headers).status_code == 400

    def test_round_name_required(self, client, admin_headers, university, company):
        payload = _job_payload(university, company, interview_rounds=[{"name": "", "sequence": 1}])
        assert client.post("/api/jobs", json=payload, headers=admin_headers).status_code == 400

    def test_internship_needs_duration(self, client, admin_headers, university, company):
        payload = _job_payload(university, company, job_type="INTERNSHIP")
        assert client.post("/api/jobs", json=payload, headers=admin_headers).status_code == 400

        payload["internship_duration"] = 6
        response = client.post("/api/jobs", json=payload, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["is_internship"] is True

    def test_unknown_company(self, client, admin_headers, university, company):
        payload = _job_payload(university, company, company_id=9999)
        assert client.post("/api/jobs", json=payload, headers=admin_headers).status_code == 404

    def test_contact_of_other_company(self, client, admin_headers, university, company):
        other_company = factories.create_company("Initech", university["university_id"])
        stranger = factories.create_contact(other_company, "Bill Lumbergh")
        payload = _job_payload(university, company, contact_person_ids=[stranger])

        assert client.post("/api/jobs", json=payload, headers=admin_headers).status_code == 404
        assert factories.count("jobs") == 0

    def test_super_admin_must_name_university(self, client, super_admin_headers, university, company):
        payload = _job_payload(university, company)
        assert client.post("/api/jobs", json=payload, headers=super_admin_headers).status_code == 400

        payload["university_id"] = university["university_id"]
        assert client.post("/api/jobs", json=payload, headers=super_admin_headers).status_code == 201

    def test_sub_user_cannot_create(self, client, sub_user_headers, university, company):
        payload = _job_payload(university, company)
        assert client.post("/api/jobs", json=payload, headers=sub_user_headers).status_code == 403

    def test_creation_is_logged(self, client, admin_headers, university, company):
        client.post("/api/jobs", json=_job_payload(university, company), headers=admin_headers)

        logs = client.get("/api/activity-logs", params={"action": "JOB_CREATED"}, headers=admin_headers).json()
        assert logs["total"] == 1
        assert logs["logs"][0]["details"]["title"] == "Data Analyst"


class TestListJobs:
    """GET /api/jobs"""

    def test_admin_sees_own_university(self, client, admin_headers, job, other_university):
        company_id = factories.create_company("Other Co", other_university["university_id"])
        factories.create_job(other_university["university_id"], company_id)

        data = client.get("/api/jobs", headers=admin_headers).json()
        assert [j["job_id"] for j in data["jobs"]] == [job["job_id"]]

    def test_super_admin_sees_all(self, client, super_admin_headers, job, other_university):
        company_id = factories.create_company("Other Co", other_university["university_id"])
        factories.create_job(other_university["university_id"], company_id)

        assert client.get("/api/jobs", headers=super_admin_headers).json()["total"] == 2
        only_other = client.get("/api/jobs", params={"university_id": other_university["university_id"]},
                                headers=super_admin_headers).json()
        assert only_other["total"] == 1

    def test_filters(self, client, admin_headers, university, company, job):
        factories.create_job(university["university_id"], company["company_id"], title="Intern",
                             job_type="INTERNSHIP", ctc_range_min=1, ctc_range_max=2, location="Chennai",
                             status="DRAFT")

        def titles(**params):
            return [j["title"] for j in client.get("/api/jobs", params=params, headers=admin_headers).json()["jobs"]]

        assert titles(job_type="INTERNSHIP") == ["Intern"]
        assert titles(status="OPEN") == ["Software Engineer"]
        assert titles(min_ctc=5) == ["Software Engineer"]
        assert titles(location="chen") == ["Intern"]
        assert sorted(titles(search="acme")) == ["Intern", "Software Engineer"]

    def test_student_sees_open_jobs_with_flags(self, client, student, university, company, job):
        factories.create_job(university["university_id"], company["company_id"], title="Draft Role", status="DRAFT")
        picky = factories.create_job(university["university_id"], company["company_id"], title="Picky Role",
                                     min_cgpa=9.5)
        factories.create_application(job["job_id"], student["student_id"])

        jobs = {j["title"]: j for j in client.get("/api/jobs", headers=student["headers"]).json()["jobs"]}
        assert set(jobs) == {"Software Engineer", "Picky Role"}
        assert jobs["Software Engineer"]["has_applied"] is True
        assert jobs["Software Engineer"]["is_eligible"] is True
        assert jobs["Picky Role"]["is_eligible"] is False
        assert jobs["Picky Role"]["job_id"] == picky

    def test_department_restriction(self, client, student, university, job):
        factories.add_job_department(job["job_id"], university["departments"]["ECE"])

        jobs = client.get("/api/jobs", headers=student["headers"]).json()["jobs"]
        assert jobs[0]["is_eligible"] is False


class TestGetJob:
    """GET /api/jobs/{job_id}"""

    def test_staff_detail_includes_applications(self, client, admin_headers, job, student):
        factories.create_application(job["job_id"], student["student_id"])

        data = client.get(f"/api/jobs/{job['job_id']}", headers=admin_headers).json()
        assert len(data["interview_rounds"]) == 2
        assert len(data["applications"]) == 1

    def test_student_sees_only_own_application(self, client, student, university, job):
        other = factories.create_student(university["university_id"], university["departments"]["CSE"],
                                         "Priya", "Patel", "priya@tu.edu", "CS2005")
        factories.create_application(job["job_id"], other)

        data = client.get(f"/api/jobs/{job['job_id']}", headers=student["headers"]).json()
        assert data["applications"] == []
        assert data["has_applied"] is False
        assert data["is_eligible"] is True

    def test_student_cannot_see_draft(self, client, student, university, company):
        draft = factories.create_job(university["university_id"], company["company_id"], status="DRAFT")
        assert client.get(f"/api/jobs/{draft}", headers=student["headers"]).status_code == 404

    def test_sub_user_needs_assignment(self, client, sub_user, sub_user_headers, job):
        assert client.get(f"/api/jobs/{job['job_id']}", headers=sub_user_headers).status_code == 404
        factories.assign_job(sub_user, job["job_id"])
        assert client.get(f"/api/jobs/{job['job_id']}", headers=sub_user_headers).status_code == 200

    def test_missing_job(self, client, admin_headers):
        assert client.get("/api/jobs/9999", headers=admin_headers).status_code == 404


class TestUpdateJob:
    """PUT /api/jobs/{job_id}"""

    def test_partial_update(self, client, admin, admin_headers, job):
        response = client.put(f"/api/jobs/{job['job_id']}", json={"title": "Senior Engineer", "status": "IN_PROGRESS"},
                              headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Senior Engineer"
        assert data["status"] == "IN_PROGRESS"
        assert data["location"] == "Bangalore"
        assert data["updated_by"]["user_id"] == admin

    def test_ctc_checked_against_stored_values(self, client, admin_headers, job):
        response = client.put(f"/api/jobs/{job['job_id']}", json={"ctc_range_max": 5}, headers=admin_headers)

        assert response.status_code == 400
        assert "Maximum CTC" in response.json()["detail"]

    def test_round_actions(self, client, admin_headers, job):
        first, second = job["round_ids"]
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"interview_rounds": [
                {"id": first, "_action": "update", "name": "Coding Test"},
                {"id": second, "_action": "delete"},
                {"name": "Final Round", "sequence": 3},
            ]},
            headers=admin_headers
        )

        assert response.status_code == 200
        rounds = response.json()["interview_rounds"]
        assert [(r["name"], r["sequence"]) for r in rounds] == [("Coding Test", 1), ("Final Round", 3)]

    def test_round_sequence_collision(self, client, admin_headers, job):
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"interview_rounds": [{"name": "Clash", "sequence": 2}]},
            headers=admin_headers
        )
        assert response.status_code == 409
        assert factories.count("interview_rounds") == 2

    def test_duplicate_sequence_within_update(self, client, admin_headers, job):
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"interview_rounds": [{"name": "A", "sequence": 7}, {"name": "B", "sequence": 7}]},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert factories.count("interview_rounds") == 2

    def test_deleted_round_frees_its_sequence_in_payload(self, client, admin_headers, job):
        first, second = job["round_ids"]
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"interview_rounds": [
                {"id": second, "_action": "delete", "sequence": 3},
                {"name": "Group Discussion", "sequence": 3},
            ]},
            headers=admin_headers
        )
        assert response.status_code == 200

    def test_null_for_required_field(self, client, admin_headers, job):
        for field in ("title", "company_id", "status", "expected_hires"):
            response = client.put(f"/api/jobs/{job['job_id']}", json={field: None}, headers=admin_headers)

            assert response.status_code == 400, field
            assert response.json()["code"] == "VALIDATION_ERROR"

        assert client.get(f"/api/jobs/{job['job_id']}", headers=admin_headers).json()["title"] == "Software Engineer"

    def test_null_clears_optional_field(self, client, admin_headers, job):
        response = client.put(f"/api/jobs/{job['job_id']}", json={"location": None}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["location"] is None

    def test_switch_to_internship_needs_duration(self, client, admin_headers, job):
        url = f"/api/jobs/{job['job_id']}"

        assert client.put(url, json={"job_type": "INTERNSHIP"}, headers=admin_headers).status_code == 400
        assert client.put(url, json={"is_internship": True}, headers=admin_headers).status_code == 400

        response = client.put(url, json={"job_type": "INTERNSHIP", "internship_duration": 6}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_internship"] is True

        # Duration is already stored now
        assert client.put(url, json={"internship_stipend": 25000}, headers=admin_headers).status_code == 200
        assert client.put(url, json={"internship_duration": None}, headers=admin_headers).status_code == 400

    def test_delete_action_needs_id(self, client, admin_headers, job):
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"interview_rounds": [{"_action": "delete", "name": "x", "sequence": 5}]},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_replace_contacts_and_departments(self, client, admin_headers, university, company, job):
        response = client.put(
            f"/api/jobs/{job['job_id']}",
            json={"contact_person_ids": company["contact_ids"], "department_ids": [university["departments"]["ECE"]]},
            headers=admin_headers
        )

        data = response.json()
        assert sorted(c["contact_id"] for c in data["contact_persons"]) == sorted(company["contact_ids"])
        assert [d["code"] for d in data["eligible_departments"]] == ["ECE"]

    def test_sub_user_needs_edit_permission(self, client, sub_user, sub_user_headers, job):
        factories.assign_job(sub_user, job["job_id"], edit=False)
        denied = client.put(f"/api/jobs/{job['job_id']}", json={"title": "x"}, headers=sub_user_headers)
        assert denied.status_code == 403

    def test_sub_user_with_edit_permission(self, client, sub_user, sub_user_headers, job):
        factories.assign_job(sub_user, job["job_id"], edit=True)
        response = client.put(f"/api/jobs/{job['job_id']}", json={"title": "Edited"}, headers=sub_user_headers)
        assert response.status_code == 200

    def test_other_university_admin(self, client, other_admin_headers, job):
        response = client.put(f"/api/jobs/{job['job_id']}", json={"title": "x"}, headers=other_admin_headers)
        assert response.status_code == 404

    def test_update_is_logged(self, client, admin_headers, job):
        client.put(f"/api/jobs/{job['job_id']}", json={"title": "Logged"}, headers=admin_headers)

        logs = client.get("/api/activity-logs", params={"action": "JOB_UPDATED"}, headers=admin_headers).json()
        assert logs["logs"][0]["details"]["fields"] == ["title"]


class TestDeleteJob:
    """DELETE /api/jobs/{job_id}"""

    def test_delete_cascades(self, client, admin_headers, sub_user, job, student):
        factories.assign_job(sub_user, job["job_id"])
        application_id = factories.create_application(job["job_id"], student["student_id"], status="OFFERED")
        factories.create_offer(application_id, 12)

        response = client.delete(f"/api/jobs/{job['job_id']}", headers=admin_headers)

        assert response.status_code == 200
        for table in ("jobs", "interview_rounds", "applications", "offers", "sub_user_jobs"):
            assert factories.count(table) == 0
        assert factories.count("students") == 1

    def test_sub_user_cannot_delete(self, client, sub_user, sub_user_headers, job):
        factories.assign_job(sub_user, job["job_id"], edit=True)
        assert client.delete(f"/api/jobs/{job['job_id']}", headers=sub_user_headers).status_code == 403
