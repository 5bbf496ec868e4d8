# =============================================================================
# tests/test_applications.py - Application Lifecycle Tests
# =============================================================================
# Apply -> interview feedback -> offer -> accept/decline, plus withdrawal and
# the sub-user permission flags.
# =============================================================================

from datetime import date, timedelta

from tests import factories


class TestApply:
    """POST /api/jobs/{job_id}/apply"""

    def test_apply(self, client, student, job):
        response = client.post(f"/api/jobs/{job['job_id']}/apply", json={"cover_letter": "Hire me"},
                               headers=student["headers"])

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "APPLIED"
        assert data["cover_letter"] == "Hire me"
        assert data["student_name"] == "Rahul Sharma"
        assert data["offer"] is None

    def test_apply_without_body(self, client, student, job):
        assert client.post(f"/api/jobs/{job['job_id']}/apply", headers=student["headers"]).status_code == 201

    def test_apply_twice(self, client, student, job):
        client.post(f"/api/jobs/{job['job_id']}/apply", headers=student["headers"])
        response = client.post(f"/api/jobs/{job['job_id']}/apply", headers=student["headers"])

        assert response.status_code == 409
        assert factories.count("applications") == 1

    def test_closed_job(self, client, student, university, company):
        job_id = factories.create_job(university["university_id"], company["company_id"], status="COMPLETED")
        response = client.post(f"/api/jobs/{job_id}/apply", headers=student["headers"])

        assert response.status_code == 400
        assert response.json()["code"] == "JOB_CLOSED"

    def test_deadline_passed(self, client, student, university, company):
        job_id = factories.create_job(university["university_id"], company["company_id"],
                                      apply_by=date.today() - timedelta(days=1))
        response = client.post(f"/api/jobs/{job_id}/apply", headers=student["headers"])

        assert response.status_code == 400
        assert response.json()["code"] == "DEADLINE_PASSED"

    def test_deadline_today_is_allowed(self, client, student, university, company):
        job_id = factories.create_job(university["university_id"], company["company_id"], apply_by=date.today())
        assert client.post(f"/api/jobs/{job_id}/apply", headers=student["headers"]).status_code == 201

    def test_cgpa_below_minimum(self, client, student, university, company):
        job_id = factories.create_job(university["university_id"], company["company_id"], min_cgpa=9.0)
        assert client.post(f"/api/jobs/{job_id}/apply", headers=student["headers"]).status_code == 403

    def test_department_not_eligible(self, client, student, university, job):
        factories.add_job_department(job["job_id"], university["departments"]["ECE"])
        assert client.post(f"/api/jobs/{job['job_id']}/apply", headers=student["headers"]).status_code == 403

    def test_other_university_job(self, client, student, other_university):
        company_id = factories.create_company("Far Away", other_university["university_id"])
        job_id = factories.create_job(other_university["university_id"], company_id)
        assert client.post(f"/api/jobs/{job_id}/apply", headers=student["headers"]).status_code == 404

    def test_staff_cannot_apply(self, client, admin_headers, job):
        assert client.post(f"/api/jobs/{job['job_id']}/apply", headers=admin_headers).status_code == 403

    def test_my_applications(self, client, student, job):
        client.post(f"/api/jobs/{job['job_id']}/apply", headers=student["headers"])

        response = client.get("/api/applications/me", headers=student["headers"])
        assert [a["job_id"] for a in response.json()] == [job["job_id"]]


class TestWithdraw:
    """POST /api/applications/{id}/withdraw"""

    def test_withdraw(self, client, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])

        assert client.post(f"/api/applications/{application_id}/withdraw", headers=student["headers"]).status_code == 200
        detail = client.get(f"/api/applications/{application_id}", headers=student["headers"]).json()
        assert detail["status"] == "WITHDRAWN"

    def test_cannot_withdraw_accepted(self, client, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"], status="ACCEPTED")
        assert client.post(f"/api/applications/{application_id}/withdraw", headers=student["headers"]).status_code == 400

    def test_cannot_withdraw_someone_elses(self, client, student, university, job):
        other = factories.create_student(university["university_id"], university["departments"]["CSE"],
                                         "Priya", "Patel", "priya@tu.edu", "CS2005")
        application_id = factories.create_application(job["job_id"], other)

        assert client.post(f"/api/applications/{application_id}/withdraw", headers=student["headers"]).status_code == 404
        assert client.get(f"/api/applications/{application_id}", headers=student["headers"]).status_code == 404


class TestStaffActions:
    """Status changes, interview results and offers."""

    def test_update_status(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        response = client.put(f"/api/applications/{application_id}/status", json={"status": "SHORTLISTED"},
                              headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "SHORTLISTED"

    def test_reject_with_reason(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        response = client.put(
            f"/api/applications/{application_id}/status",
            json={"status": "REJECTED", "rejection_reason": "Position filled"},
            headers=admin_headers
        )

        assert response.json()["status"] == "REJECTED"
        assert response.json()["rejection_reason"] == "Position filled"

    def test_feedback_moves_to_interview(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        round_id = job["round_ids"][0]

        response = client.put(
            f"/api/applications/{application_id}/rounds/{round_id}",
            json={"status": "PASS", "feedback": "Strong fundamentals", "rating": 4},
            headers=admin_headers
        )

        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "PASS"
        assert result["round_name"] == "Aptitude Test"
        assert result["interviewer_name"] == "Uni Admin"

        detail = client.get(f"/api/applications/{application_id}", headers=admin_headers).json()
        assert detail["status"] == "INTERVIEW"
        assert len(detail["interviews"]) == 1

    def test_schedule_then_feedback_updates_same_result(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        url = f"/api/applications/{application_id}/rounds/{job['round_ids'][1]}"

        scheduled = client.put(url, json={"scheduled_at": "2030-01-15T10:00:00"}, headers=admin_headers).json()
        assert scheduled["status"] == "PENDING"

        graded = client.put(url, json={"status": "FAIL"}, headers=admin_headers).json()
        assert graded["result_id"] == scheduled["result_id"]
        assert graded["scheduled_at"].startswith("2030-01-15")
        assert factories.count("interview_results") == 1

    def test_empty_interview_update(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        url = f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}"
        assert client.put(url, json={}, headers=admin_headers).status_code == 400

    def test_rating_out_of_range(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        url = f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}"
        assert client.put(url, json={"rating": 6}, headers=admin_headers).status_code == 400

    def test_round_of_other_job(self, client, admin_headers, university, company, student, job):
        other_job = factories.create_job(university["university_id"], company["company_id"], title="Other")
        other_round = factories.create_round(other_job, "Elsewhere", 1)
        application_id = factories.create_application(job["job_id"], student["student_id"])

        url = f"/api/applications/{application_id}/rounds/{other_round}"
        assert client.put(url, json={"feedback": "x"}, headers=admin_headers).status_code == 404

    def test_make_offer(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"], status="INTERVIEW")
        response = client.post(f"/api/applications/{application_id}/offer", json={"ctc": 16.5},
                               headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["ctc"] == 16.5
        assert response.json()["status"] == "PENDING"
        assert response.json()["offer_date"] == date.today().isoformat()

        detail = client.get(f"/api/applications/{application_id}", headers=admin_headers).json()
        assert detail["status"] == "OFFERED"
        assert detail["offer"]["ctc"] == 16.5

    def test_offer_needs_positive_ctc(self, client, admin_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        response = client.post(f"/api/applications/{application_id}/offer", json={"ctc": 0}, headers=admin_headers)
        assert response.status_code == 400


class TestOfferResponse:
    """POST /api/applications/{id}/offer/respond"""

    def _offered(self, job, student):
        application_id = factories.create_application(job["job_id"], student["student_id"], status="OFFERED")
        factories.create_offer(application_id, 15)
        return application_id

    def test_accept(self, client, student, job):
        application_id = self._offered(job, student)
        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": True},
                               headers=student["headers"])

        assert response.status_code == 200
        assert response.json()["status"] == "ACCEPTED"
        profile = client.get("/api/students/me", headers=student["headers"]).json()
        assert profile["placement_status"] == "PLACED"
        assert profile["highest_package"] == 15.0

    def test_decline(self, client, student, job):
        application_id = self._offered(job, student)
        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": False},
                               headers=student["headers"])

        assert response.json()["status"] == "REJECTED"
        detail = client.get(f"/api/applications/{application_id}", headers=student["headers"]).json()
        assert detail["status"] == "WITHDRAWN"

    def test_answer_only_once(self, client, student, job):
        application_id = self._offered(job, student)
        url = f"/api/applications/{application_id}/offer/respond"
        client.post(url, json={"accept": True}, headers=student["headers"])

        assert client.post(url, json={"accept": False}, headers=student["headers"]).status_code == 400

    def test_withdrawing_closes_the_offer(self, client, student, job):
        application_id = self._offered(job, student)
        assert client.post(f"/api/applications/{application_id}/withdraw",
                           headers=student["headers"]).status_code == 200

        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": True},
                               headers=student["headers"])

        assert response.status_code == 400
        detail = client.get(f"/api/applications/{application_id}", headers=student["headers"]).json()
        assert detail["status"] == "WITHDRAWN"
        assert detail["offer"]["status"] == "REJECTED"
        profile = client.get("/api/students/me", headers=student["headers"]).json()
        assert profile["placement_status"] != "PLACED"

    def test_staff_rejection_closes_the_offer(self, client, admin_headers, student, job):
        application_id = self._offered(job, student)
        client.put(f"/api/applications/{application_id}/status", json={"status": "REJECTED"}, headers=admin_headers)

        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": True},
                               headers=student["headers"])

        assert response.status_code == 400
        assert factories.count("offers", "status = 'REJECTED'") == 1

    def test_only_offered_applications(self, client, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"], status="INTERVIEW")
        factories.create_offer(application_id, 15)

        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": True},
                               headers=student["headers"])

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS"
        assert factories.count("applications", "status = 'ACCEPTED'") == 0

    def test_no_offer(self, client, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        response = client.post(f"/api/applications/{application_id}/offer/respond", json={"accept": True},
                               headers=student["headers"])
        assert response.status_code == 404


class TestSubUserPermissions:
    """Assignment flags gate what a sub-user may do with applications."""

    def test_manage_students_flag(self, client, sub_user, sub_user_headers, student, job):
        factories.assign_job(sub_user, job["job_id"], manage=False, schedule=True)
        application_id = factories.create_application(job["job_id"], student["student_id"])

        denied = client.put(f"/api/applications/{application_id}/status", json={"status": "SHORTLISTED"},
                            headers=sub_user_headers)
        assert denied.status_code == 403

        scheduled = client.put(
            f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}",
            json={"scheduled_at": "2030-02-01T09:30:00"},
            headers=sub_user_headers
        )
        assert scheduled.status_code == 200

    def test_schedule_flag(self, client, sub_user, sub_user_headers, student, job):
        factories.assign_job(sub_user, job["job_id"], manage=True, schedule=False)
        application_id = factories.create_application(job["job_id"], student["student_id"])

        response = client.put(
            f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}",
            json={"scheduled_at": "2030-02-01T09:30:00"},
            headers=sub_user_headers
        )
        assert response.status_code == 403

    def test_unassigned_job(self, client, sub_user_headers, student, job):
        application_id = factories.create_application(job["job_id"], student["student_id"])
        response = client.put(f"/api/applications/{application_id}/status", json={"status": "SHORTLISTED"},
                              headers=sub_user_headers)
        assert response.status_code == 404

    def test_assigned_sub_user_runs_pipeline(self, client, sub_user, sub_user_headers, student, job):
        factories.assign_job(sub_user, job["job_id"])
        application_id = factories.create_application(job["job_id"], student["student_id"])

        client.put(f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}",
                   json={"status": "PASS"}, headers=sub_user_headers)
        offer = client.post(f"/api/applications/{application_id}/offer", json={"ctc": 11},
                            headers=sub_user_headers)

        assert offer.status_code == 201
        applications = client.get(f"/api/jobs/{job['job_id']}/applications", headers=sub_user_headers).json()
        assert applications[0]["status"] == "OFFERED"
