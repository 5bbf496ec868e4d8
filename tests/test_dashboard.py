# =============================================================================
# tests/test_dashboard.py - Dashboard Tests
# =============================================================================

from datetime import date, datetime, timedelta

from placement_portal.services.dashboard_service import ctc_bucket, last_months
from tests import factories


def _placed(job, student, ctc=18):
    application_id = factories.create_application(job["job_id"], student["student_id"], status="ACCEPTED")
    factories.create_offer(application_id, ctc, status="ACCEPTED")
    return application_id


class TestHelpers:
    """Month window and CTC buckets."""

    def test_last_months_wraps_year(self):
        assert last_months(3, today=date(2026, 2, 10)) == [(2025, 12), (2026, 1), (2026, 2)]

    def test_ctc_buckets(self):
        assert ctc_bucket(0) == "0-5 LPA"
        assert ctc_bucket(5) == "5-10 LPA"
        assert ctc_bucket(19.99) == "15-20 LPA"
        assert ctc_bucket(20) == ">20 LPA"


class TestSuperAdminDashboard:
    """GET /api/dashboard as super admin"""

    def test_stats_and_charts(self, client, super_admin_headers, job, student, other_university):
        _placed(job, student)

        data = client.get("/api/dashboard", headers=super_admin_headers).json()
        assert data["role"] == "SUPER_ADMIN"
        assert data["stats"]["universities"] == 2
        assert data["stats"]["jobs"] == 1
        assert data["stats"]["students"] == 1

        performance = {row["name"]: row for row in data["university_performance"]}
        assert performance["Test University"]["placements"] == 1
        assert performance["Test University"]["offers"] == 1
        assert performance["Test University"]["interviews"] == 1
        assert performance["Other University"]["placements"] == 0

        assert len(data["placement_trends"]) == 6
        assert data["placement_trends"][-1]["month"] == date.today().strftime("%b %Y")
        assert data["placement_trends"][-1]["placements"] == 1

        distribution = {row["name"]: row["value"] for row in data["ctc_distribution"]}
        assert distribution["15-20 LPA"] == 1
        assert sum(distribution.values()) == 1


class TestUniversityAdminDashboard:
    """GET /api/dashboard as university admin"""

    def test_stats(self, client, admin_headers, job, student):
        _placed(job, student, ctc=12)

        data = client.get("/api/dashboard", headers=admin_headers).json()
        assert data["role"] == "UNIVERSITY_ADMIN"
        assert data["stats"] == {"jobs": 1, "open_jobs": 1, "placements": 1, "companies": 1}

        by_department = {row["name"]: row for row in data["placement_stats"]}
        assert by_department["Computer Science"] == {"name": "Computer Science", "applied": 1, "interviewed": 1,
                                                     "placed": 1}
        assert by_department["Electronics"]["applied"] == 0

        assert data["company_participation"] == [{"name": "Acme Corp", "students": 1}]
        assert data["ctc_trends"][-1]["avg_ctc"] == 12.0
        assert data["job_type_distribution"] == [{"name": "Full-time", "value": 1}]
        assert data["recent_jobs"][0]["ctc_range"] == "10-15 LPA"

    def test_declined_offers_are_left_out_of_ctc_trend(self, client, admin_headers, job, student):
        application_id = factories.create_application(job["job_id"], student["student_id"], status="WITHDRAWN")
        factories.create_offer(application_id, 30, status="REJECTED")

        data = client.get("/api/dashboard", headers=admin_headers).json()
        assert all(row["avg_ctc"] == 0.0 for row in data["ctc_trends"])

    def test_scoped_to_university(self, client, other_admin_headers, job, student):
        _placed(job, student)
        data = client.get("/api/dashboard", headers=other_admin_headers).json()
        assert data["stats"]["placements"] == 0
        assert data["recent_jobs"] == []


class TestSubUserDashboard:
    """GET /api/dashboard as sub-user"""

    def test_assigned_work(self, client, sub_user, sub_user_headers, job, student):
        factories.assign_job(sub_user, job["job_id"])
        application_id = factories.create_application(job["job_id"], student["student_id"])
        client.put(
            f"/api/applications/{application_id}/rounds/{job['round_ids'][0]}",
            json={"scheduled_at": (datetime.now() + timedelta(days=2)).replace(microsecond=0).isoformat()},
            headers=sub_user_headers
        )

        data = client.get("/api/dashboard", headers=sub_user_headers).json()
        assert data["role"] == "SUB_USER"
        assert data["stats"]["assigned_jobs"] == 1
        assert data["stats"]["pending_tasks"] == 1
        assert data["stats"]["selections"] == 0
        assert data["assigned_jobs"][0]["can_manage_students"] is True
        assert data["upcoming_interviews"][0]["student_name"] == "Rahul Sharma"
        assert data["application_stats"] == [{"name": "Applied", "value": 1}]


class TestStudentDashboard:
    """GET /api/dashboard as student"""

    def test_stats(self, client, student, university, company, job):
        factories.create_job(university["university_id"], company["company_id"], title="Backend Engineer")
        factories.create_job(university["university_id"], company["company_id"], title="Quant", min_cgpa=9.5)
        factories.create_application(job["job_id"], student["student_id"], status="SHORTLISTED")

        data = client.get("/api/dashboard", headers=student["headers"]).json()
        assert data["role"] == "STUDENT"
        assert data["stats"] == {"applications": 1, "interviews": 1, "offers": 0, "eligible_jobs": 1}
        assert data["placement_status"] == "INTERVIEW_PROCESS"
        assert data["recent_applications"][0]["job_id"] == job["job_id"]
