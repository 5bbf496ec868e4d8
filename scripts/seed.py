#!/usr/bin/env python3
"""
Seed Script - demo university, accounts, company, job and students.

Safe to run repeatedly: existing rows are looked up, not duplicated.
Usage: python scripts/seed.py
"""
import sys
sys.path.insert(0, '.')

from datetime import date, timedelta
from sqlalchemy import text

from placement_portal.core.auth import hash_password
from placement_portal.db import engine, create_schema, get_db_session
from placement_portal.db.database import fetch_one

DEPARTMENTS = [
    ("Computer Science", "CSE"),
    ("Electronics", "ECE"),
    ("Mechanical", "ME"),
    ("Civil", "CE"),
    ("Information Technology", "IT"),
]

ACCOUNTS = [
    ("superadmin@example.com", "Super Admin", "superadmin123", "SUPER_ADMIN"),
    ("universityadmin@example.com", "University Admin", "universityadmin123", "UNIVERSITY_ADMIN"),
    ("subuser@example.com", "Sub User", "subuser123", "SUB_USER"),
]

CONTACTS = [
    ("John Doe", "john.doe@testcompany.com", "+91 9876543210", "HR Manager", True),
    ("Jane Smith", "jane.smith@testcompany.com", "+91 9876543211", "Technical Recruiter", False),
]

ROUNDS = [
    ("Technical Screening", "Initial technical assessment with coding questions"),
    ("Technical Interview", "Deep dive into technical skills and problem-solving abilities"),
    ("System Design Round", "Evaluation of system design and architecture knowledge"),
    ("HR Interview", "Final round to discuss company culture, expectations, and offer details"),
]

STUDENTS = [
    ("Rahul", "Sharma", "rahul.sharma@student.testuniversity.edu", "CS2001", 8.5, "student123"),
    ("Priya", "Patel", "priya.patel@student.testuniversity.edu", "CS2005", 9.0, None),
]


def get_or_create(db, select_sql: str, insert_sql: str, params: dict) -> int:
    """Return the id from select_sql, inserting with insert_sql (RETURNING id) when missing."""
    row = db.execute(text(select_sql), params).fetchone()
    if row:
        return row[0]
    return db.execute(text(insert_sql), params).fetchone()[0]


def seed_university(db) -> int:
    university_id = get_or_create(
        db,
        "SELECT university_id FROM universities WHERE code = :code",
        """
        INSERT INTO universities (name, code, city, state, country, contact_email, contact_phone, website)
        VALUES (:name, :code, 'Bangalore', 'Karnataka', 'India', 'contact@testuniversity.edu',
                '+91 9876543210', 'https://testuniversity.edu')
        RETURNING university_id
        """,
        {"name": "Test University", "code": "TU"}
    )
    print(f"    University: Test University (id={university_id})")

    for name, code in DEPARTMENTS:
        get_or_create(
            db,
            "SELECT department_id FROM departments WHERE university_id = :uni AND name = :name",
            "INSERT INTO departments (university_id, name, code) VALUES (:uni, :name, :code) RETURNING department_id",
            {"uni": university_id, "name": name, "code": code}
        )
    print(f"    Departments: {', '.join(code for _, code in DEPARTMENTS)}")
    return university_id


def seed_accounts(db, university_id: int) -> dict:
    ids = {}
    for email, name, password, role in ACCOUNTS:
        ids[role] = get_or_create(
            db,
            "SELECT user_id FROM users WHERE email = :email",
            """
            INSERT INTO users (email, name, password_hash, role, university_id)
            VALUES (:email, :name, :password_hash, :role, :uni)
            RETURNING user_id
            """,
            {
                "email": email, "name": name, "password_hash": hash_password(password), "role": role,
                "uni": None if role == "SUPER_ADMIN" else university_id
            }
        )
        print(f"    {role}: {email} / {password}")
    return ids


def seed_company(db, university_id: int) -> tuple:
    company_id = get_or_create(
        db,
        "SELECT company_id FROM companies WHERE name = :name",
        """
        INSERT INTO companies (name, industry, description, website)
        VALUES (:name, 'Technology', 'A test company for demo purposes', 'https://testcompany.com')
        RETURNING company_id
        """,
        {"name": "Test Company"}
    )
    db.execute(
        text("INSERT INTO company_universities (company_id, university_id) VALUES (:cid, :uni) ON CONFLICT DO NOTHING"),
        {"cid": company_id, "uni": university_id}
    )

    contact_ids = []
    for name, email, phone, designation, is_primary in CONTACTS:
        contact_ids.append(get_or_create(
            db,
            "SELECT contact_id FROM company_contacts WHERE company_id = :cid AND email = :email",
            """
            INSERT INTO company_contacts (company_id, name, email, phone, designation, is_primary)
            VALUES (:cid, :name, :email, :phone, :designation, :is_primary)
            RETURNING contact_id
            """,
            {"cid": company_id, "name": name, "email": email, "phone": phone,
             "designation": designation, "is_primary": is_primary}
        ))
    print(f"    Company: Test Company (id={company_id}) with {len(contact_ids)} contacts")
    return company_id, contact_ids


def seed_job(db, university_id: int, company_id: int, contact_ids: list, users: dict) -> int:
    job_id = get_or_create(
        db,
        "SELECT job_id FROM jobs WHERE title = :title AND company_id = :cid AND university_id = :uni",
        """
        INSERT INTO jobs (title, description, requirements, responsibilities, job_type, location_type, location,
            ctc_range_min, ctc_range_max, expected_hires, apply_by, status, company_id, university_id,
            created_by_id, updated_by_id)
        VALUES (:title, :description, :requirements, :responsibilities, 'FULL_TIME', 'ONSITE', 'Bangalore',
            15, 20, 5, :apply_by, 'OPEN', :cid, :uni, :admin, :admin)
        RETURNING job_id
        """,
        {
            "title": "Software Engineer",
            "description": "We are looking for a talented software engineer to join our team.",
            "requirements": "- Bachelor's degree in Computer Science\n- Strong programming skills\n- Good communication skills",
            "responsibilities": "- Develop new features\n- Fix bugs\n- Work with cross-functional teams",
            "apply_by": date.today() + timedelta(days=60),
            "cid": company_id,
            "uni": university_id,
            "admin": users["UNIVERSITY_ADMIN"],
        }
    )

    for sequence, (name, description) in enumerate(ROUNDS, start=1):
        get_or_create(
            db,
            "SELECT round_id FROM interview_rounds WHERE job_id = :jid AND sequence = :sequence",
            """
            INSERT INTO interview_rounds (job_id, name, description, sequence)
            VALUES (:jid, :name, :description, :sequence)
            RETURNING round_id
            """,
            {"jid": job_id, "name": name, "description": description, "sequence": sequence}
        )

    db.execute(
        text("""
            INSERT INTO sub_user_jobs (user_id, job_id, can_edit_job_details, can_manage_students, can_schedule_interviews)
            VALUES (:uid, :jid, :no, :yes, :yes) ON CONFLICT DO NOTHING
        """),
        {"uid": users["SUB_USER"], "jid": job_id, "no": False, "yes": True}
    )
    for contact_id in contact_ids:
        db.execute(
            text("INSERT INTO job_contacts (job_id, contact_person_id) VALUES (:jid, :cid) ON CONFLICT DO NOTHING"),
            {"jid": job_id, "cid": contact_id}
        )
    print(f"    Job: Software Engineer (id={job_id}) with {len(ROUNDS)} rounds, assigned to sub-user")
    return job_id


def seed_students(db, university_id: int) -> None:
    department = fetch_one(
        db, "SELECT department_id FROM departments WHERE university_id = :uni AND code = 'CSE'", {"uni": university_id}
    )
    for first_name, last_name, email, roll_number, cgpa, password in STUDENTS:
        if fetch_one(db, "SELECT student_id FROM students WHERE university_id = :uni AND email = :email",
                     {"uni": university_id, "email": email}):
            continue

        user_id = None
        if password:
            user_id = get_or_create(
                db,
                "SELECT user_id FROM users WHERE email = :email",
                """
                INSERT INTO users (email, name, password_hash, role, university_id)
                VALUES (:email, :name, :password_hash, 'STUDENT', :uni)
                RETURNING user_id
                """,
                {"email": email, "name": f"{first_name} {last_name}",
                 "password_hash": hash_password(password), "uni": university_id}
            )

        db.execute(
            text("""
                INSERT INTO students (user_id, university_id, department_id, first_name, last_name, email,
                    roll_number, year_of_graduation, cgpa)
                VALUES (:user_id, :uni, :dept, :first_name, :last_name, :email, :roll_number, :year, :cgpa)
            """),
            {
                "user_id": user_id, "uni": university_id, "dept": department["department_id"],
                "first_name": first_name, "last_name": last_name, "email": email,
                "roll_number": roll_number, "year": date.today().year + 1, "cgpa": cgpa
            }
        )
        print(f"    Student: {first_name} {last_name} ({roll_number})" + (f" / {password}" if password else ""))


def main():
    print("=" * 50)
    print("PLACEMENT PORTAL - SEED")
    print("=" * 50)

    print("\n[1] Creating schema...")
    create_schema(engine)

    print("\n[2] Seeding data...")
    with get_db_session() as db:
        university_id = seed_university(db)
        users = seed_accounts(db, university_id)
        company_id, contact_ids = seed_company(db, university_id)
        seed_job(db, university_id, company_id, contact_ids, users)
        seed_students(db, university_id)

    print("\n✅ Seeding finished")


if __name__ == "__main__":
    main()
